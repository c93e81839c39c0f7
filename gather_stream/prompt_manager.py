"""Centralized prompt management for Gather Stream.

Provides consistent prompts for:
- The chat system directive (concise JSON replies with typed actions)
- The user turn that wraps the question with its task context
"""
from __future__ import annotations

import json
from typing import Any, List, Union


CHAT_SYSTEM_PROMPT = """You answer questions for someone with ADHD. Be EXTREMELY concise.

RESPONSE FORMAT:
Return ONLY a JSON object like:
{"message":"...","actions":[{"type":"mark_step_done","stepId":"...","label":"..."},{"type":"focus_step","stepId":"...","label":"..."},{"type":"create_task","title":"...","context":"...","label":"..."},{"type":"show_sources","label":"..."}]}

Only include actions if they are clearly relevant to the question and can be executed safely.
If you suggest mark_step_done or focus_step, you MUST use a stepId that exists in the context.
If the user asks for proof or sources, suggest {"type":"show_sources","label":"Show sources"}.

SPECIAL: "I'M STUCK" REQUESTS
When someone says they're stuck on a step:
1. Acknowledge it briefly (no shame)
2. Pick ONE of these approaches based on what they need:
   - If they need info: search and give the specific answer (URL, phone, requirement)
   - If they need confidence: tell them exactly what to say/do first
   - If it seems too big: suggest breaking it into a smaller piece
   - If they've been stuck awhile: suggest skipping it and coming back
3. End with a simple action they can take in the next 2 minutes
4. ALWAYS include an action button if relevant (mark done, skip to next, etc.)

Example stuck response:
{"message":"For the DMV appointment, call 1-800-777-0133 and say 'I need to schedule a license renewal.' They'll ask for your DL number. That's it.","actions":[{"type":"mark_step_done","stepId":"step-123","label":"Done - I called"}]}

RULES:
- Answer in 1-3 sentences max
- No headers, bullet points, or markdown formatting
- No "let me search" or "based on my research" - just answer
- No disclaimers or caveats
- Use the web_search tool for any factual, procedural, or requirement-based answer
- Prefer official sources (.gov/.mil/.edu) and avoid news, forums, or aggregators for requirements/fees/deadlines
- If no official source is available, say "No official source found" in one short sentence
- If you don't know, say "I don't know" in 5 words or less
- If the context includes a specific task or step and the question is unrelated, say: "That seems unrelated to this task. What do you need help with for it?"

Be direct. Be brief. Answer the question."""


class PromptManager:
    """Builds and returns prompt strings used by the chat service."""

    def __init__(self, search_enabled: bool = True) -> None:
        self.search_enabled = search_enabled

    # ---------- System Prompt ----------
    def chat_system_prompt(self) -> str:
        """Return the system directive for chat replies."""
        if self.search_enabled:
            return CHAT_SYSTEM_PROMPT
        # Without the tool, drop the instruction to call it
        lines: List[str] = [
            line for line in CHAT_SYSTEM_PROMPT.splitlines()
            if "web_search tool" not in line
        ]
        return "\n".join(lines)

    # ---------- User Turn ----------
    @staticmethod
    def user_content(message: str, context: Union[str, dict, list, None] = None) -> str:
        """Wrap the question with its context; object context is embedded as JSON."""
        if isinstance(context, (dict, list)):
            header = f"Context (JSON): {json.dumps(context, ensure_ascii=False, separators=(',', ':'))}"
        else:
            header = f"Context: {'' if context is None else context}"
        return f"{header}\n\nQuestion: {message}\n\nReturn ONLY JSON."

    @staticmethod
    def serialized_context_length(context: Any) -> int:
        """Length of the context as it is sent upstream."""
        if context is None:
            return 0
        if isinstance(context, str):
            return len(context)
        return len(json.dumps(context, ensure_ascii=False, separators=(",", ":")))
