"""
Structured AI output schemas with their fallback defaults.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations
from typing import Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- Chat response ----------

ActionType = Literal["mark_step_done", "focus_step", "create_task", "show_sources"]


class ChatAction(AIModel):
    type: ActionType
    step_id: Optional[str] = None
    title: Optional[str] = None
    context: Optional[str] = None
    label: str


class ChatResponse(AIModel):
    message: str
    actions: List[ChatAction] = Field(default_factory=list)


DEFAULT_CHAT_MESSAGE = "I couldn't process that. Could you try rephrasing?"

DEFAULT_CHAT_RESPONSE = ChatResponse(message=DEFAULT_CHAT_MESSAGE, actions=[])


# ---------- Task breakdown ----------

class StepSource(AIModel):
    name: str
    url: str

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("must be an absolute URL")
        return v


class StepAction(AIModel):
    text: str
    url: str


class RichStep(AIModel):
    text: str
    summary: Optional[str] = None
    detail: Optional[str] = None
    alternatives: Optional[List[str]] = None
    examples: Optional[List[str]] = None
    checklist: Optional[List[str]] = None
    time: Optional[str] = None
    source: Optional[StepSource] = None
    action: Optional[StepAction] = None


def default_steps(title: str) -> List[RichStep]:
    """Keyword-matched fallback steps for a task title."""
    lower = title.lower()

    def steps(*rows: tuple) -> List[RichStep]:
        return [RichStep(text=t, summary=s, time=m) for t, s, m in rows]

    if "cancel" in lower:
        return steps(
            ("Find contact info for cancellation", "Locate cancellation method", "5 min"),
            ('Call or use online chat - say "I want to cancel my account"', "Direct request works best", "10 min"),
            ("Get confirmation number or email and save it", "Proof of cancellation", "2 min"),
        )
    if any(k in lower for k in ("learn", "practice", "study")):
        return steps(
            ("Decide on one specific skill to focus on this week", "Narrow focus = faster progress", "5 min"),
            ("Do 20 minutes of deliberate practice", "Quality over quantity", "20 min"),
            ("Note what felt hard and what clicked", "Builds self-awareness", "5 min"),
        )
    if any(k in lower for k in ("write", "draft", "create")):
        return steps(
            ("Write down 5 bullet points of what you want to say", "Raw material first", "10 min"),
            ("Turn 2-3 bullets into full sentences", "Just get words down", "15 min"),
            ("Read it out loud and fix anything that sounds weird", "Your ear catches what eyes miss", "10 min"),
        )
    if any(k in lower for k in ("appointment", "schedule", "book")):
        return steps(
            ("Search for online booking or phone number", "Find booking method", "5 min"),
            ("Check your calendar for 2-3 possible times", "Be ready with options", "3 min"),
            ("Book and add to your calendar immediately", "Lock it in", "5 min"),
        )
    if any(k in lower for k in ("email", "message", "contact")):
        return steps(
            ("Write the main point in one sentence", "Clarity first", "3 min"),
            ("Add any necessary context (keep it short)", "Respect their time", "5 min"),
            ("Read once, fix obvious issues, then send", "Done beats perfect", "3 min"),
        )
    return steps(
        (f'Search for how to do "{title}"', "Find the actual process", "5 min"),
        ("Write down the 3 main things you need to do", "Capture the key steps", "5 min"),
        ("Do the first thing on your list right now", "Momentum matters most", "15 min"),
    )


# ---------- Intent analysis ----------

class Deadline(AIModel):
    date: Optional[str]
    type: Literal["hard", "soft", "flexible"]
    source: Literal["explicit", "inferred", "none"]
    note: Optional[str]


class ClarifyingQuestion(AIModel):
    question: str
    key: str
    options: Optional[List[str]] = None
    why: Optional[str] = None


class IntentStep(AIModel):
    text: str
    summary: Optional[str] = None
    time: Optional[str] = None


class IntentPlan(AIModel):
    steps: List[IntentStep] = Field(default_factory=list)
    context_summary: str = ""


class IntentAnalysis(AIModel):
    task_name: str
    task_type: Literal["bureaucratic", "personal", "learning", "creative", "habit", "project", "quick", "vague"]
    understanding: str
    extracted_context: Dict[str, str] = Field(default_factory=dict)
    deadline: Optional[Deadline] = None
    needs_more_info: bool
    reasoning: str
    questions: List[ClarifyingQuestion] = Field(default_factory=list)
    if_complete: Optional[IntentPlan] = None


DEFAULT_INTENT_ANALYSIS = IntentAnalysis(
    task_name="Task",
    task_type="quick",
    understanding="Processing your request",
    extracted_context={},
    needs_more_info=False,
    reasoning="Unable to analyze - proceeding with basic task",
    questions=[],
)


# ---------- Task analysis ----------

class TaskAnalysisQuestion(AIModel):
    id: str
    question: str
    why: str
    options: Optional[List[str]]


class TaskAnalysis(AIModel):
    needs_clarification: bool
    task_type: Literal["bureaucratic", "learning", "creative", "habit", "multi_phase", "vague_goal", "other"]
    task_category: Literal["government", "medical", "financial", "travel", "home", "work", "errand", "personal", "other"]
    questions: List[TaskAnalysisQuestion] = Field(default_factory=list)
    deadline: Optional[Deadline] = None
    immediate_insight: Optional[str]


DEFAULT_TASK_ANALYSIS = TaskAnalysis(
    needs_clarification=False,
    task_type="other",
    task_category="personal",
    questions=[],
    immediate_insight=None,
)


# ---------- Email analysis ----------

class EmailSuggestedTask(AIModel):
    title: str
    due_date: Optional[str]
    urgency: Literal["high", "medium", "low"]


class EmailAnalysis(AIModel):
    actionable: bool
    category: Literal["BILL_DUE", "APPOINTMENT", "DEADLINE", "REQUEST", "NOT_ACTIONABLE"]
    confidence: float = Field(ge=0, le=1)
    suggested_task: Optional[EmailSuggestedTask]
    reason: str


DEFAULT_EMAIL_ANALYSIS = EmailAnalysis(
    actionable=False,
    category="NOT_ACTIONABLE",
    confidence=0.5,
    suggested_task=None,
    reason="Unable to analyze email",
)


# ---------- Nudge message ----------

class NudgeMessage(AIModel):
    title: str
    body: str


def default_nudge(task_title: str, days_until_due: int, is_overdue: bool) -> NudgeMessage:
    short = task_title[:30]
    if is_overdue:
        return NudgeMessage(title=f"{short} is overdue",
                            body="It's not too late. What's one small step you could take?")
    if days_until_due <= 1:
        return NudgeMessage(title=f"{short} is due tomorrow",
                            body="You've got this. Start with the first step.")
    return NudgeMessage(title=f"{short} is coming up",
                        body=f"Due in {days_until_due} days. Good time to make progress.")


# ---------- Weekly reflection ----------

class WeeklyReflection(AIModel):
    wins: List[str]
    patterns: List[str]
    suggestions: List[str]
    encouragement: str


def default_reflection(tasks_completed: int, busiest_day: str) -> WeeklyReflection:
    if tasks_completed > 0:
        plural = "s" if tasks_completed > 1 else ""
        wins = [f"You completed {tasks_completed} task{plural} this week"]
    else:
        wins = ["You made it through another week"]
    return WeeklyReflection(
        wins=wins,
        patterns=[f"{busiest_day} seems to be your productive day"] if busiest_day else [],
        suggestions=["Try tackling one small task early in the day"],
        encouragement="Progress isn't always visible, but you're moving forward.",
    )


# ---------- Task intelligence ----------

class TaskObservation(AIModel):
    task_id: str
    type: Literal["stuck", "vague", "needs_deadline", "pattern"]
    observation: str
    suggestion: str
    priority: int = Field(ge=1, le=3)
