"""
Response parser service - extracts ``{message, actions}`` from model text.

Two entry points share one string scanner:

- ``parse_full`` reduces complete text through three tiers
  (strict JSON, regex repair, raw text) and never raises.
- ``parse_partial`` extracts the message value from a streaming prefix for
  live display; longer prefixes only ever extend its result.
"""

from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..models.response import ExtractedResponse, ParseTier

logger = logging.getLogger(__name__)

_SIMPLE_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "/": "/",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
}

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

_MESSAGE_KEY = '"message"'
_MESSAGE_VALUE_RE = re.compile(r'"message"\s*:\s*"((?:[^"\\]|\\[\s\S])*)"')
_CITE_RE = re.compile(r"<cite[^>]*>.*?</cite>")
_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_JSON_BLOB_RE = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")
_MISSING_COMMA_RE = re.compile(r'"([^"]+)"\s*:\s*"([^"]*)"\s*\n\s*"([^"]+)"\s*:')


def _read_hex4(text: str, pos: int) -> Optional[int]:
    chunk = text[pos:pos + 4]
    if len(chunk) == 4 and all(c in _HEX_DIGITS for c in chunk):
        return int(chunk, 16)
    return None


def _is_hex_prefix(text: str, pos: int) -> bool:
    """True when text[pos:] is a strict prefix of four hex digits."""
    rest = text[pos:]
    return len(rest) < 4 and all(c in _HEX_DIGITS for c in rest)


def scan_string(text: str, start: int, partial: bool = False) -> Tuple[str, int, bool]:
    """Scan a JSON string body beginning at ``start`` (just past the opening quote).

    Escapes are applied left to right, so ``\\\\`` always resolves before the
    character following it. Unknown escapes yield the escaped character.

    Returns ``(value, end, closed)`` where ``end`` is the index after the
    closing quote (or where scanning stopped) and ``closed`` reports whether
    an unescaped closing quote was found.

    With ``partial=True`` a trailing lone backslash or an incomplete
    ``\\uXXXX`` sequence at end of input is held back rather than emitted.
    """
    out: List[str] = []
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            return "".join(out), i + 1, True
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            if not partial:
                out.append("\\")
            return "".join(out), n if not partial else i, False

        nxt = text[i + 1]
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
            continue
        if nxt != "u":
            out.append(nxt)
            i += 2
            continue

        code = _read_hex4(text, i + 2)
        if code is None:
            if partial and _is_hex_prefix(text, i + 2):
                return "".join(out), i, False
            out.append("u")
            i += 2
            continue

        if 0xD800 <= code <= 0xDBFF:
            # High surrogate: combine with a following \uDC00-\uDFFF escape
            tail = text[i + 6:i + 12]
            if partial and len(tail) < 6 and (tail == "\\u"[:len(tail)] or
                                              (tail.startswith("\\u") and _is_hex_prefix(tail, 2))):
                return "".join(out), i, False
            if tail.startswith("\\u"):
                low = _read_hex4(tail, 2)
                if low is not None and 0xDC00 <= low <= 0xDFFF:
                    out.append(chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)))
                    i += 12
                    continue
            out.append("\ufffd")
            i += 6
            continue

        out.append(chr(code) if not 0xDC00 <= code <= 0xDFFF else "\ufffd")
        i += 6
    return "".join(out), n, False


def unescape_json_string(value: str) -> str:
    """Unescape the body of a JSON string literal (the text between quotes)."""
    if not value:
        return ""
    out: List[str] = []
    pos = 0
    while pos < len(value):
        chunk, pos, closed = scan_string(value, pos)
        out.append(chunk)
        if closed:
            # A bare quote inside the body is kept literally
            out.append('"')
    return "".join(out)


def strip_cite_tags(text: str) -> str:
    """Remove ``<cite>...</cite>`` attribution elements from display text."""
    if not text:
        return ""
    return _CITE_RE.sub("", text).strip()


def iter_balanced_objects(text: str) -> Iterator[str]:
    """Yield balanced ``{...}`` substrings in order of their opening brace.

    Braces inside string literals are ignored. Every ``{`` is tried as a
    start, so a stray unbalanced brace in a preamble does not hide a later
    object.
    """
    n = len(text)
    start = text.find("{")
    while start != -1:
        depth = 0
        i = start
        end = -1
        while i < n:
            ch = text[i]
            if ch == '"':
                _, i, closed = scan_string(text, i + 1)
                if not closed:
                    break
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i + 1
                    break
            i += 1
        if end != -1:
            yield text[start:end]
        start = text.find("{", start + 1)


def _iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
    for candidate in iter_balanced_objects(text):
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, RecursionError):
            continue
        if isinstance(parsed, dict):
            yield parsed


def _actions_of(obj: Dict[str, Any]) -> List[Any]:
    actions = obj.get("actions")
    return list(actions) if isinstance(actions, list) else []


def _parse_strict(text: str) -> Optional[ExtractedResponse]:
    for parsed in _iter_json_objects(text):
        if isinstance(parsed.get("message"), str):
            return ExtractedResponse(
                message=parsed["message"],
                actions=_actions_of(parsed),
                tier=ParseTier.STRICT,
            )
    return None


def _fallback_actions(text: str) -> List[Any]:
    """Actions of the first JSON object in ``text``, even one without a message."""
    for parsed in _iter_json_objects(text):
        return _actions_of(parsed)
    return []


def _parse_repaired(text: str) -> Optional[ExtractedResponse]:
    match = _MESSAGE_VALUE_RE.search(text)
    if not match:
        return None
    return ExtractedResponse(
        message=unescape_json_string(match.group(1)),
        actions=[],
        tier=ParseTier.REPAIRED,
    )


def parse_full(text: Optional[str]) -> ExtractedResponse:
    """Reduce complete model text to a message and raw action list.

    Tiers are tried in order: STRICT, REPAIRED, RAW_FALLBACK. The result
    records which tier produced it.
    """
    if not text:
        return ExtractedResponse(message="", actions=[], tier=ParseTier.RAW_FALLBACK)

    trimmed = text.strip()
    result = _parse_strict(trimmed)
    if result is None:
        result = _parse_repaired(trimmed)
        if result is not None:
            logger.debug("Strict parse failed; recovered message via pattern match")
    if result is None:
        result = ExtractedResponse(
            message=trimmed,
            actions=_fallback_actions(trimmed),
            tier=ParseTier.RAW_FALLBACK,
        )
    return result


def parse_partial(text: Optional[str]) -> str:
    """Extract the message value from a possibly truncated response prefix."""
    if not text:
        return ""

    key = text.find(_MESSAGE_KEY)
    if key == -1:
        return text.strip()

    colon = text.find(":", key + len(_MESSAGE_KEY))
    if colon == -1:
        return ""
    quote = text.find('"', colon + 1)
    if quote == -1:
        return ""

    value, _, _ = scan_string(text, quote + 1, partial=True)
    return value


def clean_message(text: Optional[str]) -> str:
    """Parse complete text and strip cite tags, ready for display."""
    return strip_cite_tags(parse_full(text).message)


def extract_json(text: Optional[str]) -> Optional[Any]:
    """Extract a JSON object or array from text, tolerating code fences.

    A second attempt inserts commas missing between string-valued
    properties on consecutive lines. Returns None when nothing parses.
    """
    if not text:
        return None
    body = text
    fence = _CODE_FENCE_RE.search(text)
    if fence:
        body = fence.group(1)

    blob = _JSON_BLOB_RE.search(body)
    if not blob:
        return None
    candidate = blob.group(0)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    repaired = _MISSING_COMMA_RE.sub(r'"\1": "\2",\n  "\3":', candidate)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        logger.debug("Could not extract JSON from model output")
        return None
