"""
Schema validator service - total validation of structured AI outputs.

Every call returns either the validated value or a hard-coded default;
validation failures are logged at WARNING with the schema and field
locations, never raised to the caller.
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from pydantic import TypeAdapter, ValidationError

from ..models.response import ParsedResponse
from ..models.schemas import (
    ChatAction,
    ChatResponse,
    DEFAULT_CHAT_MESSAGE,
    DEFAULT_CHAT_RESPONSE,
    DEFAULT_EMAIL_ANALYSIS,
    DEFAULT_INTENT_ANALYSIS,
    DEFAULT_TASK_ANALYSIS,
    EmailAnalysis,
    IntentAnalysis,
    NudgeMessage,
    RichStep,
    TaskAnalysis,
    TaskObservation,
    WeeklyReflection,
)
from .response_parser import extract_json, parse_full, strip_cite_tags

T = TypeVar("T")

_log = logging.getLogger(__name__)

_MISSING = object()

# name -> (validator, default factory or None when the caller must supply one)
_REGISTRY: Dict[str, Tuple[TypeAdapter, Optional[Callable[[], Any]]]] = {
    "chat": (TypeAdapter(ChatResponse), lambda: DEFAULT_CHAT_RESPONSE.model_copy(deep=True)),
    "task_breakdown": (TypeAdapter(List[RichStep]), None),
    "intent_analysis": (TypeAdapter(IntentAnalysis), lambda: DEFAULT_INTENT_ANALYSIS.model_copy(deep=True)),
    "task_analysis": (TypeAdapter(TaskAnalysis), lambda: DEFAULT_TASK_ANALYSIS.model_copy(deep=True)),
    "email_analysis": (TypeAdapter(EmailAnalysis), lambda: DEFAULT_EMAIL_ANALYSIS.model_copy(deep=True)),
    "nudge": (TypeAdapter(NudgeMessage), None),
    "weekly_reflection": (TypeAdapter(WeeklyReflection), None),
    "task_intelligence": (TypeAdapter(List[TaskObservation]), list),
}

_ACTION_ADAPTER = TypeAdapter(ChatAction)


def schema_names() -> List[str]:
    return list(_REGISTRY)


def _describe_errors(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def _schema_label(schema: Any) -> str:
    return getattr(schema, "__name__", "structured output")


def validate_or_default(
    schema: Any,
    data: Any,
    default: T,
    context: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> T:
    """Validate ``data`` against ``schema`` or return ``default``.

    ``schema`` may be a pydantic model class, a ``TypeAdapter``, or any type
    a ``TypeAdapter`` accepts (e.g. ``List[RichStep]``).
    """
    log = logger or _log
    adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        label = context or _schema_label(schema)
        log.warning(f"AI schema validation failed for {label}: {_describe_errors(e)}")
        return default


def validate_actions(
    raw_actions: Any,
    logger: Optional[logging.Logger] = None,
) -> List[ChatAction]:
    """Validate each action independently; invalid ones are dropped."""
    log = logger or _log
    if not isinstance(raw_actions, list):
        return []
    valid: List[ChatAction] = []
    for idx, raw in enumerate(raw_actions):
        try:
            valid.append(_ACTION_ADAPTER.validate_python(raw))
        except ValidationError as e:
            log.warning(f"Dropping invalid chat action [{idx}]: {_describe_errors(e)}")
    return valid


def reduce_chat_text(text: Optional[str], logger: Optional[logging.Logger] = None) -> ParsedResponse:
    """Reduce the accumulated model text to a validated chat reply.

    The message is never empty when the trimmed raw text is non-empty.
    """
    raw = (text or "").strip()
    extracted = parse_full(raw)
    actions = validate_actions(extracted.actions, logger=logger)
    message = strip_cite_tags(extracted.message)
    if not message and raw:
        message = DEFAULT_CHAT_MESSAGE
    return ParsedResponse(
        message=message,
        actions=[a.to_wire() for a in actions],
        raw=raw,
        tier=extracted.tier,
    )


def parse_structured(
    text: Optional[str],
    schema_name: str,
    default: Any = _MISSING,
    logger: Optional[logging.Logger] = None,
) -> Any:
    """Extract JSON from model text and validate it against a named schema.

    Schemas whose default depends on request data (``task_breakdown``,
    ``nudge``, ``weekly_reflection``) require an explicit ``default``.
    """
    try:
        adapter, factory = _REGISTRY[schema_name]
    except KeyError:
        raise ValueError(f"Unknown schema: {schema_name}") from None

    if default is _MISSING:
        if factory is None:
            raise ValueError(f"Schema '{schema_name}' needs an explicit default")
        default = factory()

    data = extract_json(text)
    if data is None:
        log = logger or _log
        log.warning(f"AI schema validation failed for {schema_name}: no JSON found")
        return default
    return validate_or_default(adapter, data, default, context=schema_name, logger=logger)
