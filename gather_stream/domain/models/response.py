"""
Parsed response models - the reduction target of the agentic loop.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any
from enum import Enum


class ParseTier(Enum):
    """Which degradation tier produced a parse result."""
    STRICT = "strict"
    REPAIRED = "repaired"
    RAW_FALLBACK = "raw_fallback"


@dataclass(frozen=True)
class ExtractedResponse:
    """Raw extraction result; actions are not validated yet."""
    message: str
    actions: List[Any]
    tier: ParseTier


@dataclass(frozen=True)
class ParsedResponse:
    """Validated reply: a displayable message plus typed follow-up actions."""
    message: str
    actions: List[Dict[str, Any]] = field(default_factory=list)
    raw: str = ""
    tier: ParseTier = ParseTier.RAW_FALLBACK
