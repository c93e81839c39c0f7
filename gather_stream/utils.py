"""
Utility functions and error types for Gather Stream.
"""

import logging
import sys
from typing import Optional


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    # Reduce noise from third-party libraries unless debugging
    if level.upper() != "DEBUG":
        for name in ("httpx", "httpcore", "uvicorn.access"):
            logging.getLogger(name).setLevel(logging.WARNING)


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_length:
        return text
    return text[:max_length-3] + "..."


class UpstreamAPIError(Exception):
    """Exception for failed calls to the upstream model provider."""

    def __init__(self, message: str, status_code: Optional[int] = None, body_excerpt: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class ToolLoopLimitError(Exception):
    """Raised when the model keeps requesting tools past the configured round limit."""

    def __init__(self, max_rounds: int):
        super().__init__(f"Tool loop limit reached after {max_rounds} rounds")
        self.max_rounds = max_rounds


class RequestTimeoutError(Exception):
    """Raised when a chat request exceeds its overall deadline."""

    def __init__(self, timeout_s: float):
        super().__init__(f"Request timed out after {timeout_s:.1f}s")
        self.timeout_s = timeout_s
