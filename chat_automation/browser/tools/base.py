"""
Base utilities for browser automation tools.

Provides:
- SmartToolError: Structured errors with a suggestion for the caller
- AttachmentError / LocatorError / AttachmentTimeoutError: attachment taxonomy
- Attempt / attempt(): explicit best-effort calls that keep the failure visible
- emit(): progress lines to the caller's sink and the module logger
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

Logger = Callable[[str], None]

_LOGGER = logging.getLogger("chat.browser.tools")


# Error Handling
@dataclass
class SmartToolError(Exception):
    """Structured error with context for callers."""

    tool: str
    action: str
    reason: str
    suggestion: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.tool}] {self.action} failed: {self.reason}. Suggestion: {self.suggestion}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "tool": self.tool,
            "action": self.action,
            "reason": self.reason,
            "suggestion": self.suggestion,
            "details": self.details,
        }


@dataclass
class AttachmentError(SmartToolError):
    """Any terminal failure of the attachment upload protocol."""


@dataclass
class LocatorError(AttachmentError):
    """Structural failure: the upload target could not be established."""


@dataclass
class AttachmentTimeoutError(AttachmentError):
    """A confirmation phase ran out of time."""

    phase: str = ""
    timeout: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["phase"] = self.phase
        out["timeout"] = self.timeout
        return out


@dataclass(frozen=True)
class Attempt:
    """Outcome of a best-effort step. `ok=False` means attempted and failed harmlessly."""

    ok: bool
    value: Any = None
    error: str | None = None


def attempt(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Attempt:
    try:
        return Attempt(ok=True, value=fn(*args, **kwargs))
    except Exception as exc:  # noqa: BLE001
        _LOGGER.debug("best-effort step %s failed: %s", getattr(fn, "__name__", fn), exc)
        return Attempt(ok=False, error=str(exc) or type(exc).__name__)


def emit(
    logger: Logger | None,
    message: str,
    *,
    level: int = logging.INFO,
    log: logging.Logger | None = None,
) -> None:
    """Send a progress line to the caller's sink (and to `log`). Never raises."""
    (log or _LOGGER).log(level, message)
    if logger is None:
        return
    with suppress(Exception):
        logger(message)
