"""
Target locator & primer.

Opens whatever composer menu hides the real upload control, then marks the
best `input[type=file]` so the dispatcher can resolve exactly that element.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..base import Attempt, Logger, LocatorError, attempt
from ..diagnostics import dom_failure_on_error, log_dom_failure
from .names import MatchResult, expected_basename, normalize_name
from .probe import PageProbe, TagResult
from .timeouts import SYSTEM_CLOCK, AttachmentTimeouts, Clock, resolve_attachment_timeouts


@dataclass(frozen=True)
class TaggedInput:
    """Handle on the tagged file input.

    Only one input carries the attribute at a time; uploads on the same page
    must not interleave.
    """

    attr: str
    selector: str
    index: int | None = None
    candidates: int = 0


@dataclass(frozen=True)
class PrimeResult:
    composer_plus: Attempt | None = None
    upload_menu: Attempt | None = None

    @property
    def clicked(self) -> bool:
        return any(a is not None and a.ok and bool(a.value) for a in (self.composer_plus, self.upload_menu))


def prime_composer(
    probe: PageProbe,
    *,
    clock: Clock | None = None,
    timeouts: AttachmentTimeouts | None = None,
) -> PrimeResult:
    """Click the composer "+" and the upload menu item, both best-effort."""
    clk = clock or SYSTEM_CLOCK
    t = timeouts or resolve_attachment_timeouts()
    plus = attempt(probe.click_composer_plus)
    clk.sleep(t.settle_s)
    menu = attempt(probe.click_upload_menu_item)
    if menu.ok and menu.value:
        clk.sleep(t.settle_s)
    return PrimeResult(composer_plus=plus, upload_menu=menu)


def attachment_present(probe: PageProbe, expected_name: str) -> MatchResult:
    """Exact (case-folded) presence check used to make re-entry idempotent.

    Plain containment only: a truncated chip of an older attachment must not
    suppress a new upload.
    """
    expected = normalize_name(expected_basename(expected_name))
    state = probe.presence()
    if any(expected in normalize_name(text) for text in state.chips):
        return MatchResult(found=True, source="attachments", text=expected)
    if any(expected in normalize_name(text) for text in state.cards):
        return MatchResult(found=True, source="attachment-cards", text=expected)
    for files in state.input_files:
        if any(expected in normalize_name(name) for name in files):
            return MatchResult(found=True, source="input-only", text=expected)
    return MatchResult(found=False)


def is_image_only(accept: str | None) -> bool:
    """True when an `accept` attribute admits only image/* types."""
    parts = [part.strip().lower() for part in (accept or "").split(",") if part.strip()]
    return bool(parts) and all(part.startswith("image/") for part in parts)


def pick_upload_input(accepts: Sequence[str | None]) -> int | None:
    """Index of the input to upload through: the last generic one, else the last of any kind."""
    if not accepts:
        return None
    generic = [i for i, accept in enumerate(accepts) if not is_image_only(accept)]
    return generic[-1] if generic else len(accepts) - 1


def _locate_failed(probe: PageProbe, logger: Logger | None, reason: str, details: dict[str, Any]) -> LocatorError:
    log_dom_failure(probe.runtime, logger, "file-input-missing")
    return LocatorError(
        tool="upload_attachment",
        action="locate",
        reason=reason,
        suggestion="Open the chat composer and make sure the page allows attachments",
        details=details,
    )


def locate_upload_target(probe: PageProbe, logger: Logger | None = None) -> TaggedInput:
    """Tag the upload input; image-only inputs lose to generic ones, later inputs win."""
    with dom_failure_on_error(probe.runtime, logger, "file-input-missing"):
        accepts = probe.file_input_accepts()
        index = pick_upload_input(accepts)
        tag = probe.tag_upload_input(index) if index is not None else TagResult(tagged=False)
    if not tag.tagged:
        raise _locate_failed(
            probe, logger, "Unable to locate the composer file attachment input", {"inputs": len(accepts)}
        )
    if tag.tagged_count != 1:
        raise _locate_failed(
            probe,
            logger,
            f"Expected one tagged file input, found {tag.tagged_count}",
            {"inputs": tag.inputs, "tagged": tag.tagged_count},
        )
    return TaggedInput(
        attr=probe.selectors.upload_target_attr,
        selector=probe.selectors.tagged_input_selector,
        index=index,
        candidates=tag.inputs,
    )
