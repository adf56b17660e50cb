"""
Attachment confirmation waits.

    PRIMING -> ANCHORED -> VISIBLE -> CONFIRMED
                  |           |
                  +-----------+--> TIMED_OUT   (AttachmentTimeoutError)
    PRIMING --> FAILED                        (LocatorError: no usable file input)

Every wait polls the page at a fixed interval until its own deadline. No
signal is trusted alone: chips can lag, the send button flickers, and some
composer variants never render a chip before the message is sent.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..base import AttachmentTimeoutError, Logger, emit
from ..diagnostics import dom_failure_on_error, log_dom_failure
from .names import MatchResult, match_any, missing_names
from .probe import ControlState, PageProbe
from .selectors import SelectorConfig
from .timeouts import SYSTEM_CLOCK, AttachmentTimeouts, Clock, Deadline, resolve_attachment_timeouts

_LOGGER = logging.getLogger("chat.browser.attachments")


def as_probe(runtime: Any, selectors: SelectorConfig | None = None) -> PageProbe:
    if isinstance(runtime, PageProbe):
        return runtime
    return PageProbe(runtime, selectors)


def wait_for_attachment_anchored(
    runtime: Any,
    expected_name: str,
    timeout: float,
    *,
    logger: Logger | None = None,
    clock: Clock | None = None,
    timeouts: AttachmentTimeouts | None = None,
    selectors: SelectorConfig | None = None,
) -> bool:
    """True once a chip, card or remove button names the file. False on timeout (not an error)."""
    probe = as_probe(runtime, selectors)
    clk = clock or SYSTEM_CLOCK
    t = timeouts or resolve_attachment_timeouts()
    deadline = Deadline.after(timeout, clk)
    while not deadline.expired():
        with dom_failure_on_error(probe.runtime, logger, "file-upload-missing"):
            labels = probe.anchor_labels()
        match = match_any(labels, expected_name, source="attachments")
        if match:
            _LOGGER.debug("attachment anchored: %s", match.text)
            return True
        clk.sleep(t.anchor_poll_s)
    return False


def wait_for_attachment_visible(
    runtime: Any,
    expected_name: str,
    timeout: float,
    logger: Logger | None = None,
    *,
    clock: Clock | None = None,
    timeouts: AttachmentTimeouts | None = None,
    selectors: SelectorConfig | None = None,
) -> MatchResult:
    """Wait until the attachment is stably shown in the composer; raise on timeout."""
    probe = as_probe(runtime, selectors)
    clk = clock or SYSTEM_CLOCK
    t = timeouts or resolve_attachment_timeouts()
    deadline = Deadline.after(timeout, clk)
    while not deadline.expired():
        with dom_failure_on_error(probe.runtime, logger, "attachment-visible"):
            state = probe.visibility()
        for labels in state.attachments:
            match = match_any(labels, expected_name, source="attachments")
            if match:
                return match
        match = match_any(state.cards, expected_name, source="attachment-cards")
        if match:
            return match
        clk.sleep(t.visible_poll_s)

    emit(logger, "Attachment not visible in composer; giving up.", level=logging.WARNING, log=_LOGGER)
    log_dom_failure(probe.runtime, logger, "attachment-visible")
    raise AttachmentTimeoutError(
        tool="upload_attachment",
        action="wait_visible",
        reason="Attachment did not appear in the composer",
        suggestion="Check that the composer accepts this file type, or raise the UI timeout",
        details={"expected": expected_name},
        phase="visible",
        timeout=float(timeout),
    )


def wait_for_attachment_completion(
    runtime: Any,
    timeout: float,
    expected_names: Sequence[str] = (),
    logger: Logger | None = None,
    *,
    clock: Clock | None = None,
    timeouts: AttachmentTimeouts | None = None,
    selectors: SelectorConfig | None = None,
) -> None:
    """Wait until uploads settle and the composer is ready to send the attachments.

    Per tick, once nothing is uploading:
    - all names match chips: done if the send control is ready, or missing while
      chips are shown; a disabled control gets one extra interval
    - otherwise all names match raw file-input names with the control ready:
      done once that has held for `input_stable_s` without interruption
    """
    probe = as_probe(runtime, selectors)
    clk = clock or SYSTEM_CLOCK
    t = timeouts or resolve_attachment_timeouts()
    expected = list(expected_names)
    deadline = Deadline.after(timeout, clk)
    input_match_since: float | None = None

    while not deadline.expired():
        with dom_failure_on_error(probe.runtime, logger, "file-upload-timeout"):
            snap = probe.readiness()
        if snap.uploading:
            input_match_since = None
            clk.sleep(t.readiness_poll_s)
            continue

        if not missing_names(snap.chips, expected):
            if snap.control_state is ControlState.READY:
                _LOGGER.debug("attachments ready: chips matched, send control ready")
                return
            if snap.control_state is ControlState.MISSING and snap.files_attached:
                _LOGGER.debug("attachments ready: chips matched, no send control rendered")
                return
            if snap.files_attached:
                # Disabled right after a chip renders is usually transient.
                clk.sleep(t.disabled_retry_s)
                continue

        if not missing_names(snap.input_names, expected, input_names=True) and snap.control_state is ControlState.READY:
            now = clk.now()
            if input_match_since is None:
                input_match_since = now
            if now - input_match_since >= t.input_stable_s:
                _LOGGER.debug("attachments ready: file input stable for %.2fs", now - input_match_since)
                return
        else:
            input_match_since = None

        clk.sleep(t.readiness_poll_s)

    emit(
        logger,
        "Attachment upload timed out while waiting for the composer to become ready.",
        level=logging.WARNING,
        log=_LOGGER,
    )
    log_dom_failure(probe.runtime, logger, "file-upload-timeout")
    raise AttachmentTimeoutError(
        tool="upload_attachment",
        action="wait_completion",
        reason="Attachments did not finish uploading before timeout",
        suggestion="Large files need a longer timeout; check the composer for an upload error",
        details={"expected": expected},
        phase="completion",
        timeout=float(timeout),
    )
