"""Post-send check: the last user turn in the transcript names every attachment."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..base import AttachmentTimeoutError, Logger, emit
from ..diagnostics import dom_failure_on_error, log_dom_failure
from .confirm import as_probe
from .names import missing_names
from .selectors import SelectorConfig
from .timeouts import SYSTEM_CLOCK, AttachmentTimeouts, Clock, Deadline, resolve_attachment_timeouts

_LOGGER = logging.getLogger("chat.browser.attachments")


def wait_for_user_turn_attachments(
    runtime: Any,
    expected_names: Sequence[str],
    timeout: float,
    logger: Logger | None = None,
    *,
    clock: Clock | None = None,
    timeouts: AttachmentTimeouts | None = None,
    selectors: SelectorConfig | None = None,
) -> None:
    expected = [name for name in expected_names if name]
    if not expected:
        return

    probe = as_probe(runtime, selectors)
    clk = clock or SYSTEM_CLOCK
    t = timeouts or resolve_attachment_timeouts()
    deadline = Deadline.after(timeout, clk)
    missing = list(expected)

    while not deadline.expired():
        with dom_failure_on_error(probe.runtime, logger, "attachment-missing-user-turn"):
            turn = probe.last_user_turn()
        if turn is None:
            # Transcript not rendered yet.
            clk.sleep(t.user_turn_missing_poll_s)
            continue
        missing = missing_names([turn.text, *turn.attrs], expected)
        if not missing:
            _LOGGER.debug("user turn shows attachments: %s", ", ".join(expected))
            return
        clk.sleep(t.user_turn_poll_s)

    emit(logger, "Sent user message did not show expected attachment names in time.", level=logging.WARNING, log=_LOGGER)
    log_dom_failure(probe.runtime, logger, "attachment-missing-user-turn")
    raise AttachmentTimeoutError(
        tool="upload_attachment",
        action="verify_sent",
        reason="Attachment was not present on the sent user message",
        suggestion="Open the conversation and confirm the file was attached before resending",
        details={"expected": expected, "missing": missing},
        phase="user-turn",
        timeout=float(timeout),
    )
