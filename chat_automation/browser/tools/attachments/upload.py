"""
Attachment upload into the chat composer.

Provides:
- upload_attachment_file: prime -> tag -> set files -> confirm the composer took it
- upload_attachments: the same for several files, strictly one after another
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..base import AttachmentError, AttachmentTimeoutError, Logger, LocatorError, attempt, emit
from ..diagnostics import log_dom_failure
from .confirm import wait_for_attachment_anchored, wait_for_attachment_visible
from .dispatch import dispatch_upload
from .locator import attachment_present, locate_upload_target, prime_composer
from .names import expected_basename, normalize_name
from .probe import PageProbe, ProbeSnapshot
from .selectors import SelectorConfig
from .timeouts import SYSTEM_CLOCK, AttachmentTimeouts, Clock, resolve_attachment_timeouts

_LOGGER = logging.getLogger("chat.browser.attachments")


@dataclass(frozen=True)
class Attachment:
    path: str

    @property
    def expected_name(self) -> str:
        return expected_basename(self.path)


@dataclass(frozen=True)
class PageChannels:
    """Script channel (Runtime.*) and structural channel (DOM.*); both speak `send(method, params)`."""

    runtime: Any
    dom: Any | None = None

    @classmethod
    def from_session(cls, session: Any) -> PageChannels:
        return cls(runtime=session, dom=session)


@dataclass(frozen=True)
class UploadOutcome:
    name: str
    status: str
    input_has_file: bool = False
    node_id: int | None = None


def _validate_path(attachment: Attachment) -> str:
    p = Path(attachment.path).expanduser()
    if not p.is_file():
        raise AttachmentError(
            tool="upload_attachment",
            action="validate",
            reason=f"File not found: {attachment.path}",
            suggestion="Provide a path to an existing file",
        )
    return str(p.absolute())


def _snapshot_after_dispatch(probe: PageProbe, expected_name: str, logger: Logger | None) -> bool:
    """Log what the page shows right after files were set; True when an input holds the file."""
    result = attempt(probe.upload_snapshot)
    if not result.ok or not isinstance(result.value, ProbeSnapshot):
        return False
    snap: ProbeSnapshot = result.value
    emit(
        logger,
        "Attachment snapshot after setFileInputFiles: "
        f"chips={json.dumps(list(snap.chips), ensure_ascii=False)} "
        f"inputs={json.dumps([{'files': list(files)} for files in snap.input_files], ensure_ascii=False)}",
        log=_LOGGER,
    )
    expected = normalize_name(expected_name)
    return any(expected in normalize_name(name) for name in snap.input_names)


def upload_attachment_file(
    channels: PageChannels,
    attachment: Attachment,
    logger: Logger | None = None,
    *,
    clock: Clock | None = None,
    timeouts: AttachmentTimeouts | None = None,
    selectors: SelectorConfig | None = None,
) -> UploadOutcome:
    """Attach one file to the composer and confirm the page registered it.

    Raises:
        LocatorError: no usable file input, or the DOM channel is unavailable
        AttachmentTimeoutError: the composer never acknowledged the file
    """
    if channels.dom is None:
        raise LocatorError(
            tool="upload_attachment",
            action="connect",
            reason="DOM domain unavailable while uploading attachments",
            suggestion="Pass a session that supports DOM.* commands",
        )

    clk = clock or SYSTEM_CLOCK
    t = timeouts or resolve_attachment_timeouts()
    probe = PageProbe(channels.runtime, selectors)
    expected_name = attachment.expected_name
    file_path = _validate_path(attachment)

    prime_composer(probe, clock=clk, timeouts=t)

    if attachment_present(probe, expected_name):
        emit(logger, f"Attachment already present: {expected_name}", log=_LOGGER)
        return UploadOutcome(name=expected_name, status="already-present")

    tagged = locate_upload_target(probe, logger)
    node_id = dispatch_upload(channels.dom, probe, tagged, [file_path], logger)
    input_has_file = _snapshot_after_dispatch(probe, expected_name, logger)

    if wait_for_attachment_anchored(probe, expected_name, t.ui_timeout_s, logger=logger, clock=clk, timeouts=t):
        wait_for_attachment_visible(probe, expected_name, t.ui_timeout_s, logger, clock=clk, timeouts=t)
        emit(
            logger,
            "Attachment queued (UI anchored, file input confirmed)" if input_has_file else "Attachment queued (UI anchored)",
            log=_LOGGER,
        )
        return UploadOutcome(name=expected_name, status="anchored", input_has_file=input_has_file, node_id=node_id)

    # Some composer variants only render the filename once the message is sent;
    # wait_for_user_turn_attachments covers that case after sending.
    if input_has_file:
        emit(logger, "Attachment queued (file input only; no UI chip yet)", log=_LOGGER)
        return UploadOutcome(name=expected_name, status="input-only", input_has_file=True, node_id=node_id)

    log_dom_failure(probe.runtime, logger, "file-upload-missing")
    raise AttachmentTimeoutError(
        tool="upload_attachment",
        action="wait_anchor",
        reason="Attachment did not register with the composer in time",
        suggestion="Retry the upload; if it keeps failing the composer layout may have changed",
        details={"expected": expected_name},
        phase="anchor",
        timeout=t.ui_timeout_s,
    )


def upload_attachments(
    channels: PageChannels,
    attachments: Sequence[Attachment],
    logger: Logger | None = None,
    **kwargs: Any,
) -> list[UploadOutcome]:
    """Upload attachments one at a time; the first failure aborts the rest."""
    return [upload_attachment_file(channels, attachment, logger, **kwargs) for attachment in attachments]
