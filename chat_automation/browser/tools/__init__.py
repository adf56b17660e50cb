"""
Browser automation tools for the chat composer.

- base: structured errors, best-effort attempts, progress logging
- diagnostics: DOM failure capture
- attachments: attachment upload and confirmation
"""

from .base import (
    Attempt,
    AttachmentError,
    AttachmentTimeoutError,
    LocatorError,
    SmartToolError,
    attempt,
    emit,
)
from .diagnostics import capture_dom_state, dom_failure_on_error, log_dom_failure
from .attachments import (
    Attachment,
    PageChannels,
    upload_attachment_file,
    upload_attachments,
    wait_for_attachment_completion,
    wait_for_attachment_visible,
    wait_for_user_turn_attachments,
)

__all__ = [
    "Attachment",
    "AttachmentError",
    "AttachmentTimeoutError",
    "Attempt",
    "LocatorError",
    "PageChannels",
    "SmartToolError",
    "attempt",
    "capture_dom_state",
    "dom_failure_on_error",
    "emit",
    "log_dom_failure",
    "upload_attachment_file",
    "upload_attachments",
    "wait_for_attachment_completion",
    "wait_for_attachment_visible",
    "wait_for_user_turn_attachments",
]
