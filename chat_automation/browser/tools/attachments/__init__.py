"""
Attachment upload for the chat composer.

- upload: upload_attachment_file / upload_attachments (entry points)
- locator: composer priming and file-input tagging
- dispatch: DOM.setFileInputFiles + input/change events
- names: filename normalization and fuzzy matching
- confirm: anchored / visible / completion waits
- verify: post-send check of the last user turn
"""

from .confirm import wait_for_attachment_anchored, wait_for_attachment_completion, wait_for_attachment_visible
from .names import MatchResult, matches_name, normalize_name
from .probe import ControlState, PageProbe, ProbeSnapshot
from .selectors import DEFAULT_SELECTORS, SelectorConfig
from .timeouts import AttachmentTimeouts, Clock, Deadline, resolve_attachment_timeouts
from .upload import Attachment, PageChannels, UploadOutcome, upload_attachment_file, upload_attachments
from .verify import wait_for_user_turn_attachments

__all__ = [
    "Attachment",
    "AttachmentTimeouts",
    "Clock",
    "ControlState",
    "DEFAULT_SELECTORS",
    "Deadline",
    "MatchResult",
    "PageChannels",
    "PageProbe",
    "ProbeSnapshot",
    "SelectorConfig",
    "UploadOutcome",
    "matches_name",
    "normalize_name",
    "resolve_attachment_timeouts",
    "upload_attachment_file",
    "upload_attachments",
    "wait_for_attachment_anchored",
    "wait_for_attachment_completion",
    "wait_for_attachment_visible",
    "wait_for_user_turn_attachments",
]
