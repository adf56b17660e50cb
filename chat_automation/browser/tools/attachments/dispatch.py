"""
Upload dispatcher.

Resolves the tagged input through the DOM domain (a lookup path independent of
the script that tagged it), sets the files by nodeId, then fires the bubbling
input/change events that composer frameworks listen for.
"""

from __future__ import annotations

from contextlib import suppress
from typing import Any

from ...http_client import HttpClientError
from ..base import Logger, LocatorError
from ..diagnostics import dom_failure_on_error, log_dom_failure
from .locator import TaggedInput
from .probe import PageProbe


def _enable_dom(dom: Any) -> None:
    with suppress(Exception):
        enable_dom = getattr(dom, "enable_dom", None)
        if callable(enable_dom):
            enable_dom()
        else:
            dom.send("DOM.enable", {})


def resolve_tagged_node(dom: Any, tagged: TaggedInput) -> int:
    """nodeId of the tagged input, or 0 when the tag is gone."""
    doc = dom.send("DOM.getDocument", {})
    root = doc.get("root") if isinstance(doc, dict) else None
    root_id = root.get("nodeId") if isinstance(root, dict) else None
    if not isinstance(root_id, int):
        raise HttpClientError("DOM.getDocument returned no root nodeId")
    node = dom.send("DOM.querySelector", {"nodeId": root_id, "selector": tagged.selector})
    node_id = node.get("nodeId", 0) if isinstance(node, dict) else 0
    return node_id if isinstance(node_id, int) else 0


def dispatch_upload(
    dom: Any,
    probe: PageProbe,
    tagged: TaggedInput,
    files: list[str],
    logger: Logger | None = None,
) -> int:
    """Assign `files` to the tagged input and notify the page. Returns the nodeId used."""
    _enable_dom(dom)

    try:
        node_id = resolve_tagged_node(dom, tagged)
    except HttpClientError as exc:
        # The page may have re-rendered and dropped the tag between locate and dispatch.
        log_dom_failure(probe.runtime, logger, "file-input-missing")
        raise LocatorError(
            tool="upload_attachment",
            action="resolve",
            reason=f"Tagged file input could not be resolved: {exc}",
            suggestion="Retry the upload; the composer re-rendered while the input was being resolved",
            details={"selector": tagged.selector},
        ) from exc

    if not node_id:
        log_dom_failure(probe.runtime, logger, "file-input-missing")
        raise LocatorError(
            tool="upload_attachment",
            action="resolve",
            reason="Unable to locate the composer file attachment input",
            suggestion="Retry the upload; the tagged input disappeared before files could be set",
            details={"selector": tagged.selector},
        )

    with dom_failure_on_error(probe.runtime, logger, "file-upload-missing"):
        dom.send("DOM.setFileInputFiles", {"nodeId": node_id, "files": list(files)})
        probe.dispatch_change_events(tagged.selector)
    return node_id
