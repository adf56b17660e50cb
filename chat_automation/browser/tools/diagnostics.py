"""DOM failure capture for the chat composer.

Invoked right before a terminal attachment error is raised. Everything here is
best-effort: a broken page, a dead socket or an unwritable artifact directory
must never replace the error the caller is about to see.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..artifacts import ArtifactStore
from ..config import BrowserConfig
from ..http_client import HttpClientError
from .base import Logger, emit

_LOGGER = logging.getLogger("chat.browser.diagnostics")

DOM_FAILURE_SCRIPT = r"""
(() => {
  const clip = (s, n) => String(s || '').replace(/\s+/g, ' ').trim().slice(0, n || 200);
  const q = (sel) => { try { return Array.from(document.querySelectorAll(sel)); } catch (e) { return []; } };
  const inputs = q('input[type="file"]').map((el) => ({
    accept: el.getAttribute('accept') || '',
    files: Array.from(el.files || []).map((f) => f.name),
    tagged: Array.from(el.attributes).some((a) => a.name.endsWith('upload-target')),
  }));
  const chips = q('[data-testid*="attachment"],[data-testid*="chip"],[data-testid*="upload"],[aria-label*="Remove"]')
    .slice(0, 20)
    .map((el) => ({ testid: el.getAttribute('data-testid') || '', label: el.getAttribute('aria-label') || '', text: clip(el.innerText || el.textContent, 120) }));
  const send = q('button[data-testid="send-button"],button[aria-label*="Send"],form button[type="submit"]').slice(0, 3)
    .map((el) => ({
      testid: el.getAttribute('data-testid') || '',
      disabled: el.hasAttribute('disabled') || el.getAttribute('aria-disabled') === 'true',
      pointerEvents: window.getComputedStyle(el).pointerEvents,
    }));
  const busy = q('[aria-busy="true"],[role="progressbar"],[data-state="uploading"],[data-state="loading"]').length;
  const active = document.activeElement;
  return {
    url: location.href,
    title: document.title,
    readyState: document.readyState,
    inputs,
    chips,
    send,
    busy,
    turns: q('[data-message-author-role]').length,
    active: active ? (active.tagName + (active.id ? '#' + active.id : '')) : null,
    bodyTail: clip((document.body && document.body.innerText || '').slice(-600), 600),
  };
})()
"""


def _default_store() -> ArtifactStore | None:
    try:
        artifact_dir = BrowserConfig.from_env().artifact_dir
        return ArtifactStore(artifact_dir) if artifact_dir else None
    except Exception as exc:  # noqa: BLE001
        _LOGGER.debug("artifact store unavailable: %s", exc)
        return None


def capture_dom_state(runtime: Any) -> dict[str, Any] | None:
    """Evaluate the capture script; None when the page cannot be read."""
    try:
        result = runtime.send(
            "Runtime.evaluate",
            {"expression": DOM_FAILURE_SCRIPT, "returnByValue": True, "awaitPromise": True},
        )
    except Exception as exc:  # noqa: BLE001
        _LOGGER.debug("DOM capture failed: %s", exc)
        return None
    value = result.get("result") if isinstance(result, dict) else None
    data = value.get("value") if isinstance(value, dict) else None
    return data if isinstance(data, dict) else None


def _summary(tag: str, state: dict[str, Any] | None) -> str:
    if state is None:
        return f"DOM failure [{tag}]: page state unavailable"
    inputs = state.get("inputs") if isinstance(state.get("inputs"), list) else []
    chips = state.get("chips") if isinstance(state.get("chips"), list) else []
    send = state.get("send") if isinstance(state.get("send"), list) else []
    return (
        f"DOM failure [{tag}]: url={state.get('url')} inputs={len(inputs)} "
        f"files={json.dumps([i.get('files') for i in inputs if isinstance(i, dict)])} "
        f"chips={len(chips)} send={json.dumps(send)} busy={state.get('busy')}"
    )


def log_dom_failure(
    runtime: Any,
    logger: Logger | None,
    tag: str,
    *,
    store: ArtifactStore | None = None,
) -> dict[str, Any] | None:
    """Capture page state for postmortem under `tag`. Never raises."""
    try:
        state = capture_dom_state(runtime)
        emit(logger, _summary(tag, state), level=logging.WARNING, log=_LOGGER)
        target = store if store is not None else _default_store()
        if target is not None and state is not None:
            ref = target.put_json(kind=f"dom-failure-{tag}", obj={"tag": tag, "state": state})
            emit(logger, f"DOM failure [{tag}] saved to {ref.path}", log=_LOGGER)
        return state
    except Exception as exc:  # noqa: BLE001
        _LOGGER.debug("log_dom_failure(%s) failed: %s", tag, exc)
        return None


@contextmanager
def dom_failure_on_error(runtime: Any, logger: Logger | None, tag: str) -> Iterator[None]:
    """Capture page state under `tag` when a CDP call in the block fails, then re-raise."""
    try:
        yield
    except HttpClientError:
        log_dom_failure(runtime, logger, tag)
        raise
