"""
CDP session layer for driving a chat tab.

Architecture:
- CdpConnection: low-level WebSocket connection to one page target
- BrowserSession: domain enabling + JS evaluation on top of a connection
- connect_session(): discover the chat tab via the DevTools HTTP endpoint

Both classes expose `send(method, params)`, which is the only surface the
attachment tools rely on for Runtime.* and DOM.* calls.
"""

from __future__ import annotations

import json
import logging
import socket
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import websocket

from .config import BrowserConfig
from .http_client import HttpClientError, http_get_json

_LOGGER = logging.getLogger("chat.browser.session")


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 5.0):
        self.ws = websocket.create_connection(ws_url, timeout=timeout)
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        # Events that arrive while waiting for a command response are kept, not dropped.
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 500
        self._event_sink: Callable[[dict[str, Any]], None] | None = None

    def set_event_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None:
        self._event_sink = sink

    def _push_event(self, event: dict[str, Any]) -> None:
        if not isinstance(event.get("method"), str):
            return

        sink = self._event_sink
        if sink is not None:
            with suppress(Exception):
                sink(event)

        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest queued event params for the given event name."""
        if not event_name:
            return None
        for i, ev in enumerate(self._event_queue):
            if ev.get("method") == event_name:
                self._event_queue.pop(i)
                params = ev.get("params")
                return params if isinstance(params, dict) else {}
        return None

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        try:
            with suppress(Exception):
                self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
            self.ws.send(json.dumps(msg))
        except Exception as exc:  # noqa: BLE001
            raise HttpClientError(str(exc)) from exc

        return self._recv_until(msg_id)

    def send_many(self, commands: list[dict[str, Any]], *, stop_on_error: bool = True) -> list[dict[str, Any]]:
        """Send multiple CDP commands sequentially."""
        out: list[dict[str, Any]] = []
        for i, cmd in enumerate(commands):
            method = cmd.get("method")
            if not isinstance(method, str) or not method.strip():
                if stop_on_error:
                    raise HttpClientError("send_many: each command must include a non-empty 'method'")
                out.append({"ok": False, "error": "missing method", "index": i})
                continue
            params = cmd.get("params") if isinstance(cmd.get("params"), dict) else None
            try:
                out.append(self.send(method, params))
            except Exception as exc:  # noqa: BLE001
                if stop_on_error:
                    raise
                out.append({"ok": False, "error": str(exc), "method": method})
        return out

    def _recv_until(self, expected_id: int) -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.time() + self.timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise HttpClientError("CDP response timed out")

            # recv() blocks forever without a socket timeout; keep it short to honour the deadline.
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                msg = str(exc).lower()
                if isinstance(exc, TimeoutError) or "timed out" in msg:
                    continue
                raise HttpClientError(str(exc)) from exc

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue

            if isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data:
                self._push_event(data)
                continue

            if isinstance(data, dict) and data.get("id") == expected_id:
                if "error" in data:
                    raise HttpClientError(str(data["error"]))
                return data.get("result", {})

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict | None:
        """Wait for specific CDP event."""
        queued = self.pop_event(event_name)
        if queued is not None:
            return queued

        deadline = time.time() + timeout
        while time.time() < deadline:
            remaining = deadline - time.time()
            if remaining <= 0:
                break
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                msg = str(exc).lower()
                if isinstance(exc, TimeoutError) or "timed out" in msg:
                    continue
                raise HttpClientError(str(exc)) from exc

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue

            if isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data:
                if data.get("method") == event_name:
                    params = data.get("params")
                    return params if isinstance(params, dict) else {}
                self._push_event(data)
        return None

    def close(self) -> None:
        """Close the WebSocket connection.

        Shuts the raw socket down instead of a close handshake, which can hang on a
        wedged page.
        """
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(Exception):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(Exception):
                sock.close()


class BrowserSession:
    """
    High-level browser session for a specific tab.

    Wraps CdpConnection with domain caching and JS evaluation.
    Use as context manager for automatic cleanup.
    """

    def __init__(self, connection: CdpConnection, tab_id: str, tab_url: str = ""):
        self.conn = connection
        self.tab_id = tab_id
        self.tab_url = tab_url
        self._runtime_enabled = False
        self._dom_enabled = False

    def __enter__(self) -> BrowserSession:
        return self

    def __exit__(self, *args):
        self.close()

    def close(self):
        self.conn.close()

    def enable_runtime(self) -> None:
        """Enable Runtime domain for JS evaluation."""
        self.enable_domains(runtime=True)

    def enable_dom(self) -> None:
        """Enable DOM domain (needed for DOM.querySelector/setFileInputFiles)."""
        self.enable_domains(dom=True)

    def enable_domains(self, *, runtime: bool = False, dom: bool = False, strict: bool = True) -> None:
        """Enable CDP domains once per session (idempotent, batched)."""
        cmds: list[dict[str, Any]] = []
        flags: list[str] = []
        if runtime and not self._runtime_enabled:
            cmds.append({"method": "Runtime.enable", "params": {}})
            flags.append("runtime")
        if dom and not self._dom_enabled:
            cmds.append({"method": "DOM.enable", "params": {}})
            flags.append("dom")
        if not cmds:
            return

        failures: list[tuple[str, str]] = []
        for cmd, flag in zip(cmds, flags, strict=True):
            try:
                self.conn.send(cmd["method"], cmd.get("params"))
            except Exception as exc:  # noqa: BLE001
                failures.append((cmd["method"], str(exc)))
                continue
            if flag == "runtime":
                self._runtime_enabled = True
            elif flag == "dom":
                self._dom_enabled = True

        if strict and failures:
            details = "; ".join(f"{m}: {err}" for m, err in failures)
            raise HttpClientError(f"Failed to enable CDP domain(s): {details}")

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send raw CDP command."""
        return self.conn.send(method, params)

    def send_many(self, commands: list[dict[str, Any]], *, stop_on_error: bool = True) -> list[dict[str, Any]]:
        return self.conn.send_many(commands, stop_on_error=stop_on_error)

    def eval_js(self, expression: str, *, timeout: float | None = None) -> Any:
        """Evaluate JavaScript and return its JSON value.

        undefined and null both come back as None. A thrown page exception raises
        HttpClientError with the exception text.
        """
        self.enable_runtime()

        old_timeout: float | None = None
        if timeout is not None:
            old_timeout = float(self.conn.timeout)
            self.conn.timeout = float(timeout)
        try:
            result = self.conn.send(
                "Runtime.evaluate",
                {
                    "expression": expression,
                    "returnByValue": True,
                    "awaitPromise": True,
                },
            )
        finally:
            if old_timeout is not None:
                self.conn.timeout = old_timeout

        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            text = details.get("text") or "page exception"
            exc = details.get("exception")
            if isinstance(exc, dict) and exc.get("description"):
                text = str(exc["description"]).splitlines()[0]
            raise HttpClientError(f"Runtime.evaluate failed: {text}")

        value = result.get("result")
        if not isinstance(value, dict):
            return None
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def get_url(self) -> str:
        return self.eval_js("window.location.href") or ""


def _pick_target(targets: Any, config: BrowserConfig) -> dict[str, Any] | None:
    if not isinstance(targets, list):
        return None
    pages = [t for t in targets if isinstance(t, dict) and t.get("type") == "page" and t.get("webSocketDebuggerUrl")]
    for target in pages:
        if config.matches_target(str(target.get("url") or "")):
            return target
    return None


def connect_session(config: BrowserConfig) -> BrowserSession:
    """Open a session on the chat tab of an already-running Chrome.

    Chrome must be started with --remote-debugging-port matching config.cdp_port.
    """
    targets = http_get_json(f"{config.http_base}/json/list", timeout=max(1.0, config.cdp_timeout))
    target = _pick_target(targets, config)
    if target is None:
        hint = config.target_url_hint or "any page"
        raise HttpClientError(f"No page target matching {hint!r} on {config.http_base}")

    ws_url = str(target["webSocketDebuggerUrl"])
    try:
        conn = CdpConnection(ws_url, timeout=config.cdp_timeout)
    except Exception as exc:  # noqa: BLE001
        raise HttpClientError(f"CDP connect failed: {exc}") from exc

    _LOGGER.info("attached to tab %s (%s)", target.get("id"), target.get("url"))
    return BrowserSession(conn, tab_id=str(target.get("id") or ""), tab_url=str(target.get("url") or ""))
