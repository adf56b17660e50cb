from __future__ import annotations

import os
import re
from collections.abc import Callable
from typing import Any

import pytest

_PROBE_RE = re.compile(r"chat-probe:([a-z-]+)")


class FakeClock:
    """Deterministic clock: sleep() advances now() instantly."""

    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += max(0.0, seconds)


class DummyPage:
    """CDP double answering Runtime.evaluate by probe name and DOM.* by fixed ids.

    A probe answer may be a plain value, a list of per-call values (the last one
    repeats), a zero-arg callable, or an exception instance to raise.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.probes: dict[str, Any] = {}
        self.sequences: dict[str, list[Any]] = {}
        self.probe_calls: list[str] = []
        self.node_id = 42
        self.failures: dict[str, BaseException] = {}
        self.dom_state: dict[str, Any] = {"url": "https://chatgpt.com/", "inputs": [], "chips": [], "send": []}

    def on(self, name: str, answer: Any) -> DummyPage:
        self.probes[name] = answer
        return self

    def on_sequence(self, name: str, answers: list[Any]) -> DummyPage:
        self.sequences[name] = list(answers)
        return self

    def count(self, name: str) -> int:
        return self.probe_calls.count(name)

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    def _answer(self, name: str) -> Any:
        if name in self.sequences:
            seq = self.sequences[name]
            answer = seq.pop(0) if len(seq) > 1 else seq[0]
        else:
            answer = self.probes.get(name)
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            answer = answer()
        return answer

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((method, params))
        if method in self.failures:
            raise self.failures[method]
        if method == "Runtime.evaluate":
            expression = str((params or {}).get("expression") or "")
            m = _PROBE_RE.search(expression)
            if not m:
                return {"result": {"type": "object", "value": self.dom_state}}
            name = m.group(1)
            self.probe_calls.append(name)
            value = self._answer(name)
            if value is None:
                return {"result": {"type": "undefined"}}
            return {"result": {"type": "object", "value": value}}
        if method == "DOM.enable":
            return {}
        if method == "DOM.getDocument":
            return {"root": {"nodeId": 1}}
        if method == "DOM.querySelector":
            return {"nodeId": self.node_id}
        if method == "DOM.setFileInputFiles":
            return {}
        raise AssertionError(f"Unexpected CDP call: {method}")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def page() -> DummyPage:
    return DummyPage()


@pytest.fixture
def log_lines() -> list[str]:
    return []


@pytest.fixture
def logger(log_lines: list[str]) -> Callable[[str], None]:
    return log_lines.append


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key == "CHAT_BROWSER_ARTIFACT_DIR" or key.startswith("CHAT_ATTACH_"):
            monkeypatch.delenv(key, raising=False)
