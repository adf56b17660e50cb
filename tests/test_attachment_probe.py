from __future__ import annotations

from dataclasses import replace

import pytest

from chat_automation.browser.http_client import HttpClientError
from chat_automation.browser.session import BrowserSession
from chat_automation.browser.tools.attachments.probe import ControlState, PageProbe, ProbeSnapshot
from chat_automation.browser.tools.attachments.selectors import DEFAULT_SELECTORS


def test_snapshot_from_value_parses_both_input_shapes() -> None:
    snap = ProbeSnapshot.from_value(
        {
            "state": "ready",
            "uploading": False,
            "chips": ["report.pdf", "", 3],
            "inputs": [["a.txt"], {"files": ["b.txt", ""]}, []],
        }
    )
    assert snap.control_state is ControlState.READY
    assert snap.chips == ("report.pdf",)
    assert snap.input_files == (("a.txt",), ("b.txt",), ())
    assert snap.input_names == ["a.txt", "b.txt"]
    assert snap.files_attached is True


def test_snapshot_defaults_for_garbage() -> None:
    snap = ProbeSnapshot.from_value(None)
    assert snap.control_state is ControlState.MISSING
    assert snap.uploading is False
    assert snap.files_attached is False
    assert ControlState.coerce("weird") is ControlState.MISSING


def test_probe_expressions_are_marked_and_return_by_value(page) -> None:  # noqa: ANN001
    page.on("readiness", {"state": "disabled", "uploading": True, "chips": [], "inputs": []})
    snap = PageProbe(page).readiness()
    assert snap.control_state is ControlState.DISABLED
    assert snap.uploading is True

    method, params = page.calls[-1]
    assert method == "Runtime.evaluate"
    assert params["returnByValue"] is True
    assert "chat-probe:readiness" in params["expression"]
    assert 'button[data-testid=\\"send-button\\"]' in params["expression"]


def test_selector_config_flows_into_expressions(page) -> None:  # noqa: ANN001
    selectors = replace(DEFAULT_SELECTORS, composer_plus=("#my-plus",), upload_target_attr="data-x-target")
    probe = PageProbe(page, selectors)
    page.on("composer-plus", True)
    page.on("tag-input", {"tagged": True, "inputs": 2, "index": 1, "taggedCount": 1})

    assert probe.click_composer_plus() is True
    assert "#my-plus" in page.calls[-1][1]["expression"]

    tag = probe.tag_upload_input(1)
    assert tag.tagged is True and tag.index == 1 and tag.inputs == 2 and tag.tagged_count == 1
    assert "data-x-target" in page.calls[-1][1]["expression"]
    assert selectors.tagged_input_selector == 'input[type="file"][data-x-target="true"]'


def test_probe_raises_on_page_exception() -> None:
    class ThrowingPage:
        def send(self, method: str, params=None):  # noqa: ANN001, ARG002
            return {"result": {"type": "object"}, "exceptionDetails": {"text": "Uncaught SyntaxError"}}

    with pytest.raises(HttpClientError, match="SyntaxError"):
        PageProbe(ThrowingPage()).anchor_labels()


def test_last_user_turn_none_until_rendered(page) -> None:  # noqa: ANN001
    page.on_sequence("user-turn", [{"ok": False}, {"ok": True, "text": "see file", "attrs": ["report.pdf", ""]}])
    probe = PageProbe(page)
    assert probe.last_user_turn() is None
    turn = probe.last_user_turn()
    assert turn is not None
    assert turn.text == "see file"
    assert turn.attrs == ("report.pdf",)


def test_visibility_parses_label_groups(page) -> None:  # noqa: ANN001
    page.on("visible", {"attachments": [["report.pdf", "file-chip"], []], "cards": ["report.pdf PDF"]})
    state = PageProbe(page).visibility()
    assert state.attachments == (("report.pdf", "file-chip"), ())
    assert state.cards == ("report.pdf PDF",)


def test_file_input_accepts_keeps_positions(page) -> None:  # noqa: ANN001
    page.on("file-inputs", ["image/*", "", 7])
    assert PageProbe(page).file_input_accepts() == ["image/*", "", ""]

    page.on("file-inputs", None)
    assert PageProbe(page).file_input_accepts() == []


def test_page_queries_use_session_eval_js_when_available() -> None:
    class Conn:
        def __init__(self) -> None:
            self.methods: list[str] = []

        def send(self, method: str, params=None):  # noqa: ANN001, ARG002
            self.methods.append(method)
            if method == "Runtime.evaluate":
                return {"result": {"type": "object", "value": ["", "image/*"]}}
            return {}

    conn = Conn()
    probe = PageProbe(BrowserSession(conn, tab_id="t1"))

    assert probe.file_input_accepts() == ["", "image/*"]
    assert probe.file_input_accepts() == ["", "image/*"]
    assert conn.methods == ["Runtime.enable", "Runtime.evaluate", "Runtime.evaluate"]


def test_page_queries_through_session_raise_page_exceptions() -> None:
    class Conn:
        def send(self, method: str, params=None):  # noqa: ANN001, ARG002
            if method == "Runtime.evaluate":
                return {"result": {"type": "object"}, "exceptionDetails": {"text": "Uncaught ReferenceError"}}
            return {}

    with pytest.raises(HttpClientError, match="ReferenceError"):
        PageProbe(BrowserSession(Conn(), tab_id="t1")).readiness()
