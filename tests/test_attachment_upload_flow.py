from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from chat_automation.browser.http_client import HttpClientError
from chat_automation.browser.tools.attachments import (
    Attachment,
    PageChannels,
    upload_attachment_file,
    upload_attachments,
)
from chat_automation.browser.tools.attachments.timeouts import DEFAULT_TIMEOUTS
from chat_automation.browser.tools.base import AttachmentError, AttachmentTimeoutError, LocatorError

FAST = replace(DEFAULT_TIMEOUTS, ui_timeout_s=1.0)


@pytest.fixture
def report(tmp_path: Path) -> Attachment:
    path = tmp_path / "quarterly-report.xlsx"
    path.write_bytes(b"PK\x03\x04")
    return Attachment(str(path))


def _composer(page, *, tagged: bool = True) -> None:  # noqa: ANN001
    page.on("composer-plus", True)
    page.on("upload-menu", True)
    page.on("presence", {"chips": [], "cards": [], "inputs": []})
    page.on("file-inputs", ["image/*", ""] if tagged else [])
    page.on("tag-input", {"tagged": True, "inputs": 2, "index": 1, "taggedCount": 1})
    page.on("dispatch-events", True)
    page.on("anchor", [])
    page.on("visible", {"attachments": [], "cards": []})
    page.on("upload-snapshot", {"chips": [], "inputs": [{"files": []}]})


def test_page_without_file_input_fails_before_setting_files(page, clock, report, logger, log_lines) -> None:  # noqa: ANN001
    _composer(page, tagged=False)

    with pytest.raises(LocatorError) as exc_info:
        upload_attachment_file(PageChannels(page, page), report, logger, clock=clock, timeouts=FAST)

    assert "Unable to locate the composer file attachment input" in str(exc_info.value)
    assert "DOM.setFileInputFiles" not in page.methods()
    assert any("DOM failure [file-input-missing]" in line for line in log_lines)


def test_chip_with_exact_name_anchors_upload(page, clock, report, logger, log_lines) -> None:  # noqa: ANN001
    _composer(page)
    page.on("upload-snapshot", {"chips": [], "inputs": [{"files": ["quarterly-report.xlsx"]}]})
    page.on_sequence("anchor", [[], [], ["Remove file quarterly-report.xlsx"]])
    page.on("visible", {"attachments": [["quarterly-report.xlsx"]], "cards": []})

    outcome = upload_attachment_file(PageChannels(page, page), report, logger, clock=clock, timeouts=FAST)

    assert outcome.status == "anchored"
    assert outcome.name == "quarterly-report.xlsx"
    assert outcome.input_has_file is True
    assert outcome.node_id == 42
    assert "Attachment queued (UI anchored, file input confirmed)" in log_lines

    set_call = next(params for method, params in page.calls if method == "DOM.setFileInputFiles")
    assert set_call == {"nodeId": 42, "files": [str(Path(report.path).absolute())]}
    assert any(line.startswith("Attachment snapshot after setFileInputFiles:") for line in log_lines)


def test_input_only_evidence_is_accepted_without_a_chip(page, clock, report, logger, log_lines) -> None:  # noqa: ANN001
    _composer(page)
    page.on("upload-snapshot", {"chips": [], "inputs": [{"files": ["Quarterly-Report.xlsx"]}]})

    outcome = upload_attachment_file(PageChannels(page, page), report, logger, clock=clock, timeouts=FAST)

    assert outcome.status == "input-only"
    assert outcome.input_has_file is True
    assert "Attachment queued (file input only; no UI chip yet)" in log_lines
    assert page.count("visible") == 0


def test_already_attached_file_is_not_uploaded_twice(page, clock, report, logger, log_lines) -> None:  # noqa: ANN001
    _composer(page)
    page.on("presence", {"chips": ["quarterly-report.xlsx 12 KB"], "cards": [], "inputs": []})

    outcome = upload_attachment_file(PageChannels(page, page), report, logger, clock=clock, timeouts=FAST)

    assert outcome.status == "already-present"
    assert "Attachment already present: quarterly-report.xlsx" in log_lines
    assert page.count("tag-input") == 0
    assert "DOM.setFileInputFiles" not in page.methods()


def test_missing_dom_channel_is_a_locator_error(page, report) -> None:  # noqa: ANN001
    with pytest.raises(LocatorError, match="DOM domain unavailable"):
        upload_attachment_file(PageChannels(page, None), report)
    assert page.calls == []


def test_missing_file_is_rejected_before_touching_the_page(page, clock, tmp_path) -> None:  # noqa: ANN001
    with pytest.raises(AttachmentError) as exc_info:
        upload_attachment_file(PageChannels(page, page), Attachment(str(tmp_path / "nope.pdf")), clock=clock)
    assert exc_info.value.to_dict()["action"] == "validate"
    assert page.calls == []


def test_no_acknowledgement_at_all_times_out_in_anchor_phase(page, clock, report, logger, log_lines) -> None:  # noqa: ANN001
    _composer(page)

    with pytest.raises(AttachmentTimeoutError) as exc_info:
        upload_attachment_file(PageChannels(page, page), report, logger, clock=clock, timeouts=FAST)

    err = exc_info.value
    assert err.phase == "anchor"
    assert err.timeout == FAST.ui_timeout_s
    assert "did not register with the composer" in str(err)
    assert "DOM.setFileInputFiles" in page.methods()
    assert any("DOM failure [file-upload-missing]" in line for line in log_lines)


def test_prime_failures_do_not_stop_the_upload(page, clock, report) -> None:  # noqa: ANN001
    _composer(page)
    page.on("composer-plus", RuntimeError("menu went away"))
    page.on("upload-menu", False)
    page.on("upload-snapshot", {"chips": [], "inputs": [{"files": ["quarterly-report.xlsx"]}]})

    outcome = upload_attachment_file(PageChannels.from_session(page), report, clock=clock, timeouts=FAST)
    assert outcome.status == "input-only"


def test_upload_attachments_runs_files_one_after_another(page, clock, tmp_path) -> None:  # noqa: ANN001
    first = tmp_path / "alpha-notes.txt"
    second = tmp_path / "beta-sheet.csv"
    first.write_text("a", encoding="utf-8")
    second.write_text("b", encoding="utf-8")

    _composer(page)
    page.on_sequence(
        "upload-snapshot",
        [
            {"chips": [], "inputs": [{"files": ["alpha-notes.txt"]}]},
            {"chips": [], "inputs": [{"files": ["beta-sheet.csv"]}]},
        ],
    )

    outcomes = upload_attachments(
        PageChannels(page, page),
        [Attachment(str(first)), Attachment(str(second))],
        clock=clock,
        timeouts=FAST,
    )

    assert [o.name for o in outcomes] == ["alpha-notes.txt", "beta-sheet.csv"]
    set_calls = [params["files"] for method, params in page.calls if method == "DOM.setFileInputFiles"]
    assert set_calls == [[str(first.absolute())], [str(second.absolute())]]


def test_upload_attachments_stops_at_first_failure(page, clock, tmp_path) -> None:  # noqa: ANN001
    present = tmp_path / "alpha-notes.txt"
    present.write_text("a", encoding="utf-8")

    _composer(page)
    with pytest.raises(AttachmentError):
        upload_attachments(
            PageChannels(page, page),
            [Attachment(str(tmp_path / "missing.txt")), Attachment(str(present))],
            clock=clock,
            timeouts=FAST,
        )
    assert "DOM.setFileInputFiles" not in page.methods()


def test_timeouts_follow_environment_when_not_passed(page, clock, report, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("CHAT_ATTACH_TIMEOUT_PROFILE", "slow")
    monkeypatch.setenv("CHAT_ATTACH_UI_TIMEOUT_S", "1")
    _composer(page)

    with pytest.raises(AttachmentTimeoutError) as exc_info:
        upload_attachment_file(PageChannels(page, page), report, clock=clock)

    assert exc_info.value.timeout == 1.0
    # Slow profile: 0.5 s settles around the menu, 0.3 s anchor polls.
    assert clock.sleeps[:2] == [0.5, 0.5]
    assert set(clock.sleeps[2:]) == {0.3}
    assert 1.0 <= clock.now() - 1.0 <= 1.3 + 1e-9


def test_transport_error_while_polling_captures_page_state(page, clock, report, logger, log_lines) -> None:  # noqa: ANN001
    _composer(page)
    page.on_sequence("anchor", [[], HttpClientError("WebSocket connection closed")])

    with pytest.raises(HttpClientError):
        upload_attachment_file(PageChannels(page, page), report, logger, clock=clock, timeouts=FAST)

    assert any("DOM failure [file-upload-missing]" in line for line in log_lines)
