from cfpdesk.utils.logging_config import (
    LogFiles,
    Logger,
    clear_trace_id,
    get_trace_id,
    set_trace_id,
)


def _read(tmp_path, relative):
    return (tmp_path / "logs" / relative).read_text(encoding="utf-8")


def test_info_line_carries_trace_id_and_fields(tmp_path):
    set_trace_id("dispatch-abc")
    try:
        Logger.info("Tick finished", file=LogFiles.DISPATCH, sent=2, reason="all good", skipped=None)
    finally:
        clear_trace_id()

    line = _read(tmp_path, LogFiles.DISPATCH).strip()
    assert "[INFO] [dispatch-abc]" in line
    assert "test_logging_config.py:" in line
    assert line.endswith('Tick finished sent=2 reason="all good"')
    assert get_trace_id() is None


def test_errors_are_copied_to_error_file(tmp_path):
    Logger.error("Send failed", file=LogFiles.DECISIONS, email_id="e1")

    assert "Send failed email_id=e1" in _read(tmp_path, LogFiles.DECISIONS)
    assert "Send failed email_id=e1" in _read(tmp_path, LogFiles.ERROR)


def test_level_filter_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CFPDESK_LOG_LEVEL", "warning")
    Logger.close()

    Logger.info("quiet", file=LogFiles.API)
    Logger.warning("loud", file=LogFiles.API)

    text = _read(tmp_path, LogFiles.API)
    assert "quiet" not in text
    assert "[WARNING]" in text


def test_set_trace_id_generates_when_missing():
    tid = set_trace_id()
    try:
        assert tid.startswith("req-")
        assert get_trace_id() == tid
    finally:
        clear_trace_id()
