"""Basic smoke tests ensuring core modules import and logging is configured."""

from __future__ import annotations

import json
import logging
from pathlib import Path


def test_import_package():
    """The chartstream top-level package should import without side-effects."""

    import chartstream  # noqa: F401 – import is the test

    assert "StreamReconciler" in chartstream.__all__


def test_configure_logging_creates_files(tmp_path: Path, monkeypatch):
    """`configure_logging()` must create both .log and .jsonl files."""

    monkeypatch.chdir(tmp_path)

    from chartstream.logging_utils import configure_logging

    log_path, json_path = configure_logging(debug=True)

    assert log_path.exists(), "Human-readable log file missing"
    assert json_path.exists(), "Structured JSONL log file missing"
    assert log_path.parent == Path("logs")

    logger = logging.getLogger("test")
    logger.info("hello from pytest", extra={"code_path": __file__, "session": "BTCUSDT"})

    with json_path.open(encoding="utf-8") as fp:
        record = json.loads(fp.readline().strip())

    assert record["msg"] == "hello from pytest"
    assert record["code_path"] == __file__
    assert record["session"] == "BTCUSDT"


def test_jsonl_records_exceptions(tmp_path: Path):
    from chartstream.logging_utils import configure_logging

    _, json_path = configure_logging(log_dir=tmp_path)
    try:
        raise RuntimeError("renderer gone")
    except RuntimeError:
        logging.getLogger("test").exception("sink failed")

    record = json.loads(json_path.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert record["exc_type"] == "RuntimeError"
    assert "renderer gone" in record["exc_trace"]
    assert record["code_path"].endswith("test_jsonl_records_exceptions")


def test_log_level_from_environment(tmp_path: Path, monkeypatch):
    from chartstream.logging_utils import TRACE_LEVEL, configure_logging

    monkeypatch.setenv("CHARTSTREAM_LOG_LEVEL", "trace")
    configure_logging(log_dir=tmp_path)
    assert logging.getLogger().level == TRACE_LEVEL

    monkeypatch.setenv("CHARTSTREAM_LOG_LEVEL", "warning")
    configure_logging(log_dir=tmp_path)
    assert logging.getLogger().level == logging.WARNING


def test_trace_decorator(capsys):
    """`@trace` should emit entry and exit lines at TRACE level (5)."""

    from chartstream.logging_utils import TRACE_LEVEL, trace

    root = logging.getLogger()
    root.handlers.clear()
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(TRACE_LEVEL)
    root.addHandler(stream_handler)
    root.setLevel(TRACE_LEVEL)

    @trace  # type: ignore[misc]
    def sample() -> str:  # noqa: D401 – fixture function
        return "ok"

    assert sample() == "ok"

    stream_handler.flush()
    captured = capsys.readouterr().err
    assert "→" in captured and "sample()" in captured
    assert "←" in captured and "sample()" in captured
