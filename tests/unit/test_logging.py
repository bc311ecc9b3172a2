from __future__ import annotations

import io
import json
import logging

import pytest

from kvquery import logging as klog
from kvquery.config import Config


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    rec = logging.LogRecord("kvquery.t", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_json_formatter_includes_context_and_extras() -> None:
    with klog.trace_scope("abc123"):
        klog.bind(cf="users")
        line = klog.JSONFormatter().format(_record(rows=3, raw_key=b"\x01\x02"))
    out = json.loads(line)
    assert out["msg"] == "hello"
    assert out["level"] == "INFO"
    assert out["trace_id"] == "abc123"
    assert out["cf"] == "users"
    assert out["rows"] == 3
    assert out["raw_key"] == "0102"


def test_trace_scope_restores_context() -> None:
    klog.clear_context()
    klog.bind(component="outer")
    with klog.trace_scope():
        assert len(klog.context()["trace_id"]) == 12
        klog.bind(component="inner")
    assert klog.context() == {"component": "outer"}
    klog.unbind("component")
    assert klog.context() == {}


def test_text_formatter() -> None:
    klog.clear_context()
    with klog.trace_scope("t1"):
        line = klog.TextFormatter().format(_record("scan done", rows=2))
    assert "| INFO  | kvquery.t | trace_id=t1 | scan done rows=2" in line


def test_configure_json(isolated_logger) -> None:
    buf = io.StringIO()
    lg = klog.configure(json=True, level="DEBUG", stream=buf, logger_name=isolated_logger)
    lg.debug("opened", extra={"uri": "memory://"})
    out = json.loads(buf.getvalue().strip())
    assert out["msg"] == "opened"
    assert out["uri"] == "memory://"


def test_configure_level_and_env_format(isolated_logger, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KVQUERY_LOG_FORMAT", "text")
    monkeypatch.setenv("KVQUERY_LOG_LEVEL", "warning")
    buf = io.StringIO()
    lg = klog.configure(stream=buf, logger_name=isolated_logger)
    lg.info("dropped")
    lg.warning("kept")
    text = buf.getvalue()
    assert "dropped" not in text
    assert "| WARNING | " in text and "kept" in text


def test_configure_file(isolated_logger, tmp_path) -> None:
    path = tmp_path / "logs" / "kvq.jsonl"
    lg = klog.configure(json=False, stream=io.StringIO(), file_path=path, logger_name=isolated_logger)
    lg.error("boom")
    for h in lg.handlers:
        h.flush()
    assert json.loads(path.read_text().splitlines()[0])["msg"] == "boom"


def test_configure_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_configure(**kw):
        seen.update(kw)
        return logging.getLogger("kvquery")

    monkeypatch.setattr(klog, "configure", fake_configure)
    klog.configure_from_config(Config(log_level="DEBUG", log_format="json"))
    assert seen == {"json": True, "level": "DEBUG"}


def test_library_is_silent_by_default() -> None:
    handlers = logging.getLogger("kvquery").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)
