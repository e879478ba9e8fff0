"""Tests for log formatting helpers."""

from __future__ import annotations

import logging

from parley import log_setup
from parley.config import AppConfig, Paths
from parley.log_setup import ExtraFormatter
from parley.logging_utils import (
    LogTag,
    format_decision,
    format_llm_log,
    format_progress,
    format_state_transition,
)


def test_format_llm_log_with_context() -> None:
    assert format_llm_log(LogTag.COMPRESS, "done", {"kept": 2}, milestone=True) == "[CMP] ✓ done (kept=2)"


def test_state_transition_abbreviates_states() -> None:
    assert format_state_transition("dispatching", "streaming", turn=3) == "[LOOP:->] ✓ disp→stre (turn=3)"


def test_decision() -> None:
    assert format_decision("cont", False, speaker="user") == "[D:] cont=N (speaker=user)"


def test_extra_formatter_appends_known_fields() -> None:
    record = logging.LogRecord("parley.test", logging.INFO, __file__, 1, "Provider request failed", None, None)
    record.model = "gemini-2.5-pro"
    record.status_code = 429
    record.unrelated = "ignored"
    rendered = ExtraFormatter("%(message)s").format(record)
    assert rendered == "Provider request failed [model=gemini-2.5-pro, status=429]"


def test_progress_marks_completion() -> None:
    assert format_progress(LogTag.LOOP_LIMIT, 3, 100) == "[LOOP:MAX] #3/100"
    assert format_progress(LogTag.LOOP_LIMIT, 100, 100) == "[LOOP:MAX] ✓ #100/100"


def test_setup_logging_writes_under_state_dir(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(log_setup, "_LOGGER", None)
    logger = logging.getLogger("parley")
    existing = list(logger.handlers)
    settings = AppConfig(paths=Paths(state_dir=tmp_path))
    try:
        configured = log_setup.setup_logging("DEBUG", settings=settings)
        assert configured is logger
        assert log_setup.setup_logging("INFO", settings=settings) is configured
        logging.getLogger("parley.test").info("hello", extra={"session_id": "abc"})
        for handler in logger.handlers:
            handler.flush()
        content = (tmp_path / "logs" / "parley.log").read_text(encoding="utf-8")
        assert "hello [session=abc]" in content
    finally:
        logger.setLevel(logging.NOTSET)
        for handler in list(logger.handlers):
            if handler not in existing:
                logger.removeHandler(handler)
                handler.close()
