"""Tests for structured logging configuration."""

import json
import logging

import pytest
import structlog

from cli.logging_config import _clip_personal_text, _redact_sensitive, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


class TestLoggingConfig:
    """Test structlog setup modes."""

    def test_console_mode(self):
        """Console mode uses dev renderer."""
        setup_logging(json_mode=False, level="DEBUG")
        structlog.get_logger().info("decision.created", key="value")
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

    def test_level_filtering(self):
        """Log level filters lower messages."""
        setup_logging(json_mode=False, level="WARNING")
        root = logging.getLogger()
        assert root.level == logging.WARNING

    def test_processor_chain(self):
        setup_logging(json_mode=True, level="DEBUG")
        config = structlog.get_config()
        assert _redact_sensitive in config["processors"]

    def test_default_level_is_info(self):
        """Default level param is INFO."""
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO

    def test_noisy_loggers_quieted(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger("chromadb").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_log_file_gets_json(self, tmp_path):
        log_file = tmp_path / "logs" / "mirror.log"
        setup_logging(json_mode=False, level="INFO", log_file=log_file)
        logging.getLogger("test_file").info("file line")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text().strip().splitlines()
        assert json.loads(lines[-1])["event"] == "file line"


class TestRedaction:
    def test_anthropic_key(self):
        event = _redact_sensitive(None, None, {"event": "key sk-ant-REDACTED"})
        assert "1234567890" not in event["event"]
        assert "REDACTED" in event["event"]

    def test_email(self):
        event = _redact_sensitive(None, None, {"event": "sent to someone@example.com"})
        assert event["event"] == "sent to REDACTED@email"

    def test_non_strings_untouched(self):
        event = _redact_sensitive(None, None, {"event": "x", "count": 3})
        assert event["count"] == 3


class TestPersonalTextClipping:
    def test_long_title_clipped(self):
        event = _clip_personal_text(None, None, {"event": "decision.created", "title": "x" * 100})
        assert event["title"] == "x" * 40 + "...(+60 chars)"

    def test_short_text_untouched(self):
        event = _clip_personal_text(None, None, {"event": "fragment.indexed", "text": "short"})
        assert event["text"] == "short"

    def test_other_keys_untouched(self):
        event = _clip_personal_text(None, None, {"event": "e", "decision_id": "d" * 100})
        assert event["decision_id"] == "d" * 100

    def test_in_processor_chain(self):
        setup_logging(level="INFO")
        assert _clip_personal_text in structlog.get_config()["processors"]
