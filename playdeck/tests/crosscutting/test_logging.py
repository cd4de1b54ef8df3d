import json
import logging
import tempfile
from pathlib import Path

from playdeck.crosscutting.logging import (
    CorrelationContext, StructuredFormatter, command_var, log_error, log_with_fields,
    playlist_url_var, setup_logging,
)


def _record(message="hello", **extra):
    record = logging.LogRecord(
        name="playdeck.test", level=logging.INFO, pathname=__file__, lineno=10,
        msg=message, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class CapturingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestStructuredFormatter:
    """Tests for the JSON log formatter."""

    def setup_method(self):
        self.formatter = StructuredFormatter()

    def test_basic_entry(self):
        entry = json.loads(self.formatter.format(_record()))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "playdeck.test"
        assert entry["ts"].endswith("Z")
        assert "command" not in entry

    def test_correlation_fields(self):
        with CorrelationContext(command="next", playlist_url="p1"):
            entry = json.loads(self.formatter.format(_record()))

        assert entry["command"] == "next"
        assert entry["playlistUrl"] == "p1"

    def test_structured_fields(self):
        entry = json.loads(self.formatter.format(_record(fields={"cursor": 2})))

        assert entry["fields"] == {"cursor": 2}


class TestCorrelationContext:
    """Tests for nesting and resetting correlation values."""

    def test_nested_contexts_restore_outer_values(self):
        with CorrelationContext(command="start"):
            with CorrelationContext(playlist_url="p1"):
                assert command_var.get() == "start"
                assert playlist_url_var.get() == "p1"
            assert playlist_url_var.get() is None
            assert command_var.get() == "start"

        assert command_var.get() is None

    def test_values_reset_after_exception(self):
        try:
            with CorrelationContext(command="refresh"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert command_var.get() is None


class TestLogHelpers:
    """Tests for log_with_fields and log_error."""

    def setup_method(self):
        self.logger = logging.getLogger("playdeck.tests.helpers")
        self.logger.setLevel(logging.DEBUG)
        self.handler = CapturingHandler()
        self.logger.addHandler(self.handler)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)

    def test_log_with_fields_merges_kwargs(self):
        log_with_fields(self.logger, "INFO", "Playlist refreshed", {"cursor": 1}, track_count=3)

        record = self.handler.records[-1]
        assert record.levelno == logging.INFO
        assert record.fields == {"cursor": 1, "track_count": 3}

    def test_log_error_records_exception(self):
        try:
            raise ValueError("bad cursor")
        except ValueError as e:
            log_error(self.logger, "Command failed", e, command="next")

        record = self.handler.records[-1]
        assert record.levelno == logging.ERROR
        assert record.fields["error_type"] == "ValueError"
        assert record.fields["error_message"] == "bad cursor"
        assert record.fields["command"] == "next"
        assert record.exc_info[0] is ValueError


def test_setup_logging_writes_json_to_file():
    log_file = Path(tempfile.mkdtemp()) / "playdeck.log"

    logger = setup_logging("DEBUG", str(log_file))
    try:
        logger.info("started")
        for handler in logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert entry["message"] == "started"
        assert logger.level == logging.DEBUG
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True
