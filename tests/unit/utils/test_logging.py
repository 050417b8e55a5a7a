# ABOUTME: Unit tests for structured logging utilities
# ABOUTME: Validates loguru configuration and the phase, pass and gate logging helpers

import json
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger

from phasekeeper.utils.logging import (
    DEFAULT_FORMAT,
    get_logger,
    log_gate_event,
    log_pass_event,
    log_phase_transition,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset logger state before each test"""
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for log files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def captured():
    """Collect emitted records (message + extra) in memory"""
    records = []
    logger.add(lambda message: records.append(message.record), level="DEBUG")
    return records


class TestSetupLogging:
    """Test suite for setup_logging function"""

    def test_valid_log_levels(self):
        """Test that all valid log levels are accepted"""
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            setup_logging(log_level=level, console_output=True, file_output=False)

    def test_log_level_case_insensitive(self):
        for level in ["debug", "Debug", "DeBuG"]:
            setup_logging(log_level=level, console_output=True, file_output=False)

    def test_invalid_log_level_raises_error(self):
        """Test that invalid log level raises ValueError"""
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging(log_level="INVALID")

        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging(log_level="TRACE")  # Valid in loguru but not in our API

    def test_console_output_enabled(self):
        with patch.object(logger, 'add') as mock_add:
            setup_logging(log_level="INFO", console_output=True, file_output=False)

            assert mock_add.call_args[0][0] == sys.stderr
            assert mock_add.call_args[1]['format'] == DEFAULT_FORMAT

    def test_console_output_disabled(self):
        with patch.object(logger, 'add') as mock_add:
            setup_logging(log_level="INFO", console_output=False, file_output=False)

            assert not mock_add.called

    def test_file_output_creates_dated_log(self, temp_log_dir):
        """Test that file output writes phasekeeper_<date>.log"""
        setup_logging(log_level="INFO", log_dir=temp_log_dir, console_output=False, file_output=True)

        logger.info("test message")
        logger.complete()

        log_files = list(temp_log_dir.glob("phasekeeper_*.log"))
        assert len(log_files) == 1

    def test_nested_log_directory_created(self, temp_log_dir):
        nested_dir = temp_log_dir / "nested" / "logs"

        setup_logging(log_level="INFO", log_dir=nested_dir, console_output=False, file_output=True)

        assert nested_dir.exists()

    def test_file_handler_policies(self, temp_log_dir):
        """Test that rotation, retention and compression reach the file sink"""
        with patch.object(logger, 'add') as mock_add:
            setup_logging(
                log_level="INFO",
                log_dir=temp_log_dir,
                console_output=False,
                file_output=True,
                rotation="50 MB",
                retention="7 days",
                compression="gz"
            )

            file_kwargs = mock_add.call_args[1]
            assert file_kwargs['rotation'] == "50 MB"
            assert file_kwargs['retention'] == "7 days"
            assert file_kwargs['compression'] == "gz"
            assert file_kwargs['enqueue'] is True

    def test_errors_sink_is_serialized(self, temp_log_dir):
        """Errors land in errors.jsonl with bound context, info messages do not"""
        setup_logging(log_level="INFO", log_dir=temp_log_dir, console_output=False, file_output=True)

        logger.info("routine")
        logger.bind(correlation_id="abc123").error("Internal failure")
        logger.complete()

        lines = (temp_log_dir / "errors.jsonl").read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])["record"]
        assert record["message"] == "Internal failure"
        assert record["extra"]["correlation_id"] == "abc123"

    def test_log_level_filtering(self, temp_log_dir):
        """Test that log level filtering works correctly"""
        setup_logging(log_level="WARNING", console_output=False, file_output=True, log_dir=temp_log_dir)

        logger.info("info message")
        logger.warning("warning message")
        logger.complete()

        log_content = list(temp_log_dir.glob("*.log"))[0].read_text()
        assert "info message" not in log_content
        assert "warning message" in log_content

    def test_get_logger_returns_loguru_logger(self):
        assert get_logger() is logger


class TestLogPhaseTransition:
    """Test suite for log_phase_transition"""

    def test_attaches_transition_context(self, captured):
        log_phase_transition(
            campaign_id="camp_01",
            from_phase="participant_phase",
            to_phase="director_phase",
            actor_id="user_gm",
            reason="director_transition",
            duration_ms=4.23456
        )

        record = captured[-1]
        assert record["message"] == "Phase transition: participant_phase -> director_phase"
        assert record["extra"]["campaign_id"] == "camp_01"
        assert record["extra"]["actor_id"] == "user_gm"
        assert record["extra"]["reason"] == "director_transition"
        assert record["extra"]["duration_ms"] == 4.235

    def test_duration_optional(self, captured):
        log_phase_transition("camp_01", "director_phase", "participant_phase", "user_gm", "forced_transition")

        assert "duration_ms" not in captured[-1]["extra"]


class TestLogPassEvent:
    """Test suite for log_pass_event"""

    def test_attaches_pass_context(self, captured):
        log_pass_event("camp_01", "char_zara_001", "set", hard_pass=True, source="discord")

        record = captured[-1]
        assert record["message"] == "Pass set: char_zara_001"
        assert record["extra"]["hard_pass"] is True
        assert record["extra"]["source"] == "discord"


class TestLogGateEvent:
    """Test suite for log_gate_event"""

    def test_remaining_in_seconds(self, captured):
        log_gate_event("camp_01", "paused", remaining=timedelta(hours=10))

        record = captured[-1]
        assert record["message"] == "Time gate paused"
        assert record["extra"]["remaining_seconds"] == 36000
        assert record["level"].name == "INFO"

    def test_warning_level(self, captured):
        log_gate_event("camp_01", "expired", level="warning", auto_passed=2)

        record = captured[-1]
        assert record["level"].name == "WARNING"
        assert record["extra"]["auto_passed"] == 2
        assert "remaining_seconds" not in record["extra"]

    def test_debug_level(self, captured):
        log_gate_event("camp_01", "tick", level="DEBUG")

        assert captured[-1]["level"].name == "DEBUG"
