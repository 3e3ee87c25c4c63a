"""Tests for per-line log classification."""

import json
from unittest.mock import MagicMock

import pytest

from chainbox.commands.errors import (
    ConcerningLogError,
    LogScanError,
    MultipleLogsAtLevelError,
    OneLogAtLevelError,
)
from chainbox.testenv.log_scanner import AllowedLogMessage, LogLevel, scan_log_line


def line(level, msg="something happened"):
    return json.dumps({"level": level, "msg": msg, "ts": 1700000000.0})


def scan(log_line, failing_level=LogLevel.DPANIC, found=0, threshold=1, allowed=None, logger=None):
    return scan_log_line(
        logger or MagicMock(),
        log_line,
        failing_level,
        found,
        threshold,
        allowed or [],
    )


class TestLogLevel:
    def test_ordering(self):
        assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARN < LogLevel.ERROR
        assert LogLevel.ERROR < LogLevel.DPANIC < LogLevel.PANIC < LogLevel.FATAL

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("debug", LogLevel.DEBUG),
            ("INFO", LogLevel.INFO),
            ("warn", LogLevel.WARN),
            ("warning", LogLevel.WARN),
            ("dpanic", LogLevel.DPANIC),
            ("crit", LogLevel.FATAL),
            (" fatal ", LogLevel.FATAL),
        ],
    )
    def test_parse(self, raw, expected):
        assert LogLevel.parse(raw) == expected

    def test_parse_unknown(self):
        with pytest.raises(LogScanError, match="unrecognized log level"):
            LogLevel.parse("loud")

    def test_str_is_lowercase_name(self):
        assert str(LogLevel.DPANIC) == "dpanic"


def test_non_json_line_is_ignored():
    assert scan("goroutine 1 [running]:", found=2, threshold=5) == 2


def test_json_that_is_not_an_object_is_ignored():
    assert scan("[1, 2, 3]") == 0


def test_missing_level_raises_scan_error():
    with pytest.raises(LogScanError, match="found no log level"):
        scan(json.dumps({"msg": "no level"}))


def test_below_failing_level_is_ignored():
    assert scan(line("error"), failing_level=LogLevel.DPANIC) == 0


def test_single_log_at_threshold_one():
    with pytest.raises(OneLogAtLevelError) as exc_info:
        scan(line("panic", "boom"))

    assert exc_info.value.level == LogLevel.DPANIC
    assert "boom" in exc_info.value.log_line
    assert "found log at level dpanic" in str(exc_info.value)


def test_counts_until_threshold_reached():
    found = scan(line("error"), failing_level=LogLevel.ERROR, threshold=3)
    found = scan(line("error"), failing_level=LogLevel.ERROR, found=found, threshold=3)
    assert found == 2

    with pytest.raises(MultipleLogsAtLevelError) as exc_info:
        scan(line("fatal", "last"), failing_level=LogLevel.ERROR, found=found, threshold=3)

    assert exc_info.value.threshold == 3
    assert "threshold of 3 reached" in str(exc_info.value)
    assert isinstance(exc_info.value, ConcerningLogError)


def test_allowed_message_at_same_level_is_ignored():
    allowed = [AllowedLogMessage("Error stopping job service", "known", LogLevel.DPANIC)]

    found = scan(line("dpanic", "Error stopping job service: context canceled"), allowed=allowed)

    assert found == 0


def test_allowed_message_at_other_level_still_counts():
    allowed = [AllowedLogMessage("Failed to get LINK balance", "harmless", LogLevel.ERROR)]

    with pytest.raises(OneLogAtLevelError):
        scan(line("panic", "Failed to get LINK balance"), allowed=allowed)


def test_allowed_message_announced_when_requested():
    logger = MagicMock()
    allowed = [
        AllowedLogMessage("flaky peer", "network noise", LogLevel.ERROR, warn_if_found=True)
    ]

    found = scan(
        line("error", "flaky peer disconnected"),
        failing_level=LogLevel.ERROR,
        allowed=allowed,
        logger=logger,
    )

    assert found == 0
    logger.warning.assert_called_once()
    assert logger.warning.call_args.kwargs["reason"] == "network noise"


def test_allowed_message_silent_by_default():
    logger = MagicMock()
    allowed = [AllowedLogMessage("flaky peer", "network noise", LogLevel.ERROR)]

    scan(line("error", "flaky peer"), failing_level=LogLevel.ERROR, allowed=allowed, logger=logger)

    logger.warning.assert_not_called()
