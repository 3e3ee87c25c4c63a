"""
Classify node log lines as benign or concerning.

Nodes emit one JSON object per line with at least "level" and "msg" keys.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from chainbox.commands.errors import (
    LogScanError,
    MultipleLogsAtLevelError,
    OneLogAtLevelError,
)


class LogLevel(IntEnum):
    """Node log severities, ordered from least to most severe."""

    DEBUG = -1
    INFO = 0
    WARN = 1
    ERROR = 2
    DPANIC = 3
    PANIC = 4
    FATAL = 5

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str) -> "LogLevel":
        name = value.strip().upper()
        if name == "CRIT":
            name = "FATAL"
        elif name == "WARNING":
            name = "WARN"
        try:
            return cls[name]
        except KeyError:
            raise LogScanError(f"unrecognized log level: {value}") from None


@dataclass(frozen=True)
class AllowedLogMessage:
    """A message that is expected at a given level and must not fail the test.

    Args:
        message: Substring matched against the log line's "msg".
        reason: Why the message is harmless.
        level: The level at which the message is tolerated.
        warn_if_found: Announce the match when it is encountered.
    """

    message: str
    reason: str
    level: LogLevel
    warn_if_found: bool = False


def scan_log_line(
    logger: Any,
    log_line: str,
    failing_level: LogLevel,
    found_so_far: int,
    threshold: int,
    allowed_messages: list[AllowedLogMessage],
) -> int:
    """Scan one log line and return the updated count of concerning logs.

    Raises:
        OneLogAtLevelError: The threshold is 1 and this line reached it.
        MultipleLogsAtLevelError: The threshold (above 1) was reached.
        LogScanError: The line is JSON but carries no usable level.
    """
    try:
        entry = json.loads(log_line)
    except json.JSONDecodeError:
        # Multi-line messages (stack traces, %+v dumps) are not JSON
        return found_so_far
    if not isinstance(entry, dict):
        return found_so_far

    raw_level = entry.get("level")
    if not isinstance(raw_level, str):
        raise LogScanError(f"found no log level in node log line: {log_line}")
    level = LogLevel.parse(raw_level)

    if level < failing_level:
        return found_so_far

    msg = str(entry.get("msg", ""))
    for allowed in allowed_messages:
        if allowed.level == level and allowed.message in msg:
            if allowed.warn_if_found:
                logger.warning(
                    "Found allowed log message, ignoring",
                    reason=allowed.reason,
                    level=level,
                    msg=msg,
                )
            return found_so_far

    found_so_far += 1
    if found_so_far >= threshold:
        if threshold == 1:
            raise OneLogAtLevelError(failing_level, log_line)
        raise MultipleLogsAtLevelError(failing_level, threshold, log_line)
    return found_so_far
