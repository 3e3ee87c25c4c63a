"""
Log-scan policy: how node logs are judged once a test finishes.
"""

from dataclasses import dataclass, field
from typing import Optional

from chainbox.testenv.log_scanner import AllowedLogMessage, LogLevel

DEFAULT_ALLOWED_MESSAGES = (
    AllowedLogMessage(
        "Failed to get LINK balance",
        "Happens only when we deploy LINK token for test purposes. Harmless.",
        LogLevel.ERROR,
        warn_if_found=False,
    ),
    AllowedLogMessage(
        "Error stopping job service",
        "It's a known issue with lifecycle. There's ongoing work that will fix it.",
        LogLevel.DPANIC,
        warn_if_found=False,
    ),
)


@dataclass
class LogScanPolicy:
    """Scan threshold, failing level and allow-list.

    The all-default instance (no level, threshold 0, nothing allowed) means
    scanning is disabled.
    """

    failing_level: Optional[LogLevel] = None
    threshold: int = 0
    allowed_messages: list[AllowedLogMessage] = field(default_factory=list)

    def __post_init__(self):
        if self.threshold < 0:
            raise ValueError("threshold must be a non-negative integer")

    def is_enabled(self) -> bool:
        return not (
            self.failing_level is None
            and self.threshold == 0
            and not self.allowed_messages
        )


def default_policy() -> LogScanPolicy:
    """Fail on the first DPANIC-or-worse log that is not allow-listed."""
    return LogScanPolicy(
        failing_level=LogLevel.DPANIC,
        threshold=1,
        allowed_messages=list(DEFAULT_ALLOWED_MESSAGES),
    )


def extend_default(*extra_allowed: AllowedLogMessage) -> LogScanPolicy:
    """Default policy with additional allowed messages appended in order."""
    policy = default_policy()
    policy.allowed_messages.extend(extra_allowed)
    return policy
