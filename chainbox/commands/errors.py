"""
Error types raised while assembling and tearing down test environments.

ChainboxError
├── ConfigurationError        unknown network, bad TOML, bad log target
├── TestEnvBuilderError       build() could not finish; message is prefixed
│   ├── MissingTestConfigError, ConfigLoadError, NoNetworkError
│   ├── UnsetCleanupError, MissingRPCProviderError
│   └── StartupError          a collaborator failed; ``step`` names it
└── LogScanError              a node log line could not be classified
    └── ConcerningLogError    the scanner found what it was looking for
        ├── OneLogAtLevelError
        └── MultipleLogsAtLevelError
"""

from typing import Any, Optional


def _with_context(details: Optional[dict[str, Any]], **fields) -> dict[str, Any]:
    """Copy of ``details`` plus every field that is set."""
    merged = dict(details or {})
    merged.update({key: value for key, value in fields.items() if value is not None})
    return merged


class ChainboxError(Exception):
    """Root of the chainbox errors.

    ``code`` is a stable identifier for callers that branch on the failure;
    ``details`` holds the values that produced it.
    """

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = {"type": type(self).__name__, "message": self.message}
        if self.code:
            payload["code"] = self.code
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}" if self.code else self.message


class ConfigurationError(ChainboxError):
    """A network, log target or TOML fragment that cannot be used."""

    default_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.config_file = config_file
        super().__init__(
            message, code=code, details=_with_context(details, config_file=config_file)
        )


class TestEnvBuilderError(ChainboxError):
    """build() stopped before the environment was complete."""

    __test__ = False  # keep pytest from collecting this class

    default_code = "BUILDER_FAILED"
    prefix = "test environment builder failed"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(f"{self.prefix}: {message}", code=code, details=details)


class MissingTestConfigError(TestEnvBuilderError):
    default_code = "MISSING_TEST_CONFIG"

    def __init__(self, details: Optional[dict[str, Any]] = None):
        super().__init__("test config must be set", details=details)


class ConfigLoadError(TestEnvBuilderError):
    """The file named by TEST_ENV_CONFIG_PATH is unreadable or malformed."""

    default_code = "CONFIG_LOAD_FAILED"

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.config_file = config_file
        super().__init__(message, details=_with_context(details, config_file=config_file))


class NoNetworkError(TestEnvBuilderError):
    """A chain or the mock adapter needs the container network and there is none."""

    default_code = "NO_NETWORK"

    def __init__(self, component: str, details: Optional[dict[str, Any]] = None):
        self.component = component
        super().__init__(
            f"cannot start {component} without a network",
            details=_with_context(details, component=component),
        )


class UnsetCleanupError(TestEnvBuilderError):
    """No cleanup mode was chosen.

    ``env`` is the environment as far as it got, so the caller can still
    tear it down.
    """

    default_code = "UNSET_CLEANUP"

    def __init__(self, env: Any = None, details: Optional[dict[str, Any]] = None):
        self.env = env
        super().__init__(
            "explicit cleanup type must be set when building test environment",
            details=details,
        )


class MissingRPCProviderError(TestEnvBuilderError):
    default_code = "MISSING_RPC_PROVIDER"

    def __init__(self, chain_id: int, details: Optional[dict[str, Any]] = None):
        self.chain_id = chain_id
        super().__init__(
            f"rpc provider for chain {chain_id} not found",
            details=_with_context(details, chain_id=chain_id),
        )


class StartupError(TestEnvBuilderError):
    """Wraps the exception of a collaborator that failed during build()."""

    default_code = "STARTUP_FAILED"

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.step = step
        super().__init__(message, details=_with_context(details, step=step))


class LogScanError(ChainboxError):
    default_code = "LOG_SCAN_FAILED"


class ConcerningLogError(LogScanError):
    """The scanner's finding: concerning lines reached the threshold.

    Caught by the teardown, which fails the test; it is not a scanner fault.
    """

    def __init__(
        self,
        message: str,
        level: Any = None,
        log_line: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.level = level
        self.log_line = log_line
        super().__init__(
            message,
            code=code,
            details=_with_context(
                None, level=str(level) if level is not None else None, log_line=log_line
            ),
        )


class OneLogAtLevelError(ConcerningLogError):
    def __init__(self, level: Any, log_line: str):
        super().__init__(
            f"found log at level {level}: {log_line}",
            level=level,
            log_line=log_line,
            code="ONE_LOG_AT_LEVEL",
        )


class MultipleLogsAtLevelError(ConcerningLogError):
    def __init__(self, level: Any, threshold: int, log_line: str):
        self.threshold = threshold
        super().__init__(
            f"found too many logs at level {level} or above; "
            f"threshold of {threshold} reached; last error found: {log_line}",
            level=level,
            log_line=log_line,
            code="MULTIPLE_LOGS_AT_LEVEL",
        )
