"""
Commands module - CLI commands plus the errors, constants and Docker managers
shared by the test environment.
"""

from chainbox.commands.errors import (
    ChainboxError,
    ConcerningLogError,
    ConfigLoadError,
    ConfigurationError,
    LogScanError,
    MissingRPCProviderError,
    MissingTestConfigError,
    MultipleLogsAtLevelError,
    NoNetworkError,
    OneLogAtLevelError,
    StartupError,
    TestEnvBuilderError,
    UnsetCleanupError,
)

__all__ = [
    "ChainboxError",
    "ConfigurationError",
    "TestEnvBuilderError",
    "MissingTestConfigError",
    "ConfigLoadError",
    "NoNetworkError",
    "UnsetCleanupError",
    "MissingRPCProviderError",
    "StartupError",
    "LogScanError",
    "ConcerningLogError",
    "OneLogAtLevelError",
    "MultipleLogsAtLevelError",
]
