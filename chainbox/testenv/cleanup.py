"""
Teardown registration for test environments.

Callbacks always run last-registered-first. A test harness that offers its own
cleanup registration (pytest finalizers, ``TestHandle.cleanup``) is used as-is;
otherwise callbacks go on a CleanupStack that the caller unwinds.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from chainbox.commands.cleanup_mixin import CleanupMixin
from chainbox.commands.constants import CleanupResult
from chainbox.commands.errors import ChainboxError
from chainbox.commands.utils import ConsoleLogger, default_logger


class CleanupMode(Enum):
    UNSET = ""
    NONE = "none"
    STANDARD = "standard"
    CUSTOM = "custom"


class CleanupStack(CleanupMixin):
    """LIFO stack of teardown callbacks, unwound at most once.

    A failing callback is logged and the remaining callbacks still run.
    """

    def __init__(
        self,
        logger: Optional[ConsoleLogger] = None,
        enable_signal_handlers: bool = False,
    ):
        self._init_teardown_guard()
        self._callbacks: list[Callable[[], None]] = []
        self.logger = logger or default_logger
        if enable_signal_handlers:
            self.install_signal_handlers()

    def __len__(self) -> int:
        return len(self._callbacks)

    def push(self, fn: Callable[[], None]) -> None:
        with self._teardown_lock:
            if self._teardown_state is not None:
                raise ChainboxError(
                    "Cannot register cleanup after the stack was unwound",
                    code="CLEANUP_CLOSED",
                )
            self._callbacks.append(fn)

    def unwind(self) -> CleanupResult:
        return self.run_teardown()

    def _teardown(self):
        while self._callbacks:
            fn = self._callbacks.pop()
            try:
                fn()
            except Exception as e:
                self.logger.error("Cleanup callback failed", error=e)


class TestHandle(ABC):
    """What the environment builder needs from the running test."""

    __test__ = False  # keep pytest from collecting this class

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the running test."""

    @abstractmethod
    def cleanup(self, fn: Callable[[], None]) -> None:
        """Register fn to run when the test ends, last registered first."""

    @abstractmethod
    def failed(self) -> bool:
        """Whether the test has failed so far."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Mark the test as failed with a message, without stopping it."""


class StackTestHandle(TestHandle):
    """TestHandle for code running outside a test framework.

    Use it as a context manager; leaving the block unwinds registered
    cleanups. An exception escaping the block marks the test as failed.
    """

    def __init__(self, name: str, logger: Optional[ConsoleLogger] = None):
        self._name = name
        self.logger = logger or ConsoleLogger(name=name)
        self.stack = CleanupStack(logger=self.logger)
        self.errors: list[str] = []
        self._failed = False

    @property
    def name(self) -> str:
        return self._name

    def cleanup(self, fn: Callable[[], None]) -> None:
        self.stack.push(fn)

    def failed(self) -> bool:
        return self._failed or bool(self.errors)

    def mark_failed(self) -> None:
        self._failed = True

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.logger.error(message)

    def close(self) -> CleanupResult:
        return self.stack.unwind()

    def __enter__(self) -> "StackTestHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.mark_failed()
        self.close()


class CleanupRegistrar:
    """Routes teardown callbacks to the test handle or to a fallback stack."""

    def __init__(
        self,
        test_handle: Optional[TestHandle] = None,
        stack: Optional[CleanupStack] = None,
    ):
        self.test_handle = test_handle
        self.stack = stack if stack is not None else CleanupStack()

    def register(self, fn: Callable[[], None]) -> None:
        if self.test_handle is not None:
            self.test_handle.cleanup(fn)
        else:
            self.stack.push(fn)
