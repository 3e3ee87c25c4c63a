"""
LogStream - follow container output and fan it out to log targets.

Every connected container gets a reader thread. Lines are accepted under a
single intake lock so a LogProcessor can pause intake while it replays what
was captured for one container.
"""

import json
import os
import re
import threading
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from rich.markup import escape

from chainbox.commands.constants import (
    DEFAULT_TEST_SUMMARY_FILE,
    ENV_TEST_SUMMARY_PATH,
    LOG_READER_JOIN_TIMEOUT,
    TEST_SUMMARY_LOG_LOCATION_KEY,
)
from chainbox.commands.errors import ChainboxError, ConfigurationError
from chainbox.commands.utils import console, get_test_logger
from chainbox.testenv.config import LoggingConfig


class LogTarget(str, Enum):
    FILE = "file"
    CONSOLE = "console"


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "test"


class LogStream:
    """Collects container logs for one test.

    Args:
        test_handle: Running test, used for naming the log folder.
        logging_config: Targets and base folder.
        logger: Optional logger for stream diagnostics.
    """

    def __init__(self, test_handle: Any, logging_config: LoggingConfig, logger=None):
        self.test_name = getattr(test_handle, "name", None) or "no-test"
        self.logger = logger or get_test_logger(test_handle)
        self.targets = self._parse_targets(logging_config.log_stream.log_targets)
        folder = f"{_safe_name(self.test_name)}-{time.strftime('%Y%m%dT%H%M%S')}"
        self.log_dir = Path(logging_config.log_dir) / folder

        self._intake_lock = threading.RLock()
        self._stop = threading.Event()
        self._readers: dict[str, threading.Thread] = {}
        self._streams: dict[str, Any] = {}
        self._files: dict[str, Any] = {}
        self._shut_down = False

    @staticmethod
    def _parse_targets(raw_targets: list[str]) -> list[LogTarget]:
        targets = []
        for raw in raw_targets:
            try:
                target = LogTarget(str(raw).lower())
            except ValueError:
                raise ConfigurationError(f"Unknown log target '{raw}'") from None
            if target not in targets:
                targets.append(target)
        return targets

    def has_target(self, target: LogTarget) -> bool:
        return target in self.targets

    def container_log_path(self, container_name: str) -> Path:
        return self.log_dir / f"{_safe_name(container_name)}.log"

    def connect_container(self, container, prefix: Optional[str] = None) -> None:
        """Start following a docker container's output."""
        name = prefix or container.name
        if self._shut_down or name in self._readers:
            return
        reader = threading.Thread(
            target=self._follow,
            args=(container, name),
            name=f"logstream-{name}",
            daemon=True,
        )
        self._readers[name] = reader
        reader.start()
        self.logger.debug("Connected container to LogStream", container=name)

    def _follow(self, container, name: str) -> None:
        try:
            stream = container.logs(stream=True, follow=True)
            self._streams[name] = stream
            buffer = b""
            for chunk in stream:
                if self._stop.is_set():
                    break
                buffer += chunk
                while b"\n" in buffer:
                    raw, buffer = buffer.split(b"\n", 1)
                    self.write(name, raw.decode("utf-8", errors="replace"))
            if buffer:
                self.write(name, buffer.decode("utf-8", errors="replace"))
        except Exception as e:
            if not self._stop.is_set():
                self.logger.error("LogStream reader failed", error=e, container=name)

    def write(self, container_name: str, line: str) -> None:
        """Accept one line from a container."""
        with self._intake_lock:
            if self._shut_down:
                return
            if LogTarget.FILE in self.targets:
                self._file_for(container_name).write(line + "\n")
            if LogTarget.CONSOLE in self.targets:
                console.print(f"[dim]{escape(container_name)}[/dim] {escape(line)}")

    def _file_for(self, container_name: str):
        handle = self._files.get(container_name)
        if handle is None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handle = open(
                self.container_log_path(container_name), "a", encoding="utf-8"
            )
            self._files[container_name] = handle
        return handle

    @contextmanager
    def intake_paused(self):
        """Block new log lines while the caller reads captured output."""
        with self._intake_lock:
            for handle in self._files.values():
                handle.flush()
            yield

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def shutdown(self) -> list[str]:
        """Stop the readers and close the log files. Does nothing the second time.

        Returns:
            What could not be stopped or closed, one entry per container.
        """
        if self._shut_down:
            return []
        self._stop.set()
        problems = []
        for name, stream in list(self._streams.items()):
            close = getattr(stream, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                problems.append(f"{name}: {e}")
        for name, reader in list(self._readers.items()):
            reader.join(timeout=LOG_READER_JOIN_TIMEOUT)
            if reader.is_alive():
                problems.append(f"{name}: reader did not stop")
        self._readers.clear()
        self._streams.clear()

        with self._intake_lock:
            self._shut_down = True
            for name, handle in list(self._files.items()):
                try:
                    handle.flush()
                    handle.close()
                except OSError as e:
                    problems.append(f"{name}: {e}")
            self._files.clear()
        return problems

    def flush_and_shutdown(self) -> None:
        """Stop all readers and flush targets.

        Raises:
            ChainboxError: If any reader or file could not be closed cleanly.
        """
        problems = self.shutdown()
        if problems:
            raise ChainboxError(
                f"LogStream shutdown incomplete: {'; '.join(problems)}",
                code="LOGSTREAM_SHUTDOWN_FAILED",
            )

    def get_log_location(self) -> str:
        return str(self.log_dir.resolve())

    def print_log_targets_locations(self) -> None:
        for target in self.targets:
            if target == LogTarget.FILE:
                console.print(
                    f"[cyan]Container logs saved to: {self.get_log_location()}[/cyan]"
                )
            elif target == LogTarget.CONSOLE:
                console.print("[cyan]Container logs were printed to the console[/cyan]")

    def save_log_location_in_test_summary(self) -> None:
        """Record the log folder under this test's entry in the JSON test summary."""
        if LogTarget.FILE not in self.targets:
            return
        summary_path = Path(
            os.getenv(ENV_TEST_SUMMARY_PATH, DEFAULT_TEST_SUMMARY_FILE)
        )
        summary: dict[str, Any] = {}
        if summary_path.exists():
            try:
                summary = json.loads(summary_path.read_text(encoding="utf-8")) or {}
            except (OSError, json.JSONDecodeError) as e:
                self.logger.warning(
                    "Could not read test summary, overwriting it",
                    path=summary_path,
                    error=e,
                )
                summary = {}
        entry = summary.setdefault(self.test_name, {})
        entry[TEST_SUMMARY_LOG_LOCATION_KEY] = self.get_log_location()
        summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")


class LogProcessor:
    """Replays one container's captured lines through a classifier.

    The accumulator starts at ``initial`` and is threaded through every call of
    ``process_fn(line, accumulator) -> accumulator``.
    """

    def __init__(self, log_stream: LogStream, initial: Any = 0):
        self.log_stream = log_stream
        self.initial = initial

    def process_container_logs(
        self, container_name: str, process_fn: Callable[[str, Any], Any]
    ) -> Any:
        if not self.log_stream.has_target(LogTarget.FILE):
            raise ChainboxError(
                "log processing requires the file log target",
                code="FILE_TARGET_REQUIRED",
            )
        # Holding the intake lock for the whole replay; callers must not
        # process several containers in parallel.
        with self.log_stream.intake_paused():
            accumulator = self.initial
            path = self.log_stream.container_log_path(container_name)
            if not path.exists():
                return accumulator
            with open(path, encoding="utf-8") as f:
                for line in f:
                    accumulator = process_fn(line.rstrip("\n"), accumulator)
            return accumulator
