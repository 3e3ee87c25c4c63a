"""
Console output helpers shared across chainbox.

Output goes through a rich Console using the same colour conventions
everywhere: cyan for progress, green for success, yellow for warnings and
red for errors.
"""

import os
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape

from chainbox.commands.constants import ENV_DEBUG

console = Console()


def _format_fields(fields: dict[str, Any]) -> str:
    if not fields:
        return ""
    parts = [f"{key}={value}" for key, value in fields.items()]
    return " " + escape(" ".join(parts))


class ConsoleLogger:
    """Leveled logger writing rich markup lines to a console.

    Args:
        name: Optional prefix shown in front of every line (usually a test name).
        out: Console to write to. Defaults to the package console.
        debug_enabled: Show debug lines. Defaults to the CHAINBOX_DEBUG variable.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        out: Optional[Console] = None,
        debug_enabled: Optional[bool] = None,
    ):
        self.name = name
        self.console = out or console
        if debug_enabled is None:
            debug_enabled = os.getenv(ENV_DEBUG, "0") == "1"
        self.debug_enabled = debug_enabled

    def _emit(self, style: str, marker: str, msg: str, fields: dict[str, Any]):
        prefix = escape(f"[{self.name}] ") if self.name else ""
        self.console.print(
            f"[{style}]{marker}{prefix}{escape(msg)}{_format_fields(fields)}[/{style}]"
        )

    def debug(self, msg: str, **fields: Any) -> None:
        if self.debug_enabled:
            self._emit("dim", "", msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit("cyan", "", msg, fields)

    def success(self, msg: str, **fields: Any) -> None:
        self._emit("green", "✓ ", msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit("yellow", "⚠️  ", msg, fields)

    def error(self, msg: str, error: Optional[BaseException] = None, **fields: Any) -> None:
        if error is not None:
            fields = {**fields, "error": error}
        self._emit("red", "✗ ", msg, fields)


# Used whenever no test instance was provided
default_logger = ConsoleLogger()


def get_test_logger(test_handle: Any = None) -> ConsoleLogger:
    """Return a logger scoped to the given test, or the package default."""
    if test_handle is None:
        return default_logger
    return ConsoleLogger(name=getattr(test_handle, "name", None))


def get_absolute_folder_path(folder: str) -> str:
    """Resolve a folder relative to the working directory.

    Raises:
        FileNotFoundError: If the folder does not exist.
    """
    path = Path(folder).resolve()
    if not path.is_dir():
        raise FileNotFoundError(f"Folder not found: {path}")
    return str(path)
