"""
Env-config command - load and show a test environment config overlay.
"""

import sys

import click
from rich import box
from rich.markup import escape
from rich.table import Table

from chainbox.commands.constants import ENV_TEST_ENV_CONFIG_PATH
from chainbox.commands.errors import ConfigLoadError
from chainbox.commands.utils import console
from chainbox.testenv.config import load_test_env_config


@click.command(name="env-config")
@click.argument("path", required=False, envvar=ENV_TEST_ENV_CONFIG_PATH)
def env_config(path: str = None):
    """Validate a test env config file (defaults to $TEST_ENV_CONFIG_PATH)."""
    if not path:
        console.print(
            f"[red]No config path given and {ENV_TEST_ENV_CONFIG_PATH} is not set[/red]"
        )
        sys.exit(1)

    try:
        cfg = load_test_env_config(path)
    except ConfigLoadError as e:
        console.print(f"[red]✗ {escape(e.message)}[/red]")
        sys.exit(1)

    table = Table(title=f"Test Env Config: {path}", box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Networks", ", ".join(cfg.networks) or "-")
    table.add_row("Mock adapter container", cfg.mock_adapter.container_name or "-")
    table.add_row("Mock adapter imposters", cfg.mock_adapter.impostors_path or "-")
    table.add_row("Node image", cfg.node.image or "-")
    table.add_row("Node version", cfg.node.version or "-")
    table.add_row("Node containers", ", ".join(cfg.node.container_names) or "-")
    console.print(table)
    console.print("[green]✓ Test env config is valid[/green]")
