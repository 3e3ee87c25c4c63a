"""
Scan commands - inspect the log-scan allow-list and scan captured node logs.
"""

import sys

import click
from rich import box
from rich.markup import escape
from rich.table import Table

from chainbox.commands.errors import ConcerningLogError, LogScanError
from chainbox.commands.utils import ConsoleLogger, console
from chainbox.testenv.log_scanner import LogLevel, scan_log_line
from chainbox.testenv.scan_policy import default_policy

LEVEL_CHOICES = [level.name.lower() for level in LogLevel]


@click.command(name="allowed-messages")
def allowed_messages():
    """Show the default log-scan policy and its allow-list."""
    policy = default_policy()
    console.print(
        f"[cyan]Failing level: {policy.failing_level}, threshold: {policy.threshold}[/cyan]"
    )

    table = Table(title="Allowed Node Log Messages", box=box.ROUNDED)
    table.add_column("Message", style="cyan")
    table.add_column("Level", style="yellow")
    table.add_column("Announced", style="magenta")
    table.add_column("Reason", style="white")
    for allowed in policy.allowed_messages:
        table.add_row(
            allowed.message,
            str(allowed.level),
            "yes" if allowed.warn_if_found else "no",
            allowed.reason,
        )
    console.print(table)


@click.command(name="scan")
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--level",
    type=click.Choice(LEVEL_CHOICES),
    default=None,
    help="Failing log level (defaults to the policy level)",
)
@click.option(
    "--threshold",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concerning lines that fail the scan",
)
def scan(log_file: str, level: str = None, threshold: int = None):
    """Scan a captured node log file for concerning lines."""
    policy = default_policy()
    failing_level = LogLevel.parse(level) if level else policy.failing_level
    limit = threshold or policy.threshold
    logger = ConsoleLogger()

    count = 0
    with open(log_file, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            try:
                count = scan_log_line(
                    logger,
                    line.rstrip("\n"),
                    failing_level,
                    count,
                    limit,
                    policy.allowed_messages,
                )
            except ConcerningLogError as e:
                console.print(f"[red]✗ Line {line_number}: {escape(str(e))}[/red]")
                sys.exit(1)
            except LogScanError as e:
                console.print(f"[yellow]⚠️  Line {line_number}: {escape(str(e))}[/yellow]")

    console.print(
        f"[green]✓ No concerning logs at level {failing_level} or above "
        f"({count} below threshold {limit})[/green]"
    )
