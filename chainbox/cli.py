#!/usr/bin/env python3
"""
Chainbox CLI
Helpers around the test environment builder: scan policy and env config.
"""

import click

from chainbox import __version__
from chainbox.commands.env_config import env_config
from chainbox.commands.scan import allowed_messages, scan


@click.group()
@click.version_option(version=__version__)
def cli():
    """Chainbox CLI - Inspect test environment settings and node logs."""
    pass


cli.add_command(allowed_messages)
cli.add_command(env_config)
cli.add_command(scan)


def main():
    """Main entry point for the chainbox CLI."""
    cli()


if __name__ == "__main__":
    main()
