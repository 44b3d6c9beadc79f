"""Main CLI entry point for the duet bridge."""

import click

from duet_bridge.cli.commands.clear import clear
from duet_bridge.cli.commands.start import start


@click.group()
def cli():
    """Duet - pair two CLI coding agents in tmux."""
    pass


# Register commands
cli.add_command(start)
cli.add_command(clear)


if __name__ == "__main__":
    cli()
