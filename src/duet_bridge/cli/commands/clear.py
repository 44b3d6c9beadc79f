"""Clear command: remove the bridge directory and everything learned in it."""

import click

from duet_bridge.config import ConfigError, load_config
from duet_bridge.services.exchange import ArtifactExchange


@click.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="JSON config file")
def clear(config_path):
    """Delete the bridge directory, including learned script approvals."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))

    exchange = ArtifactExchange(config)
    if exchange.clear_all():
        click.echo(f"Cleared {config.bridge_root}")
    else:
        click.echo("Nothing to clear.")
