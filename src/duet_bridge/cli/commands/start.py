"""Start command: run a task, then prompt for follow-up tasks."""

import logging
from typing import Optional

import click

from duet_bridge.config import BridgeConfig, ConfigError, load_config
from duet_bridge.constants import EXIT_COMMANDS
from duet_bridge.services.session_service import BridgeSession, SessionLockedError

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    # libtmux logs every command at DEBUG
    logging.getLogger("libtmux").setLevel(logging.WARNING)


def read_next_task(session: str) -> Optional[str]:
    """Prompt for a follow-up task. Returns None when the user quits."""
    while True:
        try:
            line = click.prompt(f"[{session}] ▸", default="", show_default=False, prompt_suffix=" ")
        except (EOFError, click.Abort):
            return None
        task = line.strip()
        if task.lower() in EXIT_COMMANDS:
            return None
        if task:
            return task


def run_session(config: BridgeConfig, task: str) -> None:
    with BridgeSession(config) as session:
        orchestrator = session.orchestrator
        orchestrator.run_task(task)
        if config.explore:
            orchestrator.explore()

        logger.info(f"Session '{config.session}' alive. Agents have full context.")
        logger.info("Enter a follow-up task, or 'exit' / Ctrl+C to quit.")
        while True:
            next_task = read_next_task(config.session)
            if next_task is None:
                break
            orchestrator.run_task(next_task)
            if config.explore:
                orchestrator.explore()
            logger.info(f"Session '{config.session}' alive. Enter next task, or 'exit' to quit.")


@click.command()
@click.argument("task")
@click.option("--session", "-s", help="Session name (default: pair)")
@click.option("--auto-approve", "-a", is_flag=True, help="Auto-approve safe commands, file edits and learned scripts")
@click.option("--secure", is_flag=True, help="Hardened auto-approve: no chaining, no bare interpreters, sensitive files blocked")
@click.option("--tokens", "-t", "track_tokens", is_flag=True, help="Track and report estimated bridge token usage")
@click.option("--explore", "-e", is_flag=True, help="Work through follow-up proposals after each task")
@click.option("--turn-timeout", type=int, help="Max seconds per agent turn (default: 3600)")
@click.option("--stall-timeout", type=int, help="Seconds before an agent counts as stalled, 0 disables (default: 600)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="JSON config file")
@click.option("--agent-a", help="CLI launched in the left pane (default: claude)")
@click.option("--agent-b", help="CLI launched in the right pane (default: codex)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def start(
    task,
    session,
    auto_approve,
    secure,
    track_tokens,
    explore,
    turn_timeout,
    stall_timeout,
    config_path,
    agent_a,
    agent_b,
    verbose,
):
    """Pair two agents on TASK until they reach consensus."""
    configure_logging(verbose)
    try:
        config = load_config(
            config_path,
            overrides={
                "session": session,
                "auto_approve": auto_approve or None,
                "secure": secure or None,
                "track_tokens": track_tokens or None,
                "explore": explore or None,
                "turn_timeout": turn_timeout,
                "stall_timeout": stall_timeout,
                "agent_a": agent_a,
                "agent_b": agent_b,
            },
        )
        if config.secure and not config.auto_approve:
            logger.warning("--secure has no effect without --auto-approve")
        run_session(config, task)
    except (ConfigError, SessionLockedError) as e:
        raise click.ClickException(str(e))
