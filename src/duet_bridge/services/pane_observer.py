"""Pane observation and idle detection.

An agent counts as idle once its captured screen has produced the same
fingerprint for ``idle_checks`` consecutive polls. The observer only reads
panes; callers that need to act while waiting pass an ``on_poll`` hook.
"""

import logging
import time
from typing import Callable, Optional

from duet_bridge.clients.tmux import TmuxClient, tmux_client
from duet_bridge.config import BridgeConfig
from duet_bridge.models.agent import Agent
from duet_bridge.utils.terminal import fingerprint

logger = logging.getLogger(__name__)


class IdleTimeoutError(TimeoutError):
    """Raised when an agent never settles within the allowed time."""

    pass


class PaneObserver:
    """Captures agent panes and decides when an agent has gone quiet."""

    def __init__(self, config: BridgeConfig, client: Optional[TmuxClient] = None):
        self.config = config
        self.client = client or tmux_client

    def snapshot(self, agent: Agent, lines: Optional[int] = None) -> str:
        """Capture the agent's pane, optionally with ``lines`` of scrollback."""
        return self.client.capture_pane(agent.pane_id, lines)

    def fingerprint(self, text: str) -> str:
        return fingerprint(text)

    def wait_for_idle(
        self,
        agent: Agent,
        timeout: Optional[float] = None,
        on_poll: Optional[Callable[[Agent], None]] = None,
    ) -> float:
        """Block until the agent's screen stops changing.

        Returns the seconds waited. Raises IdleTimeoutError when the screen is
        still changing after ``timeout`` (default: the turn timeout).
        """
        if timeout is None:
            timeout = self.config.turn_timeout

        previous = ""
        stable = 0
        elapsed = 0.0
        while elapsed < timeout:
            text = self.snapshot(agent)
            current = self.fingerprint(text) if text else ""
            if current and current == previous:
                stable += 1
                if stable >= self.config.idle_checks:
                    logger.debug(f"{agent.display_name} idle after {elapsed:.0f}s")
                    return elapsed
            else:
                stable = 0
            previous = current

            if on_poll is not None:
                on_poll(agent)
            time.sleep(self.config.poll_interval)
            elapsed += self.config.poll_interval

        raise IdleTimeoutError(f"Timeout waiting for {agent.display_name} to become idle")
