"""Simplified tmux client wrapping libtmux.

Panes are addressed by their tmux pane id (``%3``) so the bridge does not
depend on the user's base-index settings.
"""

import logging
from typing import List, Optional

import libtmux
from libtmux.exc import LibTmuxException

from duet_bridge.constants import TMUX_SESSION_HEIGHT, TMUX_SESSION_WIDTH

logger = logging.getLogger(__name__)


class TmuxError(Exception):
    """Raised when a tmux command fails."""

    pass


class TmuxClient:
    """Thin wrapper around a libtmux server for capture and keystroke injection."""

    def __init__(self) -> None:
        self.server = libtmux.Server()

    def _run(self, *args: str) -> List[str]:
        result = self.server.cmd(*args)
        if result.stderr:
            raise TmuxError(f"tmux {args[0]} failed: {' '.join(result.stderr)}")
        return result.stdout

    def session_exists(self, session_name: str) -> bool:
        try:
            return self.server.has_session(session_name)
        except LibTmuxException as e:
            logger.debug(f"has-session failed for {session_name}: {e}")
            return False

    def create_pair_session(
        self,
        session_name: str,
        working_directory: Optional[str] = None,
        titles: tuple = (),
    ) -> List[str]:
        """Create a detached session with two side-by-side panes.

        Returns the pane ids, left pane first.
        """
        kwargs = {
            "session_name": session_name,
            "attach": False,
            "x": TMUX_SESSION_WIDTH,
            "y": TMUX_SESSION_HEIGHT,
        }
        if working_directory:
            kwargs["start_directory"] = working_directory
        self.server.new_session(**kwargs)

        split_args = ["split-window", "-h", "-t", session_name]
        if working_directory:
            split_args.extend(["-c", working_directory])
        self._run(*split_args)

        pane_ids = self.list_panes(session_name)
        for pane_id, title in zip(pane_ids, titles):
            self._run("select-pane", "-t", pane_id, "-T", title)
        self._run("set-option", "-t", session_name, "pane-border-status", "top")
        self._run("set-option", "-t", session_name, "pane-border-format", " #{pane_title} ")

        logger.info(f"Created tmux session {session_name} with panes {pane_ids}")
        return pane_ids

    def list_panes(self, session_name: str) -> List[str]:
        return [
            line.strip()
            for line in self._run("list-panes", "-t", session_name, "-F", "#{pane_id}")
            if line.strip()
        ]

    def capture_pane(self, pane_id: str, lines: Optional[int] = None) -> str:
        """Return the visible pane content, optionally including scrollback.

        ``lines`` starts the capture that many lines above the visible area,
        like ``tmux capture-pane -S -N``.
        """
        args = ["capture-pane", "-p", "-t", pane_id]
        if lines:
            args.extend(["-S", f"-{lines}"])
        try:
            return "\n".join(self._run(*args))
        except (TmuxError, LibTmuxException) as e:
            logger.debug(f"capture-pane failed for {pane_id}: {e}")
            return ""

    def send_text(self, pane_id: str, text: str) -> None:
        """Type text literally into a pane, without pressing Enter."""
        self._run("send-keys", "-t", pane_id, "-l", text)

    def send_key(self, pane_id: str, key: str) -> None:
        """Press a named key (Enter, Escape, Down, ...)."""
        self._run("send-keys", "-t", pane_id, key)

    def kill_session(self, session_name: str) -> None:
        self._run("kill-session", "-t", session_name)


tmux_client = TmuxClient()
