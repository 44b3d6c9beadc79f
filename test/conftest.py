"""Shared fixtures: a scripted tmux stand-in and fast clocks."""

import os
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from duet_bridge.config import BridgeConfig
from duet_bridge.services.session_service import BridgeSession

PANE_A = "%1"
PANE_B = "%2"
IDLE_SCREEN = "❯ \n"


class FakeTmux:
    """In-memory tmux client.

    Screens are set per pane; ``on_text`` handlers play the agent's side by
    reacting to instructions typed into their pane.
    """

    def __init__(self) -> None:
        self.screens: Dict[str, str] = {PANE_A: IDLE_SCREEN, PANE_B: IDLE_SCREEN}
        self.sent: List[Tuple[str, str, str]] = []
        self.on_text: Dict[str, Callable[[str], None]] = {}
        self.sessions = set()
        self.killed: List[str] = []

    def capture_pane(self, pane_id: str, lines: Optional[int] = None) -> str:
        return self.screens.get(pane_id, "")

    def send_text(self, pane_id: str, text: str) -> None:
        self.sent.append((pane_id, "text", text))
        handler = self.on_text.get(pane_id)
        if handler is not None:
            handler(text)

    def send_key(self, pane_id: str, key: str) -> None:
        self.sent.append((pane_id, "key", key))

    def session_exists(self, session_name: str) -> bool:
        return session_name in self.sessions

    def create_pair_session(self, session_name, working_directory=None, titles=()):
        self.sessions.add(session_name)
        return [PANE_A, PANE_B]

    def list_panes(self, session_name: str) -> List[str]:
        return [PANE_A, PANE_B] if session_name in self.sessions else []

    def kill_session(self, session_name: str) -> None:
        self.killed.append(session_name)
        self.sessions.discard(session_name)

    def texts(self, pane_id: str) -> List[str]:
        return [value for pane, kind, value in self.sent if pane == pane_id and kind == "text"]

    def keys(self, pane_id: str) -> List[str]:
        return [value for pane, kind, value in self.sent if pane == pane_id and kind == "key"]


def write_artifact(path: Path, text: str) -> None:
    """Write a file whose mtime is strictly newer than any baseline taken so far."""
    previous = path.stat().st_mtime if path.exists() else 0.0
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    stamp = max(previous + 1, time.time() + 1)
    os.utime(path, (stamp, stamp))


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda seconds: None)


@pytest.fixture
def fake_tmux():
    return FakeTmux()


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> BridgeConfig:
        values = {
            "work_dir": str(tmp_path),
            "poll_interval": 1.0,
            "idle_checks": 2,
            "turn_timeout": 60,
            "stall_timeout": 0,
            "first_observe_delay": 10_000,
            "observe_interval": 10_000,
            "scrutiny_timeout": 10,
            "selection_timeout": 10,
            "startup_delay": 0,
        }
        values.update(overrides)
        return BridgeConfig(**values)

    return _make


@pytest.fixture
def make_session(make_config, fake_tmux):
    """A wired session whose agents sit in the fake panes, without running setup."""

    def _make(**overrides) -> BridgeSession:
        session = BridgeSession(make_config(**overrides), client=fake_tmux)
        session.exchange.ensure()
        for agent, pane_id in zip(session.agents, (PANE_A, PANE_B)):
            agent.pane_id = pane_id
        return session

    return _make


@pytest.fixture
def artifact_writer():
    return write_artifact
