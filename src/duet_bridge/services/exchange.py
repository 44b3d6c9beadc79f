"""Shared exchange directory: artifact names, freshness and cleanup.

Every artifact lives in ``<project>/.bridge/<session>/``. An artifact is
fresh when its mtime is newer than a baseline taken just before its producer
was instructed. Writes are not atomic, so a fresh artifact may still be
partially written; readers tolerate truncated or undecodable content.
"""

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from duet_bridge.config import BridgeConfig
from duet_bridge.constants import (
    APPROVED_SCRIPTS_FILE,
    FEEDBACK_TEMPLATE,
    HANDOFF_TEMPLATE,
    INSTRUCTIONS_TEMPLATE,
    LIVE_SNAPSHOT_TEMPLATE,
    LOCK_FILE,
    NOTES_TEMPLATE,
    PROPOSALS_FILE,
    QUEUED_NOTES_TEMPLATE,
    TASK_FILE,
)
from duet_bridge.models.agent import Agent
from duet_bridge.models.proposal import ProposalBacklog

logger = logging.getLogger(__name__)

# Per-task artifacts removed before each new task
_TASK_ARTIFACT_GLOBS = (
    "*_to_*.md",
    "feedback_for_*.md",
    "live_*.txt",
    "queued_notes_for_*.md",
    "notes_for_*.md",
)


class ArtifactExchange:
    """Owns the session's exchange directory."""

    def __init__(self, config: BridgeConfig):
        self.config = config
        self.project_dir = config.project_dir
        self.root = config.session_dir

    def ensure(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    # -- names ---------------------------------------------------------------

    @property
    def task_path(self) -> Path:
        return self.root / TASK_FILE

    @property
    def proposals_path(self) -> Path:
        return self.root / PROPOSALS_FILE

    @property
    def ledger_path(self) -> Path:
        return self.root / APPROVED_SCRIPTS_FILE

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_FILE

    def handoff_path(self, src: Agent, dst: Agent) -> Path:
        return self.root / HANDOFF_TEMPLATE.format(src=src.slug, dst=dst.slug)

    def feedback_path(self, agent: Agent) -> Path:
        return self.root / FEEDBACK_TEMPLATE.format(label=agent.slug)

    def snapshot_path(self, agent: Agent) -> Path:
        return self.root / LIVE_SNAPSHOT_TEMPLATE.format(label=agent.slug)

    def queued_notes_path(self, agent: Agent) -> Path:
        return self.root / QUEUED_NOTES_TEMPLATE.format(label=agent.slug)

    def notes_path(self, agent: Agent) -> Path:
        return self.root / NOTES_TEMPLATE.format(label=agent.slug)

    def instructions_path(self, agent: Agent) -> Path:
        return self.root / INSTRUCTIONS_TEMPLATE.format(label=agent.slug)

    def relative(self, path: Path) -> str:
        """Path as the agents see it, relative to the project directory."""
        try:
            return str(Path(path).relative_to(self.project_dir))
        except ValueError:
            return str(path)

    # -- freshness -----------------------------------------------------------

    @staticmethod
    def mtime(path: Path) -> float:
        try:
            return os.path.getmtime(path)
        except OSError:
            return 0.0

    def baseline(self, path: Path) -> float:
        """Freshness baseline for an artifact about to be requested.

        Never earlier than the artifact's current mtime, so a file left over
        from an earlier round cannot count as fresh.
        """
        return max(time.time(), self.mtime(path))

    def is_fresh(self, path: Path, since: float) -> bool:
        return Path(path).is_file() and self.mtime(path) > since

    def wait_for_fresh_artifact(
        self,
        path: Path,
        since: float,
        timeout: float,
        panes: Iterable[Agent] = (),
        on_poll: Optional[Callable[[Agent], None]] = None,
    ) -> bool:
        """Poll until ``path`` is newer than ``since``.

        ``on_poll`` runs for every agent in ``panes`` on each tick so neither
        agent sits on an unanswered permission prompt during the wait.
        """
        panes = list(panes)
        elapsed = 0.0
        while elapsed < timeout:
            if self.is_fresh(path, since):
                return True
            if on_poll is not None:
                for agent in panes:
                    on_poll(agent)
            time.sleep(self.config.poll_interval)
            elapsed += self.config.poll_interval
        return False

    # -- content -------------------------------------------------------------

    @staticmethod
    def read(path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return ""

    def write(self, path: Path, text: str) -> None:
        self.ensure()
        Path(path).write_text(text, encoding="utf-8")

    def append(self, path: Path, text: str, separator: str = "\n---\n") -> None:
        self.ensure()
        prefix = separator if Path(path).exists() and Path(path).stat().st_size else ""
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{prefix}{text}")

    @staticmethod
    def remove(path: Path) -> None:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            pass

    def write_task(self, text: str) -> Path:
        self.write(self.task_path, f"{text.rstrip()}\n")
        return self.task_path

    def read_task(self) -> str:
        return self.read(self.task_path)

    def load_backlog(self) -> ProposalBacklog:
        return ProposalBacklog.parse(self.read(self.proposals_path))

    def save_backlog(self, backlog: ProposalBacklog) -> None:
        self.write(self.proposals_path, backlog.render())

    # -- cleanup -------------------------------------------------------------

    def task_artifacts(self) -> List[Path]:
        if not self.root.is_dir():
            return []
        found: List[Path] = []
        for pattern in _TASK_ARTIFACT_GLOBS:
            found.extend(sorted(self.root.glob(pattern)))
        return found

    def clean_task_artifacts(self) -> None:
        """Remove handoffs, feedback, notes and snapshots from the last task.

        The proposal backlog and the script ledger survive across tasks.
        """
        for path in self.task_artifacts():
            self.remove(path)

    def clear_all(self) -> bool:
        """Remove the whole ``.bridge`` tree. Returns False if it did not exist."""
        bridge_root = self.config.bridge_root
        if not bridge_root.exists():
            return False
        shutil.rmtree(bridge_root)
        logger.info(f"Removed {bridge_root}")
        return True

    def bridge_bytes(self) -> int:
        """Total size of the text artifacts the agents exchanged."""
        if not self.root.is_dir():
            return 0
        total = 0
        for pattern in ("*.md", "*.txt"):
            for path in self.root.glob(pattern):
                try:
                    total += path.stat().st_size
                except OSError:
                    continue
        return total
