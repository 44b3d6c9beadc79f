"""Live scrutiny: the idle agent watches the working one.

A scrutiny request writes an observation snapshot of the worker, asks the
observer to read it and waits (bounded) for a feedback file. The feedback
decides what happens next:

- ``INTERJECT:`` interrupts the worker and forwards the feedback now.
- ``STATUS: NOTE`` is queued and delivered at the worker's next turn.
- anything else is discarded.
"""

import hashlib
import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from duet_bridge.clients.tmux import TmuxClient, tmux_client
from duet_bridge.config import BridgeConfig
from duet_bridge.constants import (
    SNAPSHOT_DIFF_MAX_LINES,
    SNAPSHOT_EXCLUDED_DIRS,
    SNAPSHOT_EXCLUDED_SUFFIXES,
    SNAPSHOT_FILE_HEAD_LINES,
)
from duet_bridge.models.agent import Agent
from duet_bridge.models.observation import ObservationSnapshot, ScrutinyMode, ScrutinyOutcome
from duet_bridge.models.session import SessionState
from duet_bridge.models.verdict import Verdict, parse_feedback
from duet_bridge.prompts import (
    build_error_scrutiny_prompt,
    build_forward_prompt,
    build_notes_prompt,
    build_periodic_scrutiny_prompt,
    build_stall_scrutiny_prompt,
)
from duet_bridge.services.exchange import ArtifactExchange
from duet_bridge.services.pane_observer import IdleTimeoutError, PaneObserver
from duet_bridge.services.permission_service import PermissionService
from duet_bridge.utils.git import diff_against_head, is_git_repo

logger = logging.getLogger(__name__)

TYPE_DELAY = 0.3
ESCAPE_DELAY = 1.0
AFTER_INTERRUPT_DELAY = 0.5
PROMPT_SETTLE_DELAY = 0.5
AFTER_NOTES_DELAY = 2.0


def file_checksum(path: Path) -> str:
    try:
        return hashlib.md5(path.read_bytes()).hexdigest()
    except OSError:
        return "?"


class ScrutinyService:
    """Observation snapshots, scrutiny requests and feedback delivery."""

    def __init__(
        self,
        config: BridgeConfig,
        state: SessionState,
        exchange: ArtifactExchange,
        observer: PaneObserver,
        permissions: PermissionService,
        client: Optional[TmuxClient] = None,
    ):
        self.config = config
        self.state = state
        self.exchange = exchange
        self.observer = observer
        self.permissions = permissions
        self.client = client or tmux_client

    # -- keystrokes ------------------------------------------------------------

    def instruct(self, agent: Agent, message: str) -> None:
        """Type a message into the agent's pane and press Enter."""
        self.client.send_text(agent.pane_id, message)
        time.sleep(TYPE_DELAY)
        self.client.send_key(agent.pane_id, "Enter")

    def interrupt(self, agent: Agent) -> None:
        """Press Escape twice, as a user stopping the agent would."""
        self.client.send_key(agent.pane_id, "Escape")
        time.sleep(ESCAPE_DELAY)
        self.client.send_key(agent.pane_id, "Escape")
        time.sleep(AFTER_INTERRUPT_DELAY)

    # -- snapshots -------------------------------------------------------------

    def changed_files(self) -> Dict[str, str]:
        """Project files modified since the task started, with their checksums."""
        since = self.exchange.mtime(self.exchange.task_path)
        root = self.exchange.project_dir
        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in SNAPSHOT_EXCLUDED_DIRS]
            for name in filenames:
                if name.endswith(SNAPSHOT_EXCLUDED_SUFFIXES):
                    continue
                path = Path(dirpath) / name
                if self.exchange.mtime(path) > since:
                    found.append(path.relative_to(root).as_posix())
        found.sort()
        return {rel: file_checksum(root / rel) for rel in found[: self.config.snapshot_max_files]}

    def capture_snapshot(self, worker: Agent) -> ObservationSnapshot:
        """Write ``live_<label>.txt`` for the worker and diff it against the last one."""
        files = self.changed_files()
        previous = self.state.file_states.get(worker.label)
        if previous is None:
            changed = list(files)
            has_changes = True
        else:
            changed = [path for path, digest in files.items() if previous.get(path) != digest]
            has_changes = files != previous
        self.state.file_states[worker.label] = files

        snapshot = ObservationSnapshot(
            worker_label=worker.label,
            screen=self.observer.snapshot(worker, self.config.snapshot_lines),
            files=files,
            changed=changed,
            has_changes=has_changes,
        )
        self.exchange.write(self.exchange.snapshot_path(worker), self.render_snapshot(snapshot))
        return snapshot

    def render_snapshot(self, snapshot: ObservationSnapshot) -> str:
        root = self.exchange.project_dir
        lines = [
            f"=== Agent {snapshot.worker_label}: screen (last {self.config.snapshot_lines} lines) ===",
            snapshot.screen.rstrip() or "(capture failed)",
            "",
        ]
        if not snapshot.files:
            lines += ["=== Changed files ===", "(none)"]
        elif is_git_repo(root):
            lines += ["=== File diffs (git) ===", diff_against_head(root, SNAPSHOT_DIFF_MAX_LINES)]
        else:
            lines += ["=== All changed files ===", *snapshot.files, ""]
            if snapshot.changed:
                lines.append("=== New/modified since last observation ===")
                for rel in snapshot.changed:
                    lines += self._file_head(root / rel, rel)
            else:
                lines.append("(no new changes since last observation)")
        lines += ["", f"=== Timestamp: {datetime.now().isoformat(timespec='seconds')} ==="]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _file_head(path: Path, rel: str) -> List[str]:
        content = ArtifactExchange.read(path).splitlines()
        out = [f"--- {rel} ({len(content)} lines) ---", *content[:SNAPSHOT_FILE_HEAD_LINES]]
        if len(content) > SNAPSHOT_FILE_HEAD_LINES:
            out.append(f"... (truncated, {len(content) - SNAPSHOT_FILE_HEAD_LINES} more lines)")
        out.append("")
        return out

    # -- requests --------------------------------------------------------------

    def build_request(self, worker: Agent, mode: ScrutinyMode) -> str:
        rel = self.exchange.relative
        snapshot_path = rel(self.exchange.snapshot_path(worker))
        feedback_path = rel(self.exchange.feedback_path(worker))
        if mode == ScrutinyMode.ERROR:
            return build_error_scrutiny_prompt(worker.label, snapshot_path, feedback_path)
        if mode == ScrutinyMode.STALL:
            return build_stall_scrutiny_prompt(worker.label, snapshot_path, feedback_path)
        return build_periodic_scrutiny_prompt(
            worker.label,
            snapshot_path,
            feedback_path,
            rel(self.exchange.task_path),
            first_observation=self.state.task_observations == 0,
            queued_notes=self.exchange.read(self.exchange.queued_notes_path(worker)),
        )

    def request(self, worker: Agent, observer: Agent, mode: ScrutinyMode) -> ScrutinyOutcome:
        """Ask the observer to review the worker's progress."""
        snapshot = self.capture_snapshot(worker)
        if mode == ScrutinyMode.PERIODIC and not snapshot.has_changes:
            logger.info("No file changes since last observation, skipping")
            return ScrutinyOutcome.SKIPPED

        message = self.build_request(worker, mode)

        # Typing into an active permission dialog garbles the observer's input
        self.permissions.try_auto_approve(observer)
        time.sleep(PROMPT_SETTLE_DELAY)
        pending = self.permissions.pending_prompt(observer)
        if pending is not None:
            logger.info(
                f"{observer.display_name} has a pending prompt ({pending.key}), skipping observation"
            )
            return ScrutinyOutcome.SKIPPED

        feedback = self.exchange.feedback_path(worker)
        since = self.exchange.baseline(feedback)
        self.state.task_observations += 1
        self.state.metrics.observations += 1
        logger.info(f"Asking {observer.display_name} to review ({mode.value})...")
        self.instruct(observer, message)

        answered = self.exchange.wait_for_fresh_artifact(
            feedback,
            since,
            self.config.scrutiny_timeout,
            panes=(observer, worker),
            on_poll=self.permissions.try_auto_approve,
        )
        if not answered:
            logger.info("Observer didn't respond in time, continuing...")
            return ScrutinyOutcome.INCONCLUSIVE

        try:
            self.observer.wait_for_idle(observer, on_poll=self.permissions.try_auto_approve)
        except IdleTimeoutError as e:
            logger.warning(str(e))

        text = self.exchange.read(feedback)
        verdict = parse_feedback(text)
        if verdict == Verdict.INTERJECT:
            logger.info(f"{observer.display_name} flagged a serious issue, will interrupt")
            return ScrutinyOutcome.INTERJECT
        if verdict == Verdict.STATUS_NOTE:
            self.exchange.append(self.exchange.queued_notes_path(worker), text)
            self.exchange.remove(feedback)
            logger.info(f"{observer.display_name} noted something, queued for next turn")
            return ScrutinyOutcome.NOTED

        logger.info(f"{observer.display_name} says OK")
        self.exchange.remove(feedback)
        return ScrutinyOutcome.OK

    # -- delivery --------------------------------------------------------------

    def deliver_queued_notes(self, agent: Agent) -> bool:
        """Hand queued observations to an agent at the start of its turn."""
        queued = self.exchange.queued_notes_path(agent)
        if not self.exchange.read(queued).strip():
            return False
        notes = self.exchange.notes_path(agent)
        os.replace(queued, notes)
        logger.info(f"Delivering queued observation notes to {agent.display_name}")
        self.instruct(agent, build_notes_prompt(self.exchange.relative(notes)))
        time.sleep(AFTER_NOTES_DELAY)
        return True

    def forward_feedback(self, worker: Agent, observer: Agent, deliverable: Path) -> None:
        """Interrupt the worker and point it at the observer's feedback.

        The feedback file stays in place for the worker to read; the next
        request's baseline keeps it from being mistaken for a new answer.
        """
        self.state.metrics.interjections += 1
        logger.warning(
            f"Interrupting {worker.display_name} to forward {observer.display_name}'s feedback..."
        )
        self.interrupt(worker)
        self.instruct(
            worker,
            build_forward_prompt(
                observer.label,
                self.exchange.relative(self.exchange.feedback_path(worker)),
                self.exchange.relative(deliverable),
            ),
        )
