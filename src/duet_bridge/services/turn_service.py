"""Turn monitor: waits for a deliverable while keeping an eye on the worker.

Each tick runs, in order: deliverable check, error classification with
patience, periodic scrutiny, one-shot stall scrutiny, and prompt handling on
both panes. Timers count poll ticks, so time spent inside a scrutiny request
does not advance them.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from duet_bridge.config import BridgeConfig
from duet_bridge.models.agent import Agent
from duet_bridge.models.observation import ErrorSeverity, ScrutinyMode, ScrutinyOutcome, TurnOutcome
from duet_bridge.models.session import SessionState
from duet_bridge.prompts import build_nudge_prompt
from duet_bridge.services.error_classifier import classify
from duet_bridge.services.exchange import ArtifactExchange
from duet_bridge.services.pane_observer import PaneObserver
from duet_bridge.services.permission_service import PermissionService
from duet_bridge.services.scrutiny_service import ScrutinyService
from duet_bridge.utils.terminal import tail_excerpt

logger = logging.getLogger(__name__)


class TurnState:
    """Per-turn bookkeeping, reset for every monitored turn."""

    def __init__(self) -> None:
        self.elapsed = 0.0
        self.transient_count = 0
        self.last_hash = ""
        self.last_observe_hash = ""
        self.last_observe_at: Optional[float] = None
        self.last_error_at: Optional[float] = None
        self.stall_checked = False
        self.transient_dismissed = False


class TurnMonitor:
    """Runs the combined monitoring loop for one agent turn."""

    def __init__(
        self,
        config: BridgeConfig,
        state: SessionState,
        exchange: ArtifactExchange,
        observer: PaneObserver,
        permissions: PermissionService,
        scrutiny: ScrutinyService,
    ):
        self.config = config
        self.state = state
        self.exchange = exchange
        self.observer = observer
        self.permissions = permissions
        self.scrutiny = scrutiny

    def run(self, worker: Agent, observer: Agent, deliverable: Path, since: float) -> TurnOutcome:
        """Block until ``deliverable`` is fresh, the turn times out or the session is cancelled."""
        turn = TurnState()
        while turn.elapsed < self.config.turn_timeout:
            if self.state.cancelled:
                return TurnOutcome.CANCELLED
            if self.exchange.is_fresh(deliverable, since):
                return TurnOutcome.DELIVERED

            screen = self.observer.snapshot(worker, self.config.monitor_lines)
            current_hash = self.observer.fingerprint(screen)
            content_changed = current_hash != turn.last_hash
            turn.last_hash = current_hash

            severity = self._classify(screen, turn)
            self._handle_error(severity, content_changed, worker, observer, deliverable, turn, screen)
            if severity == ErrorSeverity.NONE:
                self._maybe_observe(current_hash, worker, observer, deliverable, turn)
            self._maybe_check_stall(worker, observer, deliverable, turn)

            self.permissions.try_auto_approve(worker)
            self.permissions.try_auto_approve(observer)

            time.sleep(self.config.poll_interval)
            turn.elapsed += self.config.poll_interval

        logger.error(
            f"Timeout waiting for {worker.display_name} (file: {self.exchange.relative(deliverable)})"
        )
        return TurnOutcome.TIMED_OUT

    def _classify(self, screen: str, turn: TurnState) -> ErrorSeverity:
        if turn.last_error_at is not None and turn.elapsed - turn.last_error_at < self.config.error_cooldown:
            return ErrorSeverity.NONE
        severity = classify(screen)
        # The observer already dismissed transient errors this turn
        if severity == ErrorSeverity.TRANSIENT and turn.transient_dismissed:
            return ErrorSeverity.NONE
        return severity

    def _handle_error(
        self,
        severity: ErrorSeverity,
        content_changed: bool,
        worker: Agent,
        observer: Agent,
        deliverable: Path,
        turn: TurnState,
        screen: str,
    ) -> None:
        if severity == ErrorSeverity.NONE:
            turn.transient_count = 0
            return

        if severity == ErrorSeverity.SERIOUS:
            logger.warning(f"SERIOUS error detected in {worker.display_name}'s output: {tail_excerpt(screen, 3)}")
            outcome = self.scrutiny.request(worker, observer, ScrutinyMode.ERROR)
            if outcome == ScrutinyOutcome.INTERJECT:
                self.scrutiny.forward_feedback(worker, observer, deliverable)
            else:
                logger.info("Observer dismissed serious error as false positive")
            turn.transient_count = 0
            turn.last_error_at = turn.elapsed
            return

        if not content_changed:
            return
        turn.transient_count += 1
        if turn.transient_count <= self.config.error_patience:
            logger.info(
                f"{worker.display_name} hit a transient error (attempt "
                f"{turn.transient_count}/{self.config.error_patience}), being patient..."
            )
            return

        logger.warning(
            f"{worker.display_name}: transient errors persist after {self.config.error_patience} retries"
        )
        outcome = self.scrutiny.request(worker, observer, ScrutinyMode.ERROR)
        if outcome == ScrutinyOutcome.INTERJECT:
            self.scrutiny.forward_feedback(worker, observer, deliverable)
        else:
            logger.info("Observer dismissed error as false positive, suppressing transient detection")
            turn.transient_dismissed = True
        turn.transient_count = 0
        turn.last_error_at = turn.elapsed

    def _maybe_observe(
        self, current_hash: str, worker: Agent, observer: Agent, deliverable: Path, turn: TurnState
    ) -> None:
        grace = self.config.first_observe_delay if self.state.task_observations == 0 else self.config.observe_interval
        due = turn.last_observe_at is None or turn.elapsed - turn.last_observe_at >= self.config.observe_interval
        if not due or current_hash == turn.last_observe_hash or turn.elapsed < grace:
            return

        turn.last_observe_at = turn.elapsed
        turn.last_observe_hash = current_hash
        outcome = self.scrutiny.request(worker, observer, ScrutinyMode.PERIODIC)
        if outcome == ScrutinyOutcome.INTERJECT:
            self.scrutiny.forward_feedback(worker, observer, deliverable)
        elif outcome == ScrutinyOutcome.INCONCLUSIVE:
            # Next attempt no earlier than first_observe_delay from now
            logger.info(f"Backing off observations for {self.config.first_observe_delay}s after timeout")
            turn.last_observe_at = turn.elapsed + self.config.first_observe_delay - self.config.observe_interval

    def _maybe_check_stall(self, worker: Agent, observer: Agent, deliverable: Path, turn: TurnState) -> None:
        if self.config.stall_timeout <= 0 or turn.stall_checked or turn.elapsed < self.config.stall_timeout:
            return
        turn.stall_checked = True

        logger.warning(f"{worker.display_name} appears stalled ({self.config.stall_timeout}s)...")
        outcome = self.scrutiny.request(worker, observer, ScrutinyMode.STALL)
        if outcome == ScrutinyOutcome.INTERJECT:
            self.scrutiny.forward_feedback(worker, observer, deliverable)
        elif outcome == ScrutinyOutcome.INCONCLUSIVE:
            self.scrutiny.interrupt(worker)
            self.scrutiny.instruct(worker, build_nudge_prompt(self.exchange.relative(deliverable)))
        else:
            logger.info("Observer confirmed agent is fine, no interruption")
