"""Task orchestration: implement, review, confirm.

A task cycle runs as a small state machine::

    INIT -> INITIATOR_TURN -> REVIEWER_TURN -> (APPROVAL_CONFIRM | INITIATOR_TURN) -> ...
         -> CONSENSUS | ABANDONED

Consensus needs an approval-class verdict from the reviewer followed by a
consensus-class verdict from the initiator within the same cycle. An
initiator that disagrees sends the cycle back to review.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from duet_bridge.config import BridgeConfig
from duet_bridge.models.agent import Agent, Pairing
from duet_bridge.models.observation import TurnOutcome
from duet_bridge.models.proposal import ProposalBacklog
from duet_bridge.models.session import SessionState
from duet_bridge.models.verdict import is_approval, is_consensus
from duet_bridge.prompts import (
    build_confirm_prompt,
    build_pick_prompt,
    build_review_prompt,
    build_revise_prompt,
    build_task_prompt,
)
from duet_bridge.services.exchange import ArtifactExchange
from duet_bridge.services.pane_observer import IdleTimeoutError, PaneObserver
from duet_bridge.services.permission_service import PermissionService
from duet_bridge.services.scrutiny_service import ScrutinyService
from duet_bridge.services.turn_service import TurnMonitor

logger = logging.getLogger(__name__)

RULE = "━" * 17


class TaskPhase(str, Enum):
    INIT = "init"
    INITIATOR_TURN = "initiator_turn"
    REVIEWER_TURN = "reviewer_turn"
    APPROVAL_CONFIRM = "approval_confirm"
    CONSENSUS = "consensus"
    ABANDONED = "abandoned"


class TaskOutcome(str, Enum):
    CONSENSUS = "consensus"
    NO_CONSENSUS = "no_consensus"
    ABANDONED = "abandoned"


class TaskResult(BaseModel):
    """How one task cycle ended."""

    number: int
    outcome: TaskOutcome
    review_rounds: int = 0
    phase: TaskPhase = TaskPhase.INIT
    reviewer_approved: bool = False
    initiator: str = "A"
    reviewer: str = "B"

    @property
    def consensus(self) -> bool:
        return self.outcome == TaskOutcome.CONSENSUS


class Orchestrator:
    """Drives task cycles between the two agents of a session."""

    def __init__(
        self,
        config: BridgeConfig,
        state: SessionState,
        exchange: ArtifactExchange,
        observer: PaneObserver,
        permissions: PermissionService,
        scrutiny: ScrutinyService,
        monitor: Optional[TurnMonitor] = None,
    ):
        self.config = config
        self.state = state
        self.exchange = exchange
        self.observer = observer
        self.permissions = permissions
        self.scrutiny = scrutiny
        self.monitor = monitor or TurnMonitor(config, state, exchange, observer, permissions, scrutiny)
        self.task_number = 0

    @property
    def agent_a(self) -> Agent:
        return self.state.agent("A")

    @property
    def agent_b(self) -> Agent:
        return self.state.agent("B")

    # -- tasks -------------------------------------------------------------------

    def run_task(self, text: str, number: Optional[int] = None) -> TaskResult:
        """Run a user task with Agent A implementing and Agent B reviewing."""
        number = self._claim_number(number)
        self.state.metrics.reset()
        self.state.start_task()
        self.exchange.clean_task_artifacts()
        self.exchange.write_task(f"# Task\n\n{text.strip()}")

        pairing = Pairing(initiator=self.agent_a, reviewer=self.agent_b).assign_roles()
        rel = self.exchange.relative
        opening = build_task_prompt(
            number,
            rel(self.exchange.instructions_path(pairing.initiator)),
            rel(self.exchange.task_path),
            rel(self._deliverable(pairing)),
        )
        logger.info(f"Sending task #{number} to {pairing.initiator.display_name}...")
        result = self.run_cycle(pairing, number, opening_prompt=opening)
        self.report(result)
        return result

    def run_cycle(
        self,
        pairing: Pairing,
        number: int,
        opening_prompt: Optional[str] = None,
        since: Optional[float] = None,
    ) -> TaskResult:
        """Drive one implement/review cycle to consensus or abandonment.

        Without ``opening_prompt`` the initiator is assumed to be working
        already (explore mode) and its deliverable is awaited from ``since``.
        """
        initiator, reviewer = pairing.initiator, pairing.reviewer
        deliverable = self._deliverable(pairing)
        review = self._review(pairing)
        result = TaskResult(
            number=number,
            outcome=TaskOutcome.NO_CONSENSUS,
            initiator=initiator.label,
            reviewer=reviewer.label,
        )
        rel = self.exchange.relative

        result.phase = TaskPhase.INITIATOR_TURN
        if opening_prompt is not None:
            outcome = self._turn(initiator, reviewer, deliverable, opening_prompt, deliver_notes=False)
        else:
            outcome = self._await_turn(initiator, reviewer, deliverable, since or 0.0)
        if outcome != TurnOutcome.DELIVERED:
            return self._abandon(result, outcome)
        logger.info(f"{initiator.display_name}: round 0 complete")

        proposals = rel(self.exchange.proposals_path) if self.config.explore else None
        while self.config.max_rounds == 0 or result.review_rounds < self.config.max_rounds:
            result.review_rounds += 1
            limit = self.config.max_rounds or "∞"
            logger.info(f"{RULE} Round {result.review_rounds} / {limit} {RULE}")

            result.phase = TaskPhase.REVIEWER_TURN
            prompt = build_review_prompt(
                initiator.label,
                rel(self.exchange.instructions_path(reviewer)),
                rel(self.exchange.task_path),
                rel(deliverable),
                rel(review),
                proposals,
            )
            logger.info(f"{reviewer.display_name}: reviewing {initiator.display_name}'s work...")
            outcome = self._turn(reviewer, initiator, review, prompt)
            if outcome != TurnOutcome.DELIVERED:
                return self._abandon(result, outcome)

            if is_approval(self.exchange.read(review)):
                result.reviewer_approved = True
                result.phase = TaskPhase.APPROVAL_CONFIRM
                logger.info(
                    f"{reviewer.display_name} says APPROVED. "
                    f"Notifying {initiator.display_name} for final confirmation..."
                )
                prompt = build_confirm_prompt(reviewer.label, rel(review), rel(deliverable))
                outcome = self._turn(initiator, reviewer, deliverable, prompt, deliver_notes=False)
                if outcome != TurnOutcome.DELIVERED:
                    return self._abandon(result, outcome)
                if is_consensus(self.exchange.read(deliverable)):
                    logger.info("Both agents reached consensus.")
                    result.phase = TaskPhase.CONSENSUS
                    result.outcome = TaskOutcome.CONSENSUS
                    return result
                logger.info(f"{initiator.display_name} disagrees. Continuing iteration...")
                continue

            result.reviewer_approved = False
            result.phase = TaskPhase.INITIATOR_TURN
            logger.info(f"{initiator.display_name}: addressing {reviewer.display_name}'s feedback...")
            prompt = build_revise_prompt(reviewer.label, rel(review), rel(deliverable))
            outcome = self._turn(initiator, reviewer, deliverable, prompt)
            if outcome != TurnOutcome.DELIVERED:
                return self._abandon(result, outcome)

        logger.info(f"Round limit ({self.config.max_rounds}) reached without consensus")
        return result

    # -- explore mode --------------------------------------------------------------

    def explore(self) -> List[TaskResult]:
        """Work through the proposal backlog, alternating who picks.

        Stops when the backlog is empty, a pick times out or a proposal task
        ends without consensus.
        """
        results: List[TaskResult] = []
        picker_is_a = True
        while not self.state.cancelled:
            backlog = self.exchange.load_backlog()
            if not len(backlog):
                logger.info("Proposal backlog is empty")
                break

            logger.info(f"{RULE} Explore: {len(backlog)} proposal(s) {RULE}")
            for proposal in backlog.by_priority():
                logger.info(f"  [{proposal.priority.value}] {proposal.title}")

            if picker_is_a:
                pairing = Pairing(initiator=self.agent_a, reviewer=self.agent_b)
            else:
                pairing = Pairing(initiator=self.agent_b, reviewer=self.agent_a)
            pairing.assign_roles()
            picker_is_a = not picker_is_a
            picker, partner = pairing.initiator, pairing.reviewer

            number = self._claim_number(None)
            self.state.metrics.reset()
            self.state.start_task()
            # The picker starts implementing as soon as it has picked
            self.exchange.clean_task_artifacts()
            deliverable = self._deliverable(pairing)
            task_since = self.exchange.baseline(self.exchange.task_path)
            deliverable_since = self.exchange.baseline(deliverable)

            rel = self.exchange.relative
            logger.info(f"{picker.display_name} picks the next proposal...")
            self.scrutiny.instruct(
                picker,
                build_pick_prompt(
                    rel(self.exchange.proposals_path), rel(self.exchange.task_path), rel(deliverable)
                ),
            )
            picked = self.exchange.wait_for_fresh_artifact(
                self.exchange.task_path,
                task_since,
                self.config.selection_timeout,
                panes=(picker, partner),
                on_poll=self.permissions.try_auto_approve,
            )
            if not picked:
                logger.info(f"{picker.display_name} didn't select a proposal in time")
                break

            logger.info(f"{picker.display_name} selected a proposal, starting task #{number}")
            self._sync_backlog(backlog)

            result = self.run_cycle(pairing, number, since=deliverable_since)
            self.report(result)
            results.append(result)
            if not result.consensus:
                logger.info("No consensus on proposal task, stopping explore mode")
                break
        return results

    def _sync_backlog(self, before: ProposalBacklog) -> None:
        """Drop the picked proposal if the picker left it in the backlog."""
        after = self.exchange.load_backlog()
        if len(after) < len(before):
            return
        picked = after.match_task(self.exchange.read_task())
        if picked is None:
            logger.warning("Could not tell which proposal was picked; backlog left unchanged")
            return
        after.remove(picked.title)
        self.exchange.save_backlog(after)
        logger.info(f"Removed picked proposal from backlog: {picked.title}")

    # -- turns ---------------------------------------------------------------------

    def _turn(
        self, agent: Agent, partner: Agent, artifact: Path, prompt: str, deliver_notes: bool = True
    ) -> TurnOutcome:
        if deliver_notes:
            self.scrutiny.deliver_queued_notes(agent)
        since = self.exchange.baseline(artifact)
        self.scrutiny.instruct(agent, prompt)
        return self._await_turn(agent, partner, artifact, since)

    def _await_turn(self, agent: Agent, partner: Agent, artifact: Path, since: float) -> TurnOutcome:
        outcome = self.monitor.run(agent, partner, artifact, since)
        if outcome != TurnOutcome.DELIVERED:
            return outcome
        try:
            self.observer.wait_for_idle(agent, on_poll=self.permissions.try_auto_approve)
        except IdleTimeoutError as e:
            logger.warning(str(e))
        self.record_turn()
        return outcome

    def _abandon(self, result: TaskResult, outcome: TurnOutcome) -> TaskResult:
        logger.error(f"Task #{result.number} abandoned ({outcome.value}) during {result.phase.value}")
        result.phase = TaskPhase.ABANDONED
        result.outcome = TaskOutcome.ABANDONED
        return result

    def _deliverable(self, pairing: Pairing) -> Path:
        return self.exchange.root / pairing.deliverable_name

    def _review(self, pairing: Pairing) -> Path:
        return self.exchange.root / pairing.review_name

    def _claim_number(self, number: Optional[int]) -> int:
        self.task_number = number if number is not None else self.task_number + 1
        return self.task_number

    # -- reporting -------------------------------------------------------------------

    def record_turn(self) -> None:
        metrics = self.state.metrics
        metrics.turns += 1
        metrics.bridge_bytes = self.exchange.bridge_bytes()
        if self.config.track_tokens:
            logger.info(
                f"Turn {metrics.turns} complete | Bridge I/O: ~{metrics.bridge_bytes} bytes "
                f"(~{metrics.estimated_tokens} tokens) | Observations: {metrics.observations} | "
                f"Interjections: {metrics.interjections}"
            )

    def report(self, result: TaskResult) -> None:
        logger.info(f"{RULE} Task #{result.number} complete {RULE}")
        if result.consensus:
            logger.info(f"Result: CONSENSUS REACHED after {result.review_rounds} review round(s)")
        elif result.outcome == TaskOutcome.ABANDONED:
            logger.info("Result: task abandoned")
        elif result.reviewer_approved:
            logger.info(
                f"Result: Agent {result.reviewer} approved, "
                f"Agent {result.initiator} did not confirm consensus"
            )
        else:
            logger.info("Result: No consensus reached")

        for agent in (self.agent_a, self.agent_b):
            for path in sorted(self.exchange.root.glob(f"{agent.slug}_to_*.md")):
                logger.info(f"  {agent.display_name}: {path}")

        learned = []
        for agent in (self.agent_a, self.agent_b):
            if agent.config_file not in learned:
                learned.append(agent.config_file)
        for config_file in learned:
            if (self.exchange.project_dir / config_file).is_file():
                logger.info(f"  Learned: {config_file} (project notes)")

        self.report_metrics()

    def report_metrics(self) -> None:
        if not self.config.track_tokens:
            return
        metrics = self.state.metrics
        metrics.bridge_bytes = self.exchange.bridge_bytes()
        minutes, seconds = divmod(metrics.elapsed_seconds, 60)
        logger.info(f"{RULE} Token Usage Report {RULE}")
        logger.info(f"Wall time:       {minutes}m {seconds}s")
        logger.info(f"Turns:           {metrics.turns}")
        logger.info(f"Observations:    {metrics.observations}")
        logger.info(f"Interjections:   {metrics.interjections}")
        logger.info(f"Bridge I/O:      {metrics.bridge_bytes} bytes")
        logger.info(
            f"Est. bridge tokens: ~{metrics.estimated_tokens} "
            f"(bridge files only, excludes agent tool use)"
        )
