"""Permission prompt handling for both panes.

Each agent keeps at most one pending prompt (``Agent.pending``). A prompt that
is still on screen after an approval is retried once ``approval_retry_after``
seconds have passed, since an injected keystroke may not register. A pending
command prompt that disappears without the bridge approving it was answered
by a human, and the script it ran is learned.
"""

import logging
import time
from typing import Optional

from duet_bridge.clients.tmux import TmuxClient, tmux_client
from duet_bridge.config import BridgeConfig
from duet_bridge.models.agent import Agent
from duet_bridge.models.prompt import ApprovalDecision, PermissionPrompt
from duet_bridge.services.approval_policy import ApprovalPolicy
from duet_bridge.services.prompt_recognizer import recognize

logger = logging.getLogger(__name__)

KEY_SETTLE_DELAY = 0.1
AFTER_APPROVAL_DELAY = 0.2


class PermissionService:
    """Surfaces and (optionally) answers permission prompts on agent panes."""

    def __init__(
        self,
        config: BridgeConfig,
        policy: ApprovalPolicy,
        client: Optional[TmuxClient] = None,
    ):
        self.config = config
        self.policy = policy
        self.client = client or tmux_client

    def pending_prompt(self, agent: Agent) -> Optional[PermissionPrompt]:
        """Return the permission prompt currently on the agent's screen."""
        text = self.client.capture_pane(agent.pane_id, self.config.prompt_lines)
        return recognize(text)

    def try_auto_approve(self, agent: Agent) -> Optional[ApprovalDecision]:
        """Answer the agent's on-screen prompt if the policy allows it.

        Returns the decision taken on this call, or None when nothing was
        attempted (no prompt, auto-approval off, or still inside the retry
        back-off).
        """
        if not self.config.auto_approve:
            return None

        prompt = self.pending_prompt(agent)
        if prompt is None:
            self._resolve_pending(agent)
            return None

        now = time.monotonic()
        pending = agent.pending
        if prompt.same_as(pending):
            if now - pending.last_attempt_at < self.config.approval_retry_after:
                return None
            logger.info(
                f"Retrying auto-approve for {agent.display_name} "
                f"(previous attempt may not have registered)"
            )
            prompt.first_seen_at = pending.first_seen_at
            prompt.attempt_count = pending.attempt_count
        else:
            prompt.first_seen_at = now
        prompt.last_attempt_at = now
        prompt.attempt_count += 1
        agent.pending = prompt

        decision = self.policy.decide(prompt)
        if decision.approved:
            logger.info(
                f"Auto-approving {prompt.kind.value} for {agent.display_name}: "
                f"{prompt.payload} ({decision.reason})"
            )
            self._press_approve(agent, decision)
            if prompt.kind.is_command:
                self.policy.remember(prompt.payload)
        else:
            if prompt.attempt_count == 1:
                logger.warning(
                    f"Awaiting manual approval for {agent.display_name}: "
                    f"{prompt.payload} ({decision.reason})"
                )
        return decision

    def _resolve_pending(self, agent: Agent) -> None:
        pending = agent.pending
        if pending is None:
            return
        if pending.kind.is_command:
            # Gone without an approval from us: a human answered it
            self.policy.remember(pending.payload)
        agent.pending = None

    def _press_approve(self, agent: Agent, decision: ApprovalDecision) -> None:
        if decision.select_always:
            self.client.send_key(agent.pane_id, "Down")
            time.sleep(KEY_SETTLE_DELAY)
        self.client.send_key(agent.pane_id, "Enter")
        time.sleep(AFTER_APPROVAL_DELAY)
