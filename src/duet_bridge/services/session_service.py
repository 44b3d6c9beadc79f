"""Session lifecycle: lock, tmux bootstrap and one-shot teardown."""

import logging
import os
import signal
import sys
import time
from typing import Dict, List, Optional

from duet_bridge.clients.tmux import TmuxClient, TmuxError, tmux_client
from duet_bridge.config import BridgeConfig
from duet_bridge.constants import AGENT_LABELS
from duet_bridge.models.agent import Agent
from duet_bridge.models.session import SessionState
from duet_bridge.prompts import build_instructions
from duet_bridge.providers.manager import provider_manager
from duet_bridge.services.approval_policy import ApprovalPolicy, SafetyMode, ScriptLedger
from duet_bridge.services.exchange import ArtifactExchange
from duet_bridge.services.orchestrator import Orchestrator
from duet_bridge.services.pane_observer import PaneObserver
from duet_bridge.services.permission_service import PermissionService
from duet_bridge.services.scrutiny_service import ScrutinyService

logger = logging.getLogger(__name__)

TEARDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class SessionLockedError(Exception):
    """Raised when another live bridge holds the session lock."""

    pass


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


class BridgeSession:
    """Wires the services for one bridge session and owns its resources."""

    def __init__(self, config: BridgeConfig, client: Optional[TmuxClient] = None):
        self.config = config
        self.client = client or tmux_client
        self.exchange = ArtifactExchange(config)
        self.state = SessionState(session=config.session)
        for label, command in zip(AGENT_LABELS, (config.agent_a, config.agent_b)):
            self.state.agents[label] = Agent(
                label=label,
                command=command,
                config_file=provider_manager.config_file_for(command),
            )

        mode = SafetyMode.SECURE if config.secure else SafetyMode.STANDARD
        self.policy = ApprovalPolicy(
            mode, ScriptLedger(self.exchange.ledger_path), config.always_option_min_choices
        )
        self.observer = PaneObserver(config, self.client)
        self.permissions = PermissionService(config, self.policy, self.client)
        self.scrutiny = ScrutinyService(
            config, self.state, self.exchange, self.observer, self.permissions, self.client
        )
        self.orchestrator = Orchestrator(
            config, self.state, self.exchange, self.observer, self.permissions, self.scrutiny
        )

        self.owns_session = False
        self.owns_lock = False
        self._torn_down = False
        self._previous_handlers: Dict[int, object] = {}

    @property
    def agents(self) -> List[Agent]:
        return [self.state.agent(label) for label in AGENT_LABELS]

    # -- lock ----------------------------------------------------------------------

    def acquire_lock(self) -> None:
        """Take the session lock, reclaiming it from a bridge that no longer runs."""
        lock_path = self.exchange.lock_path
        self.exchange.ensure()
        if lock_path.exists():
            raw = self.exchange.read(lock_path).strip()
            try:
                old_pid = int(raw)
            except ValueError:
                old_pid = 0
            if old_pid and old_pid != os.getpid() and pid_alive(old_pid):
                raise SessionLockedError(
                    f"Session '{self.config.session}' is already running (PID {old_pid}). "
                    f"Use a different session name (-s NAME) or stop the other bridge."
                )
            logger.debug(f"Reclaiming stale session lock (PID {raw or '?'})")
            self.exchange.remove(lock_path)
        self.exchange.write(lock_path, f"{os.getpid()}\n")
        self.owns_lock = True

    def release_lock(self) -> None:
        if self.owns_lock:
            self.exchange.remove(self.exchange.lock_path)
            self.owns_lock = False

    # -- setup -----------------------------------------------------------------------

    def write_instructions(self) -> None:
        bridge_path = self.exchange.relative(self.exchange.root)
        agent_a, agent_b = self.agents
        for agent, partner in ((agent_a, agent_b), (agent_b, agent_a)):
            self.exchange.write(
                self.exchange.instructions_path(agent),
                build_instructions(
                    agent.label,
                    partner.label,
                    bridge_path,
                    agent.config_file,
                    explore=self.config.explore,
                ),
            )

    def start_agents(self) -> None:
        """Create the tmux session and launch both agents, or reattach to a live one."""
        session = self.config.session
        if self.client.session_exists(session):
            logger.info(f"Reusing existing session '{session}', agents keep full context.")
            pane_ids = self.client.list_panes(session)
        else:
            titles = tuple(f"{agent.display_name} ({session})" for agent in self.agents)
            pane_ids = self.client.create_pair_session(
                session, str(self.exchange.project_dir), titles
            )
            for agent, pane_id in zip(self.agents, pane_ids):
                agent.pane_id = pane_id
            logger.info(
                f"Starting Agent A ({self.config.agent_a}) and Agent B ({self.config.agent_b})..."
            )
            for agent in self.agents:
                provider = provider_manager.get_provider(agent.command)
                self.client.send_text(agent.pane_id, provider.launch_command(agent.command))
                self.client.send_key(agent.pane_id, "Enter")
            logger.info("Waiting for CLIs to initialize...")
            time.sleep(self.config.startup_delay)

        if len(pane_ids) < len(AGENT_LABELS):
            raise TmuxError(f"Session '{session}' has {len(pane_ids)} pane(s), expected 2")
        for agent, pane_id in zip(self.agents, pane_ids):
            agent.pane_id = pane_id

    def setup(self) -> None:
        self.exchange.ensure()
        self.acquire_lock()
        self.exchange.ledger_path.touch()
        if self.config.auto_approve:
            if self.config.secure:
                logger.info(
                    "Auto-approve enabled (SECURE): no bare interpreters, no find, "
                    "no pipes or chaining, sensitive files blocked."
                )
            else:
                logger.info("Auto-approve enabled: safe commands and learned scripts are approved.")
        self.write_instructions()
        self.start_agents()
        self.owns_session = True
        logger.info(f"Setup complete. Attach with: tmux attach -t {self.config.session}")

    # -- teardown --------------------------------------------------------------------

    def teardown(self) -> None:
        """Release everything this bridge holds. Safe to call more than once."""
        if self._torn_down:
            return
        self._torn_down = True
        self.state.cancelled = True

        if self.owns_session:
            self.orchestrator.report_metrics()
            logger.info(f"Exiting. Killing tmux session '{self.config.session}'...")
        self.release_lock()
        if self.owns_session:
            try:
                self.client.kill_session(self.config.session)
            except TmuxError as e:
                logger.debug(f"kill-session failed: {e}")
            self.owns_session = False
        self.restore_signal_handlers()

    def install_signal_handlers(self) -> None:
        for signum in TEARDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers = {}

    def _handle_signal(self, signum: int, _frame: object) -> None:
        # A second signal while teardown hangs terminates immediately
        signal.signal(signum, signal.SIG_DFL)
        sig_name = signal.Signals(signum).name
        logger.info(f"Caught {sig_name}, cleaning up...")
        self.teardown()
        sys.exit(128 + signum)

    def __enter__(self) -> "BridgeSession":
        self.install_signal_handlers()
        try:
            self.setup()
        except Exception:
            self.teardown()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()
