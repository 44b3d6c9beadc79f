"""Per-session state passed by reference through the bridge."""

import time
from typing import Dict

from pydantic import BaseModel, Field

from duet_bridge.constants import CHARS_PER_TOKEN
from duet_bridge.models.agent import Agent


class BridgeMetrics(BaseModel):
    """Turn/observation/interjection counters and bridge I/O volume.

    Byte counts only cover the exchange files, not the agents' own tool use.
    """

    started_at: float = Field(default_factory=time.time)
    turns: int = 0
    observations: int = 0
    interjections: int = 0
    bridge_bytes: int = 0

    def reset(self) -> None:
        self.started_at = time.time()
        self.turns = 0
        self.observations = 0
        self.interjections = 0
        self.bridge_bytes = 0

    @property
    def estimated_tokens(self) -> int:
        return self.bridge_bytes // CHARS_PER_TOKEN

    @property
    def elapsed_seconds(self) -> int:
        return int(time.time() - self.started_at)


class SessionState(BaseModel):
    """Mutable session record: agents, metrics and observation bookkeeping."""

    session: str
    agents: Dict[str, Agent] = Field(default_factory=dict)
    metrics: BridgeMetrics = Field(default_factory=BridgeMetrics)
    # Scrutiny requests sent during the current task (drives first-observation grace)
    task_observations: int = 0
    # worker label -> {path: md5} from the previous observation snapshot
    file_states: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    cancelled: bool = False

    def agent(self, label: str) -> Agent:
        return self.agents[label.upper()]

    def start_task(self) -> None:
        self.task_observations = 0
        self.file_states.clear()
