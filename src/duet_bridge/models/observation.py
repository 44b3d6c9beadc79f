"""Error severity, observation snapshots and scrutiny outcomes."""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field


class ErrorSeverity(str, Enum):
    NONE = "none"
    TRANSIENT = "transient"
    SERIOUS = "serious"


class ScrutinyMode(str, Enum):
    """Why the idle agent is being asked to look at the worker."""

    PERIODIC = "periodic"
    ERROR = "error"
    STALL = "stall"


class ScrutinyOutcome(str, Enum):
    INTERJECT = "interject"        # interrupt the worker and forward feedback
    NOTED = "noted"                # queued for the next turn boundary
    OK = "ok"                      # nothing to do
    SKIPPED = "skipped"            # request never sent
    INCONCLUSIVE = "inconclusive"  # observer did not answer in time


class TurnOutcome(str, Enum):
    DELIVERED = "delivered"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class ObservationSnapshot(BaseModel):
    """What the observer gets to see of the worker's progress."""

    worker_label: str
    screen: str = ""
    files: Dict[str, str] = Field(
        default_factory=dict, description="path -> md5 of files modified since task start"
    )
    changed: List[str] = Field(
        default_factory=list, description="Paths new or changed since the previous snapshot"
    )
    has_changes: bool = False
