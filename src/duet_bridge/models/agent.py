"""Agent models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from duet_bridge.constants import HANDOFF_TEMPLATE
from duet_bridge.models.prompt import PermissionPrompt


class AgentRole(str, Enum):
    """Role an agent plays within one task cycle."""

    INITIATOR = "initiator"
    REVIEWER = "reviewer"


class Agent(BaseModel):
    """One of the two paired CLI agents."""

    label: str = Field(..., description="Agent label (A or B)")
    command: str = Field(..., description="CLI launched in the pane")
    pane_id: str = Field("", description="tmux pane handle, e.g. %3")
    config_file: str = Field(..., description="Project config file the agent learns into")
    role: Optional[AgentRole] = Field(None, description="Role in the current cycle")
    pending: Optional[PermissionPrompt] = Field(
        None, description="Last unresolved permission prompt seen on this pane"
    )

    @property
    def slug(self) -> str:
        return self.label.lower()

    @property
    def display_name(self) -> str:
        return f"Agent {self.label}"


class Pairing(BaseModel):
    """Initiator/reviewer assignment for one task cycle."""

    initiator: Agent
    reviewer: Agent

    def assign_roles(self) -> "Pairing":
        self.initiator.role = AgentRole.INITIATOR
        self.reviewer.role = AgentRole.REVIEWER
        return self

    @property
    def deliverable_name(self) -> str:
        """Initiator -> reviewer handoff file name."""
        return HANDOFF_TEMPLATE.format(src=self.initiator.slug, dst=self.reviewer.slug)

    @property
    def review_name(self) -> str:
        """Reviewer -> initiator handoff file name."""
        return HANDOFF_TEMPLATE.format(src=self.reviewer.slug, dst=self.initiator.slug)
