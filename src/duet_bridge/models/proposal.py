"""Follow-up task proposals (explore mode backlog)."""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

PROPOSAL_LINE_RE = re.compile(r"^\s*[-*]?\s*PROPOSAL:\s*(.*)$", re.IGNORECASE)
REASON_LINE_RE = re.compile(r"^\s*[-*]?\s*REASON:\s*(.*)$", re.IGNORECASE)
PRIORITY_LINE_RE = re.compile(r"^\s*[-*]?\s*PRIORITY:\s*(\w+)", re.IGNORECASE)


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return {"HIGH": 0, "MEDIUM": 1, "LOW": 2}[self.value]


class Proposal(BaseModel):
    title: str
    reason: str = ""
    priority: Priority = Priority.MEDIUM

    def render(self) -> str:
        return (
            f"PROPOSAL: {self.title}\n"
            f"REASON: {self.reason}\n"
            f"PRIORITY: {self.priority.value}\n"
        )


class ProposalBacklog(BaseModel):
    """Shared proposal list. Entries are only ever appended or removed."""

    proposals: List[Proposal] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.proposals)

    @classmethod
    def parse(cls, text: str) -> "ProposalBacklog":
        proposals: List[Proposal] = []
        current: Optional[Proposal] = None
        in_reason = False

        for line in (text or "").splitlines():
            proposal_match = PROPOSAL_LINE_RE.match(line)
            if proposal_match:
                current = Proposal(title=proposal_match.group(1).strip())
                proposals.append(current)
                in_reason = False
                continue
            if current is None:
                continue
            reason_match = REASON_LINE_RE.match(line)
            if reason_match:
                current.reason = reason_match.group(1).strip()
                in_reason = True
                continue
            priority_match = PRIORITY_LINE_RE.match(line)
            if priority_match:
                try:
                    current.priority = Priority(priority_match.group(1).upper())
                except ValueError:
                    current.priority = Priority.MEDIUM
                in_reason = False
                continue
            stripped = line.strip()
            if in_reason and stripped and not stripped.startswith("```"):
                current.reason = f"{current.reason} {stripped}".strip()
            elif not stripped:
                in_reason = False

        return cls(proposals=proposals)

    def render(self) -> str:
        return "\n".join(p.render() for p in self.proposals)

    def append(self, proposal: Proposal) -> bool:
        """Add a proposal unless one with the same title exists."""
        if self.find(proposal.title) is not None:
            return False
        self.proposals.append(proposal)
        return True

    def find(self, title: str) -> Optional[Proposal]:
        wanted = title.strip().lower()
        for proposal in self.proposals:
            if proposal.title.strip().lower() == wanted:
                return proposal
        return None

    def remove(self, title: str) -> bool:
        proposal = self.find(title)
        if proposal is None:
            return False
        self.proposals.remove(proposal)
        return True

    def match_task(self, task_text: str) -> Optional[Proposal]:
        """Return the proposal whose title appears in a task description."""
        lowered = (task_text or "").lower()
        for proposal in self.by_priority():
            if proposal.title and proposal.title.lower() in lowered:
                return proposal
        return None

    def by_priority(self) -> List[Proposal]:
        return sorted(self.proposals, key=lambda p: p.priority.rank)
