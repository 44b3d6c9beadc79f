"""Permission prompt and approval decision models."""

from enum import Enum

from pydantic import BaseModel, Field


class PromptKind(str, Enum):
    """Kind of on-screen permission prompt."""

    BASH = "bash"
    EDIT = "edit"
    # Codex renders its "don't ask again" choice behind a different key, so its
    # command prompts are tracked separately from Claude Code's
    CODEX_BASH = "codex-bash"

    @property
    def is_command(self) -> bool:
        return self in (PromptKind.BASH, PromptKind.CODEX_BASH)


class PermissionPrompt(BaseModel):
    """A pending bash-command or file-edit approval recognized on a pane."""

    kind: PromptKind
    payload: str = Field(..., description="Command line or target filename")
    option_count: int = Field(0, description="Numbered menu options visible on screen")
    has_always_option: bool = Field(
        False, description="An 'allow all' / 'don't ask again' option is visible"
    )
    first_seen_at: float = 0.0
    last_attempt_at: float = 0.0
    attempt_count: int = 0

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.payload}"

    def same_as(self, other: "PermissionPrompt | None") -> bool:
        return other is not None and other.key == self.key


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    DENY = "deny"


class ApprovalDecision(BaseModel):
    """Outcome of the auto-approval policy for one prompt.

    A denial never presses a key; the prompt is left for a human.
    """

    action: ApprovalAction
    select_always: bool = False
    reason: str = ""

    @property
    def approved(self) -> bool:
        return self.action == ApprovalAction.APPROVE

    @classmethod
    def approve(cls, reason: str, select_always: bool = False) -> "ApprovalDecision":
        return cls(action=ApprovalAction.APPROVE, select_always=select_always, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> "ApprovalDecision":
        return cls(action=ApprovalAction.DENY, reason=reason)
