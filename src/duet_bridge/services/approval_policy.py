"""Auto-approval policy for permission prompts.

Commands are approved only through an explicit path: an allow-listed prefix
or a script signature learned from an earlier approval. Anything else is
denied and left on screen for a human.
"""

import logging
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional

from duet_bridge.constants import ALWAYS_OPTION_MIN_CHOICES
from duet_bridge.models.prompt import ApprovalDecision, PermissionPrompt, PromptKind

logger = logging.getLogger(__name__)


class SafetyMode(str, Enum):
    STANDARD = "standard"
    SECURE = "secure"


# Leading "cd <dir> &&" and "NAME=value" prefixes are not part of the command
CD_PREFIX_PATTERN = re.compile(r"^cd\s[^&]*&&\s*")
ENV_ASSIGNMENT_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=\S*\s+")

# Pipes, chaining and command substitution
DANGEROUS_OPERATORS_PATTERN = re.compile(r"[;|`]|\$\(|&&")
# Boundaries of the individual commands inside a compound command line
COMMAND_SEPARATOR_PATTERN = re.compile(r"&&|\|\||\$\(|[;|&`\n]")

SAFE_COMMAND_PATTERNS = {
    SafetyMode.STANDARD: re.compile(
        r"^(ls|ll|la|dir|tree|pwd|du|df|cat|head|tail|wc|sort|uniq|diff|file|stat|mkdir|cd"
        r"|chmod|chown|echo|printf|which|type|env|export|find|grep|rg|sleep|pytest|py\.test"
        r"|node|ruby|perl"
        r"|git\s+(status|log|diff|branch|show|tag)"
        r"|pip\s+(list|show|install)"
        r"|npm\s+(list|ls|test|install|run)"
        r"|yarn\s(list|test|install|run)"
        r"|cargo\s+(build|test|check|clippy|run)"
        r"|docker\s+(run|exec|build|ps|logs|images|compose)"
        r"|docker-compose|python|python3)(\s|$)"
    ),
    SafetyMode.SECURE: re.compile(
        r"^(ls|ll|la|dir|tree|pwd|du|df|cat|head|tail|wc|sort|uniq|diff|file|stat|mkdir|cd"
        r"|echo|printf|which|type|env|export|grep|rg|sleep|pytest|py\.test"
        r"|git\s+(status|log|diff|branch|show|tag)"
        r"|pip\s+(list|show)"
        r"|npm\s+(list|ls|test)"
        r"|yarn\s(list|test)"
        r"|cargo\s+(build|test|check|clippy)"
        r"|python\s+-m|python3\s+-m)(\s|$)"
    ),
}

BLOCKED_COMMAND_PATTERNS = {
    SafetyMode.STANDARD: re.compile(r"^(rm|rmdir|sudo|git\s+(push|reset|clean|checkout\s+\.))"),
    SafetyMode.SECURE: re.compile(
        r"^(rm|rmdir|sudo|dd|mv|chmod|chown|chattr|git\s+(push|reset|clean|checkout\s+\.))"
    ),
}

# Credential stores, shell/SSH/GPG config, environment files, system directories
SENSITIVE_PATH_PATTERN = re.compile(
    r"(\.ssh|\.gnupg|\.bash|\.zsh|\.profile|\.git/hooks|/etc/|/root/|\.env|credentials"
    r"|secrets|authorized_keys|known_hosts|id_rsa|\.pem|\.key)"
)

# "python3 run.py", "node build.js", "bash t.sh" ...
SCRIPT_INTERPRETER_PATTERN = re.compile(
    r"(python3?|node|ruby|perl|bash|sh|tsx?|npx)\s+\S+\.(py|js|ts|rb|pl|sh|tsx)"
)
# "./run.sh"
SCRIPT_DIRECT_PATTERN = re.compile(r"\./\S+")
CHAIN_SEPARATOR_PATTERN = re.compile(r"[&;]")


def effective_command(command: str) -> str:
    """Strip a leading ``cd <dir> &&`` and leading environment assignments."""
    effective = CD_PREFIX_PATTERN.sub("", command.strip(), count=1)
    while ENV_ASSIGNMENT_PATTERN.match(effective):
        effective = ENV_ASSIGNMENT_PATTERN.sub("", effective, count=1)
    return effective


def has_dangerous_operators(command: str) -> bool:
    return bool(DANGEROUS_OPERATORS_PATTERN.search(command))


def command_segments(command: str) -> List[str]:
    """Split a compound command line into its individual commands.

    ``ls && rm -rf tmp`` -> ``["ls", "rm -rf tmp"]``. Subshell parentheses and
    leading environment assignments are stripped from each part.
    """
    segments = []
    for part in COMMAND_SEPARATOR_PATTERN.split(command):
        part = effective_command(part.strip().lstrip("({ ").rstrip(")} "))
        if part:
            segments.append(part)
    return segments


def script_signature(command: str) -> Optional[str]:
    """Normalise a command to the script it runs, ignoring its arguments.

    ``cd app && python run.py --epochs 3`` -> ``python run.py``;
    ``./test.sh -v`` -> ``./test.sh``. Returns ``None`` for commands that do
    not run a script file.
    """
    last = CHAIN_SEPARATOR_PATTERN.split(command)[-1].strip()
    match = SCRIPT_INTERPRETER_PATTERN.search(last)
    if match:
        return match.group(0)
    match = SCRIPT_DIRECT_PATTERN.search(last)
    if match:
        return match.group(0)
    return None


class ScriptLedger:
    """Persistent, append-only set of approved script signatures.

    One signature per line in ``approved_scripts.txt``.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._signatures: List[str] = []
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if self.path is None or not self.path.exists():
            return
        for line in self.path.read_text(encoding="utf-8", errors="replace").splitlines():
            line = line.strip()
            if line and line not in self._signatures:
                self._signatures.append(line)

    def __contains__(self, signature: str) -> bool:
        self._load()
        return signature in self._signatures

    def __len__(self) -> int:
        self._load()
        return len(self._signatures)

    def add(self, signature: str) -> bool:
        """Record a signature; returns False if it was already known."""
        self._load()
        if signature in self._signatures:
            return False
        self._signatures.append(signature)
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(f"{signature}\n")
        return True


class ApprovalPolicy:
    """Decides which permission prompts may be answered without a human."""

    def __init__(
        self,
        mode: SafetyMode = SafetyMode.STANDARD,
        ledger: Optional[ScriptLedger] = None,
        always_option_min_choices: int = ALWAYS_OPTION_MIN_CHOICES,
    ):
        self.mode = mode
        self.ledger = ledger if ledger is not None else ScriptLedger()
        self.always_option_min_choices = always_option_min_choices

    @property
    def secure(self) -> bool:
        return self.mode == SafetyMode.SECURE

    def decide(self, prompt: PermissionPrompt) -> ApprovalDecision:
        if prompt.kind == PromptKind.EDIT:
            return self._decide_edit(prompt)
        return self._decide_command(prompt)

    def _decide_edit(self, prompt: PermissionPrompt) -> ApprovalDecision:
        if self.secure and SENSITIVE_PATH_PATTERN.search(prompt.payload):
            return ApprovalDecision.deny(f"sensitive file: {prompt.payload}")
        if self._can_select_always(prompt):
            return ApprovalDecision.approve("file edit (allow all edits)", select_always=True)
        return ApprovalDecision.approve("file edit")

    def _decide_command(self, prompt: PermissionPrompt) -> ApprovalDecision:
        reason = self.command_approval_reason(prompt.payload)
        if reason is None:
            return ApprovalDecision.deny("not on the allow-list")
        # Claude Code's bash menu offers a per-prefix grant that is broader
        # than the bridge's own rules; only Codex's is taken
        if prompt.kind == PromptKind.CODEX_BASH and self._can_select_always(prompt):
            return ApprovalDecision.approve(f"{reason} (don't ask again)", select_always=True)
        return ApprovalDecision.approve(reason)

    def command_approval_reason(self, command: str) -> Optional[str]:
        """Return why a command may run unattended, or None to deny it."""
        effective = effective_command(command)
        if self.secure and has_dangerous_operators(effective):
            return None
        blocked = BLOCKED_COMMAND_PATTERNS[self.mode]
        if any(blocked.search(segment) for segment in command_segments(effective)):
            return None
        if SAFE_COMMAND_PATTERNS[self.mode].search(effective):
            return "allow-listed command"
        signature = script_signature(effective)
        if signature and signature in self.ledger:
            return f"learned script {signature}"
        return None

    def should_approve(self, command: str) -> bool:
        return self.command_approval_reason(command) is not None

    def _can_select_always(self, prompt: PermissionPrompt) -> bool:
        # On a two-option menu the second entry is "No"
        return prompt.has_always_option and prompt.option_count >= self.always_option_min_choices

    def remember(self, command: str) -> Optional[str]:
        """Learn the script a command runs so later runs with any arguments pass."""
        effective = CD_PREFIX_PATTERN.sub("", command.strip(), count=1)
        if self.secure and has_dangerous_operators(effective):
            return None
        signature = script_signature(effective)
        if signature and self.ledger.add(signature):
            logger.info(f"Learned script approval: {signature} (future re-runs auto-approved)")
        return signature

    def is_remembered(self, command: str) -> bool:
        signature = script_signature(effective_command(command))
        return bool(signature) and signature in self.ledger
