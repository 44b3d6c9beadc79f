"""Claude Code provider implementation."""

import re
from typing import List, Optional

from duet_bridge.models.prompt import PromptKind
from duet_bridge.providers.base import BaseProvider, PromptCue

# Regex patterns for Claude Code permission prompts
# "Do you want to create converter.py?" / "Do you want to make this edit to economy.py?"
EDIT_PROMPT_PATTERN = r"Do you want to (?:create|edit|make this edit to) ([^\s?]+)"
BASH_TRIGGER_PATTERN = r"(Do you want to proceed|Permission rule)"
# Newer layout: a "Bash command" header with the command on the next non-blank line
BASH_HEADER_PATTERN = r"Bash command"
BASH_BLOCK_STOP_PATTERN = r"Permission rule|Do you want"
# Older layout: "Bash(<cmd>)" on one line, or wrapped over a few lines
BASH_INLINE_PATTERN = r"Bash\((.+)\)"
BASH_WRAP_LINES = 4
# Side borders of the prompt box
BOX_BORDER_CHARS = "│┃|"


def _strip_border(line: str) -> str:
    return line.strip().strip(BOX_BORDER_CHARS).strip()


def extract_edit_target(text: str) -> Optional[str]:
    matches = re.findall(EDIT_PROMPT_PATTERN, text)
    return matches[-1] if matches else None


def extract_bash_command(text: str) -> Optional[str]:
    """Reconstruct the command shown in a Claude Code bash confirmation."""
    lines = text.splitlines()

    found_header = False
    for line in lines:
        if not found_header:
            found_header = bool(re.search(BASH_HEADER_PATTERN, line))
            continue
        trimmed = _strip_border(line)
        if not trimmed:
            continue
        if re.search(BASH_BLOCK_STOP_PATTERN, trimmed):
            break
        return trimmed

    inline = []
    for line in lines:
        inline.extend(re.findall(BASH_INLINE_PATTERN, line))
    if inline:
        return inline[-1].strip()

    starts = [i for i, line in enumerate(lines) if "Bash(" in line]
    if starts:
        window = " ".join(_strip_border(line) for line in lines[starts[-1] : starts[-1] + BASH_WRAP_LINES])
        match = re.search(BASH_INLINE_PATTERN, window)
        if match:
            return match.group(1).strip()

    return None


class ClaudeCodeProvider(BaseProvider):
    """Provider for Claude Code CLI tool integration."""

    name = "claude_code"
    executables = ("claude",)
    config_file = "CLAUDE.md"

    def launch_command(self, command: str) -> str:
        # Prefix with env -u CLAUDECODE to bypass the nested-session guard when
        # the bridge itself is started from within a Claude Code session
        return f"env -u CLAUDECODE {command}"

    def prompt_cues(self) -> List[PromptCue]:
        return [
            PromptCue("claude-edit", PromptKind.EDIT, EDIT_PROMPT_PATTERN, extract_edit_target),
            PromptCue("claude-bash", PromptKind.BASH, BASH_TRIGGER_PATTERN, extract_bash_command),
        ]
