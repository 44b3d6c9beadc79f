"""Codex CLI provider implementation."""

import re
from typing import List, Optional

from duet_bridge.models.prompt import PromptKind
from duet_bridge.providers.base import BaseProvider, PromptCue

# Regex patterns for Codex permission prompts
#   Would you like to make the following edits?
#   src/selection.py (+13 -2)
#   › 1. Yes, proceed (y)
#     2. Yes, and don't ask again for these files (a)
#     3. No, and tell Codex what to do differently (esc)
EDIT_TRIGGER_PATTERN = r"Would you like to make the following edits"
EDIT_FILE_PATTERN = r"([^\s]+\.[a-zA-Z]+) \(\+\d+ -\d+\)"
# Shown when the prompt is visible but the diff header scrolled away
UNKNOWN_EDIT_TARGET = "(codex)"

#   Would you like to run the following command?
#   $ pytest -q tests/
BASH_TRIGGER_PATTERN = r"Would you like to run the following command"
COMMAND_LINE_PATTERN = r"^\s*\$ (.*)$"


def extract_edit_target(text: str) -> Optional[str]:
    matches = re.findall(EDIT_FILE_PATTERN, text)
    return matches[-1] if matches else UNKNOWN_EDIT_TARGET


def extract_command(text: str) -> Optional[str]:
    matches = [m.strip() for m in re.findall(COMMAND_LINE_PATTERN, text, re.MULTILINE)]
    matches = [m for m in matches if m]
    return matches[-1] if matches else None


class CodexProvider(BaseProvider):
    """Provider for Codex CLI tool integration."""

    name = "codex"
    executables = ("codex",)
    config_file = "AGENTS.md"

    def prompt_cues(self) -> List[PromptCue]:
        return [
            PromptCue("codex-edit", PromptKind.EDIT, EDIT_TRIGGER_PATTERN, extract_edit_target),
            PromptCue("codex-bash", PromptKind.CODEX_BASH, BASH_TRIGGER_PATTERN, extract_command),
        ]
