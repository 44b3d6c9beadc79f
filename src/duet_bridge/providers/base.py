"""Base provider for CLI agent products."""

import re
import shlex
from typing import Callable, List, Optional

from duet_bridge.models.prompt import PermissionPrompt, PromptKind

# Numbered menu entry, optionally inside a box and behind a selection cursor:
# "❯ 1. Yes", "  2. No", "│ ❯ 1. Yes"
MENU_OPTION_PATTERN = r"^[\s│┃|]*(?:[❯›>]\s*)?(\d+)\.\s+\S"
ALWAYS_OPTION_PATTERN = r"(allow all edits|don't ask again|do not ask again)"


class PromptCue:
    """One product-specific permission prompt rendering.

    ``trigger`` decides whether the cue owns the screen. Once a cue triggers,
    its ``extract`` result is final: ``None`` means the prompt is visible but
    its payload could not be read, and later cues are not consulted.
    """

    def __init__(
        self,
        name: str,
        kind: PromptKind,
        trigger: str,
        extract: Callable[[str], Optional[str]],
    ):
        self.name = name
        self.kind = kind
        self.trigger = re.compile(trigger)
        self.extract = extract

    def triggered(self, text: str) -> bool:
        return bool(self.trigger.search(text))

    def __repr__(self) -> str:
        return f"PromptCue({self.name!r}, {self.kind.value!r})"


class BaseProvider:
    """A CLI agent product the bridge knows how to launch and read."""

    name = "generic"
    executables: tuple = ()
    config_file = "PROJECT_NOTES.md"

    def matches(self, command: str) -> bool:
        try:
            parts = shlex.split(command)
        except ValueError:
            parts = command.split()
        return any(part.rsplit("/", 1)[-1] in self.executables for part in parts)

    def launch_command(self, command: str) -> str:
        """Shell command typed into the pane to start the agent."""
        return command

    def prompt_cues(self) -> List[PromptCue]:
        """Permission prompt renderings, highest priority first."""
        return []


def build_prompt(cue: PromptCue, text: str) -> Optional[PermissionPrompt]:
    payload = cue.extract(text)
    if not payload:
        return None
    return PermissionPrompt(
        kind=cue.kind,
        payload=payload,
        option_count=count_menu_options(text),
        has_always_option=has_always_option(text),
    )


def count_menu_options(text: str) -> int:
    numbers = {int(n) for n in re.findall(MENU_OPTION_PATTERN, text, re.MULTILINE)}
    # Only a contiguous menu starting at 1 counts
    count = 0
    while count + 1 in numbers:
        count += 1
    return count


def has_always_option(text: str) -> bool:
    return bool(re.search(ALWAYS_OPTION_PATTERN, text, re.IGNORECASE))


class GenericProvider(BaseProvider):
    """Fallback for agent CLIs without product-specific prompt cues."""

    pass


class AiderProvider(BaseProvider):
    name = "aider"
    executables = ("aider",)
    config_file = ".aider.conf.yml"
