"""Provider registry."""

import logging
from typing import List

from duet_bridge.providers.base import AiderProvider, BaseProvider, GenericProvider, PromptCue
from duet_bridge.providers.claude_code import ClaudeCodeProvider
from duet_bridge.providers.codex import CodexProvider

logger = logging.getLogger(__name__)


class ProviderManager:
    """Resolves agent commands to providers.

    The order of ``providers`` is also the order in which their prompt cues
    are tried on a captured pane.
    """

    def __init__(self) -> None:
        self.providers: List[BaseProvider] = [ClaudeCodeProvider(), CodexProvider(), AiderProvider()]
        self.fallback = GenericProvider()

    def get_provider(self, command: str) -> BaseProvider:
        for provider in self.providers:
            if provider.matches(command):
                return provider
        logger.debug(f"No dedicated provider for '{command}', using {self.fallback.name}")
        return self.fallback

    def config_file_for(self, command: str) -> str:
        return self.get_provider(command).config_file

    def prompt_cues(self) -> List[PromptCue]:
        cues: List[PromptCue] = []
        for provider in self.providers:
            cues.extend(provider.prompt_cues())
        return cues


# Module-level singleton
provider_manager = ProviderManager()
