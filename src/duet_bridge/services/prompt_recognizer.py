"""Permission prompt recognition.

``recognize`` turns a captured pane into a typed ``PermissionPrompt``. It is a
pure function of the text, so every supported rendering is covered by literal
fixtures under ``test/services/fixtures``.

Recognition is heuristic: it follows the products' on-screen wording, which
changes between releases. ``RECOGNIZER_VERSION`` names the renderings the cues
were written against. A missed prompt is harmless (it waits for a human); a
false match would press keys into an unrelated screen, so cues are anchored
on the products' fixed confirmation phrases only.
"""

from typing import Optional

from duet_bridge.models.prompt import PermissionPrompt
from duet_bridge.providers.base import build_prompt
from duet_bridge.providers.manager import provider_manager
from duet_bridge.utils.terminal import clean_terminal_output

# Claude Code 2.1.x ("Bash command" block and older "Bash(...)" form), Codex CLI 0.x
RECOGNIZER_VERSION = "2025.2"


def recognize(text: str) -> Optional[PermissionPrompt]:
    """Return the pending permission prompt on a captured pane, if any."""
    if not text:
        return None
    clean = clean_terminal_output(text)
    for cue in provider_manager.prompt_cues():
        if cue.triggered(clean):
            return build_prompt(cue, clean)
    return None
