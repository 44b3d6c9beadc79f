"""Unit tests for permission prompt recognition on captured panes.

Fixtures are literal captures of each supported rendering:
  claude_bash_block    Claude Code 2.x "Bash command" header block
  claude_bash_inline   older boxed "Bash(<cmd>)" on one line
  claude_bash_wrapped  older boxed "Bash(<cmd>" wrapped over two lines
  claude_edit          "Do you want to make this edit to <file>?"
  codex_edit           "Would you like to make the following edits?"
  codex_bash           "Would you like to run the following command?"
  idle_no_prompt       idle screen whose prose resembles a question
"""

from pathlib import Path

import pytest

from duet_bridge.models.prompt import PromptKind
from duet_bridge.providers.base import count_menu_options, has_always_option
from duet_bridge.services.prompt_recognizer import recognize

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(filename: str) -> str:
    with open(FIXTURES_DIR / filename, "r", encoding="utf-8") as f:
        return f.read()


class TestClaudeCodePrompts:
    def test_bash_command_block(self):
        prompt = recognize(load_fixture("claude_bash_block.txt"))
        assert prompt is not None
        assert prompt.kind == PromptKind.BASH
        assert prompt.payload == "python3 run_tests.py --verbose"
        assert prompt.option_count == 3
        assert prompt.has_always_option is True

    def test_inline_bash_in_box(self):
        prompt = recognize(load_fixture("claude_bash_inline.txt"))
        assert prompt is not None
        assert prompt.kind == PromptKind.BASH
        assert prompt.payload == "pytest -q tests/test_parser.py"
        assert prompt.option_count == 3

    def test_wrapped_bash_is_rejoined(self):
        prompt = recognize(load_fixture("claude_bash_wrapped.txt"))
        assert prompt is not None
        assert prompt.payload == (
            "cd /home/dev/project && python3 scripts/generate_report.py "
            "--input data/raw.csv --output out/report.md"
        )
        assert prompt.option_count == 2
        assert prompt.has_always_option is False

    def test_edit_prompt(self):
        prompt = recognize(load_fixture("claude_edit.txt"))
        assert prompt is not None
        assert prompt.kind == PromptKind.EDIT
        assert prompt.payload == "parser.py"
        assert prompt.option_count == 3
        assert prompt.has_always_option is True

    def test_create_prompt(self):
        text = " Create file\n Do you want to create converter.py?\n ❯ 1. Yes\n   2. No\n"
        prompt = recognize(text)
        assert prompt is not None
        assert prompt.kind == PromptKind.EDIT
        assert prompt.payload == "converter.py"

    def test_trigger_without_readable_command_is_not_a_prompt(self):
        """The bash trigger owns the screen even when the command scrolled away."""
        text = "some output\n Do you want to proceed?\n ❯ 1. Yes\n   2. No\n"
        assert recognize(text) is None


class TestCodexPrompts:
    def test_edit_prompt(self):
        prompt = recognize(load_fixture("codex_edit.txt"))
        assert prompt is not None
        assert prompt.kind == PromptKind.EDIT
        assert prompt.payload == "src/selection.py"
        assert prompt.option_count == 3
        assert prompt.has_always_option is True

    def test_edit_prompt_without_diff_header(self):
        text = "  Would you like to make the following edits?\n\n› 1. Yes, proceed (y)\n"
        prompt = recognize(text)
        assert prompt is not None
        assert prompt.payload == "(codex)"

    def test_bash_prompt(self):
        prompt = recognize(load_fixture("codex_bash.txt"))
        assert prompt is not None
        assert prompt.kind == PromptKind.CODEX_BASH
        assert prompt.payload == "pytest -q tests/"
        assert prompt.kind.is_command


class TestNoPrompt:
    @pytest.mark.parametrize("text", ["", "❯ \n", "Running tests...\n3 passed in 0.2s\n"])
    def test_plain_screens(self, text):
        assert recognize(text) is None

    def test_question_in_prose(self):
        assert recognize(load_fixture("idle_no_prompt.txt")) is None

    def test_ansi_sequences_are_ignored(self):
        text = "\x1b[1m Bash command\x1b[0m\n\n   \x1b[36mls -la\x1b[0m\n\n Do you want to proceed?\n"
        prompt = recognize(text)
        assert prompt is not None
        assert prompt.payload == "ls -la"


class TestMenuHelpers:
    def test_menu_must_start_at_one(self):
        assert count_menu_options("  2. Yes\n  3. No\n") == 0

    def test_menu_stops_at_gap(self):
        assert count_menu_options("❯ 1. Yes\n  2. Maybe\n  4. No\n") == 2

    def test_always_option_wording(self):
        assert has_always_option("2. Yes, and do not ask again")
        assert has_always_option("2. Yes, allow all edits during this session")
        assert not has_always_option("2. No, and tell Claude what to do differently")
