"""Unit tests for error severity classification."""

import pytest

from duet_bridge.models.observation import ErrorSeverity
from duet_bridge.services.error_classifier import classify


class TestSerious:
    def test_fatal_signal_followed_by_calm_prose(self):
        text = (
            "$ ./bin/simulate --steps 1000\n"
            "Segmentation fault (core dumped)\n"
            "⏺ The simulation crashed. Let me look at the buffer sizes, the rest\n"
            "  of the code looks fine and the tests were passing earlier.\n"
        )
        assert classify(text) == ErrorSeverity.SERIOUS

    @pytest.mark.parametrize(
        "line", ["Bus error", "Aborted (core dumped)", "received SIGSEGV in worker 3", "Killed"]
    )
    def test_fatal_renderings(self, line):
        assert classify(f"running...\n{line}\n") == ErrorSeverity.SERIOUS

    def test_killed_mid_sentence_is_not_fatal(self):
        assert classify("Killed processes are restarted by the supervisor.\n") == ErrorSeverity.NONE


class TestTransient:
    def test_traceback_header(self):
        text = (
            "Traceback (most recent call last):\n"
            '  File "app.py", line 3, in <module>\n'
            "    import yaml\n"
            "ModuleNotFoundError: No module named 'yaml'\n"
        )
        assert classify(text) == ErrorSeverity.TRANSIENT

    @pytest.mark.parametrize(
        "text",
        [
            "bash: pytset: command not found",
            "ValueError: invalid literal for int()",
            "FAILED tests/test_parser.py::test_quotes",
            "cat: missing.txt: No such file or directory",
            "Error: Cannot find module 'express'",
            "Process finished with exit code 2",
        ],
    )
    def test_structural_indicators(self, text):
        assert classify(text) == ErrorSeverity.TRANSIENT


class TestNone:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "I fixed the race condition in the cache and improved error handling.\n",
            "⏺ Added an error message for empty input and a test for it.\n",
            "12 passed in 0.40s\n",
        ],
    )
    def test_prose_without_indicators(self, text):
        assert classify(text) == ErrorSeverity.NONE

    def test_ansi_is_stripped_before_matching(self):
        assert classify("\x1b[31mSegmentation fault\x1b[0m\n") == ErrorSeverity.SERIOUS
