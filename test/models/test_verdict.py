"""Unit tests for verdict and feedback parsing."""

import pytest

from duet_bridge.models.verdict import Verdict, is_approval, is_consensus, parse_feedback, parse_verdict


class TestParseVerdict:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Looks good.\nVERDICT: APPROVED", Verdict.APPROVED),
            ("VERDICT: NEEDS_WORK\n1. missing tests", Verdict.NEEDS_WORK),
            ("verdict: needs work", Verdict.NEEDS_WORK),
            ("VERDICT: **CONSENSUS**", Verdict.CONSENSUS),
            ("VERDICT: COMPLETE", Verdict.CONSENSUS),
            ("VERDICT: LGTM", Verdict.CONSENSUS),
            ("No verdict here, just notes.", Verdict.NONE),
            ("", Verdict.NONE),
        ],
    )
    def test_tags(self, text, expected):
        assert parse_verdict(text) == expected

    def test_last_tag_wins(self):
        text = "Previously VERDICT: NEEDS_WORK.\nAll fixed now.\nVERDICT: APPROVED"
        assert parse_verdict(text) == Verdict.APPROVED

    def test_unknown_tag_is_none(self):
        assert parse_verdict("VERDICT: MAYBE") == Verdict.NONE


class TestClasses:
    def test_consensus_counts_as_approval(self):
        assert is_approval("VERDICT: CONSENSUS")
        assert is_approval("VERDICT: APPROVED")
        assert not is_approval("VERDICT: NEEDS_WORK")

    def test_approval_is_not_consensus(self):
        assert not is_consensus("VERDICT: APPROVED")
        assert is_consensus("VERDICT: LGTM")


class TestParseFeedback:
    def test_interject_beats_status(self):
        text = "STATUS: NOTE\nminor naming issue\nINTERJECT: the loop never terminates"
        assert parse_feedback(text) == Verdict.INTERJECT

    def test_note_beats_ok(self):
        assert parse_feedback("STATUS: OK\nSTATUS: NOTE\nrename foo") == Verdict.STATUS_NOTE

    def test_suggestion(self):
        assert parse_feedback("**STATUS: SUGGESTION** try a set") == Verdict.STATUS_SUGGESTION

    def test_ok(self):
        assert parse_feedback("status: ok") == Verdict.STATUS_OK

    def test_interject_must_start_a_line(self):
        assert parse_feedback("STATUS: OK, no need to INTERJECT: all good") == Verdict.STATUS_OK

    def test_unrecognised(self):
        assert parse_feedback("Everything seems fine.") == Verdict.NONE
