"""Unit tests for the proposal backlog."""

from duet_bridge.models.proposal import Priority, Proposal, ProposalBacklog

BACKLOG = """\
PROPOSAL: Add CSV export
REASON: Users keep asking to open reports in spreadsheets,
  and the JSON output is hard to read.
PRIORITY: HIGH

- PROPOSAL: Cache lookups
- REASON: repeated parses of the same file
- PRIORITY: low

PROPOSAL: Document the config file
PRIORITY: urgent
"""


class TestParse:
    def test_entries(self):
        backlog = ProposalBacklog.parse(BACKLOG)
        assert [p.title for p in backlog.proposals] == [
            "Add CSV export",
            "Cache lookups",
            "Document the config file",
        ]

    def test_multiline_reason_is_joined(self):
        proposal = ProposalBacklog.parse(BACKLOG).proposals[0]
        assert proposal.reason == (
            "Users keep asking to open reports in spreadsheets, and the JSON output is hard to read."
        )

    def test_priorities(self):
        backlog = ProposalBacklog.parse(BACKLOG)
        assert [p.priority for p in backlog.proposals] == [Priority.HIGH, Priority.LOW, Priority.MEDIUM]

    def test_empty(self):
        assert len(ProposalBacklog.parse("")) == 0
        assert len(ProposalBacklog.parse("# Proposals\n\nnothing yet\n")) == 0


class TestEditing:
    def test_append_skips_duplicate_titles(self):
        backlog = ProposalBacklog.parse(BACKLOG)
        assert not backlog.append(Proposal(title="add csv export"))
        assert backlog.append(Proposal(title="Profile startup"))
        assert len(backlog) == 4

    def test_remove(self):
        backlog = ProposalBacklog.parse(BACKLOG)
        assert backlog.remove("Cache lookups")
        assert not backlog.remove("Cache lookups")
        assert backlog.find("cache lookups") is None

    def test_by_priority(self):
        titles = [p.title for p in ProposalBacklog.parse(BACKLOG).by_priority()]
        assert titles == ["Add CSV export", "Document the config file", "Cache lookups"]

    def test_match_task_finds_title_in_description(self):
        backlog = ProposalBacklog.parse(BACKLOG)
        picked = backlog.match_task("# Task\n\nCache lookups: memoize parse() per path")
        assert picked.title == "Cache lookups"
        assert backlog.match_task("# Task\n\nsomething else entirely") is None

    def test_render_parses_back(self):
        backlog = ProposalBacklog.parse(BACKLOG)
        again = ProposalBacklog.parse(backlog.render())
        assert [(p.title, p.priority) for p in again.proposals] == [
            (p.title, p.priority) for p in backlog.proposals
        ]
