"""Unit tests for observation snapshots and scrutiny requests."""

from unittest.mock import patch

import pytest

from duet_bridge.models.observation import ScrutinyMode, ScrutinyOutcome

CLAUDE_EDIT = " Do you want to make this edit to app.py?\n ❯ 1. Yes\n   2. No (esc)\n"


@pytest.fixture(autouse=True)
def no_git():
    with patch("duet_bridge.services.scrutiny_service.is_git_repo", return_value=False):
        yield


@pytest.fixture
def session(make_session, no_sleep):
    session = make_session()
    session.exchange.write_task("# Task\n\nbuild it")
    return session


def answer_with(fake_tmux, session, artifact_writer, text):
    """Make Agent B answer every scrutiny request with ``text``."""
    worker = session.state.agent("A")
    feedback = session.exchange.feedback_path(worker)
    fake_tmux.on_text["%2"] = lambda message: artifact_writer(feedback, text)
    return feedback


class TestSnapshots:
    def test_first_snapshot_always_has_changes(self, session, fake_tmux):
        worker = session.state.agent("A")
        fake_tmux.screens["%1"] = "⏺ Writing parser.py\n"
        snapshot = session.scrutiny.capture_snapshot(worker)
        assert snapshot.has_changes
        content = session.exchange.read(session.exchange.snapshot_path(worker))
        assert "Writing parser.py" in content
        assert "(none)" in content

    def test_changed_files_are_tracked_between_snapshots(self, session, tmp_path, artifact_writer):
        worker = session.state.agent("A")
        session.scrutiny.capture_snapshot(worker)

        artifact_writer(tmp_path / "src" / "parser.py", "def parse():\n    pass\n")
        snapshot = session.scrutiny.capture_snapshot(worker)
        assert snapshot.has_changes
        assert snapshot.changed == ["src/parser.py"]
        content = session.exchange.read(session.exchange.snapshot_path(worker))
        assert "--- src/parser.py (2 lines) ---" in content

        unchanged = session.scrutiny.capture_snapshot(worker)
        assert not unchanged.has_changes
        assert unchanged.changed == []

    def test_excluded_directories_are_skipped(self, session, tmp_path, artifact_writer):
        artifact_writer(tmp_path / "node_modules" / "x.js", "x")
        artifact_writer(tmp_path / ".git" / "HEAD", "ref")
        artifact_writer(tmp_path / "app.py", "print()")
        assert list(session.scrutiny.changed_files()) == ["app.py"]


class TestRequest:
    def test_periodic_without_changes_is_skipped(self, session, fake_tmux):
        worker, observer = session.agents
        session.scrutiny.capture_snapshot(worker)
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.PERIODIC)
        assert outcome == ScrutinyOutcome.SKIPPED
        assert fake_tmux.texts("%2") == []

    def test_pending_prompt_on_observer_skips_request(self, session, fake_tmux):
        worker, observer = session.agents
        fake_tmux.screens["%2"] = CLAUDE_EDIT
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.ERROR)
        assert outcome == ScrutinyOutcome.SKIPPED
        assert session.state.metrics.observations == 0

    def test_ok_feedback_is_discarded(self, session, fake_tmux, artifact_writer):
        worker, observer = session.agents
        feedback = answer_with(fake_tmux, session, artifact_writer, "STATUS: OK\nLooks on track.")
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.PERIODIC)
        assert outcome == ScrutinyOutcome.OK
        assert not feedback.exists()
        assert session.state.task_observations == 1

    def test_first_periodic_request_introduces_the_task(self, session, fake_tmux, artifact_writer):
        worker, observer = session.agents
        answer_with(fake_tmux, session, artifact_writer, "STATUS: OK")
        session.scrutiny.request(worker, observer, ScrutinyMode.PERIODIC)
        assert fake_tmux.texts("%2")[0].startswith("NEW TASK: read")

    def test_note_is_queued(self, session, fake_tmux, artifact_writer):
        worker, observer = session.agents
        feedback = answer_with(fake_tmux, session, artifact_writer, "STATUS: NOTE\nparse() ignores quotes")
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.PERIODIC)
        assert outcome == ScrutinyOutcome.NOTED
        assert not feedback.exists()
        queued = session.exchange.read(session.exchange.queued_notes_path(worker))
        assert "parse() ignores quotes" in queued

    def test_interject_keeps_feedback(self, session, fake_tmux, artifact_writer):
        worker, observer = session.agents
        feedback = answer_with(fake_tmux, session, artifact_writer, "INTERJECT: wrong algorithm")
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.STALL)
        assert outcome == ScrutinyOutcome.INTERJECT
        assert feedback.exists()

    def test_no_answer_is_inconclusive(self, session, fake_tmux):
        worker, observer = session.agents
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.ERROR)
        assert outcome == ScrutinyOutcome.INCONCLUSIVE
        assert len(fake_tmux.texts("%2")) == 1

    def test_stale_feedback_file_is_not_an_answer(self, session, fake_tmux, artifact_writer):
        worker, observer = session.agents
        artifact_writer(session.exchange.feedback_path(worker), "INTERJECT: old news")
        outcome = session.scrutiny.request(worker, observer, ScrutinyMode.ERROR)
        assert outcome == ScrutinyOutcome.INCONCLUSIVE

    def test_later_requests_mention_queued_notes(self, session, fake_tmux, artifact_writer):
        worker, observer = session.agents
        session.exchange.append(session.exchange.queued_notes_path(worker), "STATUS: NOTE\nmissing tests")
        answer_with(fake_tmux, session, artifact_writer, "STATUS: OK")
        session.state.task_observations = 1
        session.scrutiny.request(worker, observer, ScrutinyMode.PERIODIC)
        message = fake_tmux.texts("%2")[0]
        assert "You already noted these issues this turn" in message
        assert "missing tests" in message


class TestDelivery:
    def test_queued_notes_are_moved_and_announced(self, session, fake_tmux):
        worker = session.state.agent("A")
        session.exchange.append(session.exchange.queued_notes_path(worker), "STATUS: NOTE\nrename foo")
        assert session.scrutiny.deliver_queued_notes(worker) is True
        assert not session.exchange.queued_notes_path(worker).exists()
        assert "rename foo" in session.exchange.read(session.exchange.notes_path(worker))
        assert "notes_for_a.md" in fake_tmux.texts("%1")[0]

    def test_nothing_queued(self, session, fake_tmux):
        assert session.scrutiny.deliver_queued_notes(session.state.agent("A")) is False
        assert fake_tmux.sent == []

    def test_forward_interrupts_then_instructs(self, session, fake_tmux):
        worker, observer = session.agents
        deliverable = session.exchange.handoff_path(worker, observer)
        session.scrutiny.forward_feedback(worker, observer, deliverable)
        assert fake_tmux.sent[0] == ("%1", "key", "Escape")
        assert fake_tmux.sent[1] == ("%1", "key", "Escape")
        assert "feedback_for_a.md" in fake_tmux.sent[2][2]
        assert session.state.metrics.interjections == 1
