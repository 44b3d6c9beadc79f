"""Tests for the tmux client wrapper."""

import shutil
import uuid
from unittest.mock import MagicMock, call, patch

import pytest
from libtmux.exc import LibTmuxException

from duet_bridge.clients.tmux import TmuxClient, TmuxError


def cmd_result(stdout=(), stderr=()):
    result = MagicMock()
    result.stdout = list(stdout)
    result.stderr = list(stderr)
    return result


@pytest.fixture
def client():
    with patch("duet_bridge.clients.tmux.libtmux.Server") as mock_server_cls:
        client = TmuxClient()
        client.server = mock_server_cls.return_value
        client.server.cmd.return_value = cmd_result()
        yield client


class TestTmuxClient:
    def test_send_text_is_literal(self, client):
        client.send_text("%3", "Read .bridge/pair/task.md")
        client.server.cmd.assert_called_once_with("send-keys", "-t", "%3", "-l", "Read .bridge/pair/task.md")

    def test_send_key(self, client):
        client.send_key("%3", "Escape")
        client.server.cmd.assert_called_once_with("send-keys", "-t", "%3", "Escape")

    def test_capture_with_scrollback(self, client):
        client.server.cmd.return_value = cmd_result(["line 1", "line 2"])
        assert client.capture_pane("%3", 40) == "line 1\nline 2"
        client.server.cmd.assert_called_once_with("capture-pane", "-p", "-t", "%3", "-S", "-40")

    def test_capture_failure_is_empty(self, client):
        client.server.cmd.return_value = cmd_result(stderr=["can't find pane: %9"])
        assert client.capture_pane("%9") == ""

    def test_stderr_raises(self, client):
        client.server.cmd.return_value = cmd_result(stderr=["no server running"])
        with pytest.raises(TmuxError, match="no server running"):
            client.kill_session("pair")

    def test_list_panes(self, client):
        client.server.cmd.return_value = cmd_result(["%1", "%2", ""])
        assert client.list_panes("pair") == ["%1", "%2"]

    def test_session_exists_treats_tmux_errors_as_missing(self, client):
        client.server.has_session.side_effect = LibTmuxException("no server running")
        assert client.session_exists("pair") is False

    def test_session_exists_propagates_unexpected_errors(self, client):
        client.server.has_session.side_effect = TypeError("bad argument")
        with pytest.raises(TypeError):
            client.session_exists("pair")

    def test_capture_libtmux_failure_is_empty(self, client):
        client.server.cmd.side_effect = LibTmuxException("server exited")
        assert client.capture_pane("%3") == ""

    def test_capture_propagates_unexpected_errors(self, client):
        client.server.cmd.side_effect = AttributeError("stdout")
        with pytest.raises(AttributeError):
            client.capture_pane("%3")

    def test_create_pair_session(self, client):
        def fake_cmd(*args):
            if args[0] == "list-panes":
                return cmd_result(["%1", "%2"])
            return cmd_result()

        client.server.cmd.side_effect = fake_cmd
        panes = client.create_pair_session("pair", "/work", ("Agent A (pair)", "Agent B (pair)"))

        assert panes == ["%1", "%2"]
        client.server.new_session.assert_called_once_with(
            session_name="pair", attach=False, x=220, y=50, start_directory="/work"
        )
        assert call("split-window", "-h", "-t", "pair", "-c", "/work") in client.server.cmd.call_args_list
        assert call("select-pane", "-t", "%2", "-T", "Agent B (pair)") in client.server.cmd.call_args_list


@pytest.mark.integration
@pytest.mark.skipif(shutil.which("tmux") is None, reason="tmux not installed")
class TestTmuxClientIntegration:
    def test_round_trip(self, tmp_path):
        client = TmuxClient()
        name = f"duet-test-{uuid.uuid4().hex[:8]}"
        try:
            panes = client.create_pair_session(name, str(tmp_path), ("left", "right"))
            assert len(panes) == 2
            client.send_text(panes[0], "echo duet-marker")
            client.send_key(panes[0], "Enter")
            assert client.session_exists(name)
        finally:
            client.kill_session(name)
        assert not client.session_exists(name)
