"""Unit tests for configuration loading and precedence."""

import json
import os

import pytest

from duet_bridge.config import ConfigError, load_config
from duet_bridge.constants import TURN_TIMEOUT


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("DUET_"):
            monkeypatch.delenv(key)


@pytest.fixture
def config_file(tmp_path):
    def _write(data):
        path = tmp_path / "duet.json"
        path.write_text(json.dumps(data) if not isinstance(data, str) else data)
        return str(path)

    return _write


class TestDefaults:
    def test_defaults(self):
        config = load_config()
        assert config.session == "pair"
        assert config.agent_a == "claude"
        assert config.agent_b == "codex"
        assert config.turn_timeout == TURN_TIMEOUT
        assert config.max_rounds == 0
        assert config.auto_approve is False


class TestPrecedence:
    def test_json_over_default(self, config_file):
        config = load_config(config_file({"timing": {"turn_timeout": 900}, "limits": {"max_rounds": 4}}))
        assert config.turn_timeout == 900
        assert config.max_rounds == 4

    def test_env_over_json(self, config_file, monkeypatch):
        monkeypatch.setenv("DUET_TURN_TIMEOUT", "120")
        config = load_config(config_file({"timing": {"turn_timeout": 900}}))
        assert config.turn_timeout == 120

    def test_cli_over_env(self, monkeypatch):
        monkeypatch.setenv("DUET_SESSION", "from-env")
        config = load_config(overrides={"session": "from-cli", "turn_timeout": None})
        assert config.session == "from-cli"
        assert config.turn_timeout == TURN_TIMEOUT

    def test_empty_env_is_unset(self, config_file, monkeypatch):
        monkeypatch.setenv("DUET_SESSION", "")
        assert load_config(config_file({"session": "json-session"})).session == "json-session"

    @pytest.mark.parametrize("raw, expected", [("1", True), ("yes", True), ("On", True), ("0", False)])
    def test_env_booleans(self, monkeypatch, raw, expected):
        monkeypatch.setenv("DUET_AUTO_APPROVE", raw)
        assert load_config().auto_approve is expected

    def test_nested_agent_commands(self, config_file):
        config = load_config(config_file({"agents": {"a": "codex", "b": "claude --model sonnet"}}))
        assert config.agent_a == "codex"
        assert config.agent_b == "claude --model sonnet"


class TestValidation:
    def test_unknown_top_level_key(self, config_file):
        with pytest.raises(ConfigError, match="Unknown config keys: timeouts"):
            load_config(config_file({"timeouts": {}}))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "missing.json"))

    def test_invalid_json(self, config_file):
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(config_file("{not json"))

    def test_non_numeric_env(self, monkeypatch):
        monkeypatch.setenv("DUET_POLL_INTERVAL", "fast")
        with pytest.raises(ConfigError, match="DUET_POLL_INTERVAL"):
            load_config()

    def test_out_of_range(self, config_file):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(config_file({"approval": {"always_option_min_choices": 1}}))


class TestPaths:
    def test_session_dir(self, tmp_path):
        config = load_config(overrides={"work_dir": str(tmp_path), "session": "s1"})
        assert config.session_dir == tmp_path / ".bridge" / "s1"
