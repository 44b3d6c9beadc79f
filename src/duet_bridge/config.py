"""Bridge configuration.

Values come from an optional JSON file, ``DUET_*`` environment variables and
CLI flags. Precedence (highest to lowest): CLI flags > env vars > JSON file >
defaults. Empty env vars are treated as unset.

The ``timing`` durations are in seconds of poll time: loops advance their clock
by ``poll_interval`` per poll, so time spent inside a scrutiny request or a
keystroke delay does not count against a turn, stall or cooldown budget. A
``turn_timeout`` of 3600 with a 1s ``poll_interval`` is 3600 polls.

Example JSON file::

    {
      "session": "pair",
      "agents": {"a": "claude", "b": "codex"},
      "approval": {"auto_approve": true, "secure": false},
      "timing": {"turn_timeout": 3600, "stall_timeout": 600},
      "limits": {"max_rounds": 5}
    }
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from duet_bridge.constants import (
    ALWAYS_OPTION_MIN_CHOICES,
    APPROVAL_RETRY_AFTER,
    BRIDGE_DIR_NAME,
    DEFAULT_AGENT_A_COMMAND,
    DEFAULT_AGENT_B_COMMAND,
    DEFAULT_SESSION,
    ERROR_COOLDOWN,
    ERROR_PATIENCE,
    FIRST_OBSERVE_DELAY,
    IDLE_CHECKS,
    MAX_ROUNDS,
    MONITOR_CAPTURE_LINES,
    OBSERVE_INTERVAL,
    POLL_INTERVAL,
    PROMPT_CAPTURE_LINES,
    SCRUTINY_TIMEOUT,
    SELECTION_TIMEOUT,
    SNAPSHOT_CAPTURE_LINES,
    SNAPSHOT_MAX_FILES,
    STALL_TIMEOUT,
    STARTUP_DELAY,
    TURN_TIMEOUT,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "DUET_"

VALID_TOP_LEVEL_KEYS = frozenset(
    {
        "session", "work_dir", "agents", "approval", "timing", "limits",
        "capture", "track_tokens", "explore",
    }
)

# (json_dotted_path, env_var_name, hardcoded_default, value_type)
# The env var is read with the DUET_ prefix; its lowercase name is the field.
_CONFIG_KEYS: list[tuple[str, str, object, type]] = [
    ("session",                             "SESSION",                    DEFAULT_SESSION,            str),
    ("work_dir",                            "WORK_DIR",                   "",                         str),
    ("agents.a",                            "AGENT_A",                    DEFAULT_AGENT_A_COMMAND,    str),
    ("agents.b",                            "AGENT_B",                    DEFAULT_AGENT_B_COMMAND,    str),
    ("approval.auto_approve",               "AUTO_APPROVE",               False,                      bool),
    ("approval.secure",                     "SECURE",                     False,                      bool),
    ("approval.retry_after",                "APPROVAL_RETRY_AFTER",       APPROVAL_RETRY_AFTER,       float),
    ("approval.always_option_min_choices",  "ALWAYS_OPTION_MIN_CHOICES",  ALWAYS_OPTION_MIN_CHOICES,  int),
    ("timing.poll_interval",                "POLL_INTERVAL",              POLL_INTERVAL,              float),
    ("timing.idle_checks",                  "IDLE_CHECKS",                IDLE_CHECKS,                int),
    ("timing.turn_timeout",                 "TURN_TIMEOUT",               TURN_TIMEOUT,               int),
    ("timing.stall_timeout",                "STALL_TIMEOUT",              STALL_TIMEOUT,              int),
    ("timing.observe_interval",             "OBSERVE_INTERVAL",           OBSERVE_INTERVAL,           int),
    ("timing.first_observe_delay",          "FIRST_OBSERVE_DELAY",        FIRST_OBSERVE_DELAY,        int),
    ("timing.error_cooldown",               "ERROR_COOLDOWN",             ERROR_COOLDOWN,             int),
    ("timing.scrutiny_timeout",             "SCRUTINY_TIMEOUT",           SCRUTINY_TIMEOUT,           int),
    ("timing.selection_timeout",            "SELECTION_TIMEOUT",          SELECTION_TIMEOUT,          int),
    ("timing.startup_delay",                "STARTUP_DELAY",              STARTUP_DELAY,              float),
    ("limits.error_patience",               "ERROR_PATIENCE",             ERROR_PATIENCE,             int),
    ("limits.max_rounds",                   "MAX_ROUNDS",                 MAX_ROUNDS,                 int),
    ("limits.snapshot_max_files",           "SNAPSHOT_MAX_FILES",         SNAPSHOT_MAX_FILES,         int),
    ("capture.monitor_lines",               "MONITOR_LINES",              MONITOR_CAPTURE_LINES,      int),
    ("capture.snapshot_lines",              "SNAPSHOT_LINES",             SNAPSHOT_CAPTURE_LINES,     int),
    ("capture.prompt_lines",                "PROMPT_LINES",               PROMPT_CAPTURE_LINES,       int),
    ("track_tokens",                        "TRACK_TOKENS",               False,                      bool),
    ("explore",                             "EXPLORE",                    False,                      bool),
]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class ConfigError(Exception):
    """Raised when the bridge configuration is invalid."""

    pass


class BridgeConfig(BaseModel):
    """Validated bridge settings."""

    session: str = Field(DEFAULT_SESSION, min_length=1)
    work_dir: str = ""
    agent_a: str = Field(DEFAULT_AGENT_A_COMMAND, min_length=1)
    agent_b: str = Field(DEFAULT_AGENT_B_COMMAND, min_length=1)
    auto_approve: bool = False
    secure: bool = False
    approval_retry_after: float = Field(APPROVAL_RETRY_AFTER, ge=0)
    always_option_min_choices: int = Field(ALWAYS_OPTION_MIN_CHOICES, ge=2)
    poll_interval: float = Field(POLL_INTERVAL, gt=0)
    idle_checks: int = Field(IDLE_CHECKS, ge=1)
    turn_timeout: int = Field(TURN_TIMEOUT, gt=0)
    stall_timeout: int = Field(STALL_TIMEOUT, ge=0)
    observe_interval: int = Field(OBSERVE_INTERVAL, gt=0)
    first_observe_delay: int = Field(FIRST_OBSERVE_DELAY, ge=0)
    error_cooldown: int = Field(ERROR_COOLDOWN, ge=0)
    scrutiny_timeout: int = Field(SCRUTINY_TIMEOUT, gt=0)
    selection_timeout: int = Field(SELECTION_TIMEOUT, gt=0)
    startup_delay: float = Field(STARTUP_DELAY, ge=0)
    error_patience: int = Field(ERROR_PATIENCE, ge=0)
    max_rounds: int = Field(MAX_ROUNDS, ge=0)
    snapshot_max_files: int = Field(SNAPSHOT_MAX_FILES, ge=1)
    monitor_lines: int = Field(MONITOR_CAPTURE_LINES, ge=1)
    snapshot_lines: int = Field(SNAPSHOT_CAPTURE_LINES, ge=1)
    prompt_lines: int = Field(PROMPT_CAPTURE_LINES, ge=1)
    track_tokens: bool = False
    explore: bool = False

    @property
    def project_dir(self) -> Path:
        return Path(self.work_dir) if self.work_dir else Path.cwd()

    @property
    def bridge_root(self) -> Path:
        return self.project_dir / BRIDGE_DIR_NAME

    @property
    def session_dir(self) -> Path:
        return self.bridge_root / self.session


def _get_json_value(data: dict, dotted_key: str) -> object | None:
    """Retrieve a value from nested JSON using dotted key (e.g., 'timing.turn_timeout')."""
    parts = dotted_key.split(".")
    obj: object = data
    for part in parts:
        if not isinstance(obj, dict) or part not in obj:
            return None
        obj = obj[part]
    return obj


def _coerce(value: object, typ: type, source: str) -> object:
    try:
        if typ is bool:
            if isinstance(value, str):
                return value.strip().lower() in _TRUE_VALUES
            return bool(value)
        if typ is int:
            return int(value)
        if typ is float:
            return float(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {source}: {value!r} ({e})")


def _parse_env(env_var: str, typ: type) -> object | None:
    """Read env var; return None if unset or empty string (treated as unset)."""
    raw = os.environ.get(env_var)
    if raw is None or raw == "":
        return None
    return _coerce(raw, typ, env_var)


def _read_json(config_path: Path) -> dict:
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {config_path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")

    unknown = set(data.keys()) - VALID_TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    return data


def load_config(
    config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None
) -> BridgeConfig:
    """Load config from optional JSON file + env vars + hardcoded defaults.

    ``overrides`` holds CLI flag values keyed by field name; ``None`` entries
    are ignored so unset flags fall through to the lower layers.
    """
    json_data: dict = _read_json(Path(config_path)) if config_path else {}

    # Build flat config: defaults -> JSON overrides -> env var overrides
    cfg: Dict[str, Any] = {}
    for json_path, env_var, default, typ in _CONFIG_KEYS:
        value = default
        json_val = _get_json_value(json_data, json_path)
        if json_val is not None:
            value = _coerce(json_val, typ, json_path)
        env_val = _parse_env(f"{ENV_PREFIX}{env_var}", typ)
        if env_val is not None:
            value = env_val
        cfg[env_var.lower()] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            cfg[key] = value

    try:
        config = BridgeConfig(**cfg)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    logger.debug(f"Loaded configuration: {config.model_dump()}")
    return config
