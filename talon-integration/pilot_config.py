"""
Talon Pilot Configuration
=========================
Paths, timeouts and readiness settings, resolved once per process.

Resolution order (later wins):
1. Built-in defaults
2. JSON file at TALON_PILOT_CONFIG, or <talon_home>/pilot_config.json
3. Environment variables

Environment variables:
    TALON_HOME                 Talon home directory (default ~/.talon)
    TALON_REPL_PATH            REPL executable (default ~/.talon/.venv/bin/repl)
    TALON_APP_NAME             process name (default Talon)
    TALON_APP_PATH             application bundle (default /Applications/Talon.app)
    TALON_PILOT_READINESS      timestamp | log | repl
    TALON_PILOT_POLL_INTERVAL  seconds between polls
    TALON_PILOT_SETTLE_DELAY   seconds between exit and relaunch
    TALON_PILOT_EXIT_TIMEOUT   seconds to wait for exit
    TALON_PILOT_READY_TIMEOUT  seconds to wait for readiness
    TALON_PILOT_SPEECH_TIMEOUT seconds to wait for the first recognised phrase
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from pilot_logging import get_logger

logger = get_logger("config")

READINESS_STRATEGIES = ("timestamp", "log", "repl")

DEFAULT_READY_MARKER = "Talon startup complete"
DEFAULT_SPEECH_MARKER = "Speech detected"


class ConfigError(ValueError):
    """Raised when a configuration value cannot be used"""


@dataclass(frozen=True)
class PilotConfig:
    """Immutable pilot configuration"""
    talon_home: Path
    repl_path: Path
    app_name: str = "Talon"
    app_path: str = "/Applications/Talon.app"
    readiness: str = "timestamp"
    poll_interval: float = 0.2
    settle_delay: float = 0.5
    exit_timeout: float = 10.0
    ready_timeout: float = 30.0
    speech_timeout: float = 15.0
    ready_marker: str = DEFAULT_READY_MARKER
    speech_marker: str = DEFAULT_SPEECH_MARKER

    @property
    def log_path(self) -> Path:
        return self.talon_home / "talon.log"

    @property
    def user_path(self) -> Path:
        return self.talon_home / "user"

    @property
    def marker_path(self) -> Path:
        return self.talon_home / "startup_timestamp"

    @property
    def status_path(self) -> Path:
        return self.talon_home / "startup_status.json"

    @property
    def history_dir(self) -> Path:
        return self.talon_home / "startup_history"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["talon_home"] = str(self.talon_home)
        data["repl_path"] = str(self.repl_path)
        data["log_path"] = str(self.log_path)
        data["user_path"] = str(self.user_path)
        data["marker_path"] = str(self.marker_path)
        data["status_path"] = str(self.status_path)
        data["history_dir"] = str(self.history_dir)
        return data


# Config keys that hold seconds, and their environment variable names
_FLOAT_FIELDS = {
    "poll_interval": "TALON_PILOT_POLL_INTERVAL",
    "settle_delay": "TALON_PILOT_SETTLE_DELAY",
    "exit_timeout": "TALON_PILOT_EXIT_TIMEOUT",
    "ready_timeout": "TALON_PILOT_READY_TIMEOUT",
    "speech_timeout": "TALON_PILOT_SPEECH_TIMEOUT",
}

_STR_FIELDS = {
    "app_name": "TALON_APP_NAME",
    "app_path": "TALON_APP_PATH",
    "readiness": "TALON_PILOT_READINESS",
    "ready_marker": "TALON_PILOT_READY_MARKER",
    "speech_marker": "TALON_PILOT_SPEECH_MARKER",
}


def _load_config_file(path: Path) -> Dict[str, Any]:
    """Load the optional JSON config file; problems are logged and ignored."""
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return {}
    return data


def _to_seconds(name: str, value: Any) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if seconds < 0:
        raise ConfigError(f"{name} must not be negative, got {seconds}")
    return seconds


def load_config(env: Optional[Mapping[str, str]] = None,
                config_file: Optional[Path] = None) -> PilotConfig:
    """Build a PilotConfig from defaults, an optional JSON file and the environment."""
    env = os.environ if env is None else env
    home = Path.home()

    talon_home = Path(env.get("TALON_HOME") or home / ".talon")
    repl_path = Path(env.get("TALON_REPL_PATH") or home / ".talon" / ".venv" / "bin" / "repl")

    if config_file is None:
        config_file = Path(env.get("TALON_PILOT_CONFIG") or talon_home / "pilot_config.json")
    overrides = _load_config_file(Path(config_file))

    values: Dict[str, Any] = {}
    for key in list(_FLOAT_FIELDS) + list(_STR_FIELDS):
        if key in overrides:
            values[key] = overrides[key]

    for key, var in _FLOAT_FIELDS.items():
        if env.get(var):
            values[key] = env[var]
    for key, var in _STR_FIELDS.items():
        if env.get(var):
            values[key] = env[var]

    for key in _FLOAT_FIELDS:
        if key in values:
            values[key] = _to_seconds(key, values[key])
    for key in _STR_FIELDS:
        if key in values:
            values[key] = str(values[key])

    config = PilotConfig(talon_home=talon_home, repl_path=repl_path, **values)

    if config.readiness not in READINESS_STRATEGIES:
        raise ConfigError(
            f"Unknown readiness strategy {config.readiness!r}, "
            f"expected one of {', '.join(READINESS_STRATEGIES)}"
        )
    if config.poll_interval <= 0:
        raise ConfigError("poll_interval must be greater than zero")

    logger.debug(f"Loaded config: home={config.talon_home}, readiness={config.readiness}")
    return config


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_config: Optional[PilotConfig] = None


def get_config() -> PilotConfig:
    """Get the process-wide configuration, loading it on first use"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """Forget the cached configuration (used by tests)"""
    global _config
    _config = None
