"""
Readiness detection for a freshly launched Talon.

A process existing is not the same as Talon having finished loading user
scripts. Each strategy below answers ``check_ready(cursor)`` from a
different external signal; exactly one is active per deployment, picked by
``PilotConfig.readiness``:

- ``timestamp``: the user scripts rewrite a small marker file on startup
- ``log``: a marker line is appended to talon.log
- ``repl``: the REPL accepts a trivial command
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from pilot_config import PilotConfig
from pilot_logging import get_logger
from pilot_logtail import FileIdentity, file_identity, size_of, read_from, read_whole_file
from pilot_repl import execute_repl

logger = get_logger("readiness")


@dataclass(frozen=True)
class Cursor:
    """Position in the log and marker state captured before a restart.

    log_identity pins the offset to the log file that existed at capture
    time; once that file is rotated away, reads through the cursor are empty.
    """
    log_offset: int = 0
    marker_stamp: Optional[str] = None
    log_identity: Optional[FileIdentity] = None

    def __post_init__(self):
        if self.log_offset < 0:
            raise ValueError("log_offset must not be negative")

    @classmethod
    def capture(cls, log_path: Path, marker_path: Optional[Path] = None) -> "Cursor":
        stamp = None
        if marker_path is not None:
            content = read_whole_file(marker_path)
            stamp = content.strip() if content is not None else None
        return cls(log_offset=size_of(log_path), marker_stamp=stamp,
                   log_identity=file_identity(log_path))


def read_since(log_path: Union[str, Path], cursor: Cursor) -> str:
    """Log text appended since cursor was captured, empty after a rotation"""
    return read_from(log_path, cursor.log_offset, cursor.log_identity)


class ReadinessSignal:
    """Interface: has Talon finished launching since cursor was captured?"""

    name = "base"

    def check_ready(self, cursor: Cursor) -> bool:
        raise NotImplementedError


class LogMarkerReadiness(ReadinessSignal):
    name = "log"

    def __init__(self, log_path: Path, marker: str):
        self.log_path = log_path
        self.marker = marker

    def check_ready(self, cursor: Cursor) -> bool:
        return self.marker in read_since(self.log_path, cursor)


class TimestampFileReadiness(ReadinessSignal):
    name = "timestamp"

    def __init__(self, marker_path: Path):
        self.marker_path = marker_path

    def check_ready(self, cursor: Cursor) -> bool:
        content = read_whole_file(self.marker_path)
        if content is None:
            return False
        stamp = content.strip()
        return bool(stamp) and stamp != cursor.marker_stamp


class ReplProbeReadiness(ReadinessSignal):
    name = "repl"

    def __init__(self, repl_path: Path, timeout: float = 5):
        self.repl_path = repl_path
        self.timeout = timeout

    def check_ready(self, cursor: Cursor) -> bool:
        result = execute_repl('print("ready")', timeout=self.timeout, repl_path=self.repl_path)
        return result.success


def build_readiness_signal(config: PilotConfig) -> ReadinessSignal:
    """Instantiate the strategy named by config.readiness"""
    if config.readiness == "log":
        signal = LogMarkerReadiness(config.log_path, config.ready_marker)
    elif config.readiness == "repl":
        signal = ReplProbeReadiness(config.repl_path)
    else:
        signal = TimestampFileReadiness(config.marker_path)
    logger.debug(f"Using {signal.name} readiness signal")
    return signal
