"""
Reader for the startup status snapshots Talon user scripts write.

``~/.talon/startup_status.json`` holds the most recent launch; older ones
are kept as timestamped files in ``~/.talon/startup_history/``. The item
shapes match what ``pilot_startup_parser`` produces.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from pilot_config import get_config
from pilot_logging import get_logger
from pilot_startup_parser import StartupError, StartupWarning

logger = get_logger("startup_status")

MAX_HISTORY = 20


@dataclass
class StartupStatus:
    timestamp: str
    error_count: int = 0
    warning_count: int = 0
    errors: List[StartupError] = field(default_factory=list)
    warnings: List[StartupWarning] = field(default_factory=list)
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StartupStatus":
        errors = [StartupError.from_dict(e) for e in data.get("errors") or [] if isinstance(e, dict)]
        warnings = [StartupWarning.from_dict(w) for w in data.get("warnings") or [] if isinstance(w, dict)]
        error_count = int(data.get("error_count", len(errors)))
        return cls(
            timestamp=str(data.get("timestamp", "")),
            error_count=error_count,
            warning_count=int(data.get("warning_count", len(warnings))),
            errors=errors,
            warnings=warnings,
            success=bool(data.get("success", error_count == 0)),
        )


def _load(path: Path) -> Optional[StartupStatus]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read startup status {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Startup status {path} is not a JSON object")
        return None
    try:
        return StartupStatus.from_dict(data)
    except (TypeError, ValueError) as e:
        logger.warning(f"Malformed startup status {path}: {e}")
        return None


def get_startup_status(path: Optional[Path] = None) -> Optional[StartupStatus]:
    """Status of the most recent launch, or None if none was recorded"""
    return _load(Path(path) if path else get_config().status_path)


def get_startup_history(limit: int = 10, history_dir: Optional[Path] = None) -> List[StartupStatus]:
    """Most recent launches first, at most ``limit`` (clamped to 1..20)"""
    history_dir = Path(history_dir) if history_dir else get_config().history_dir
    limit = max(1, min(limit, MAX_HISTORY))

    try:
        names = sorted((p.name for p in history_dir.iterdir() if p.suffix == ".json"), reverse=True)
    except OSError:
        return []

    history = []
    for name in names:
        if len(history) >= limit:
            break
        status = _load(history_dir / name)
        if status is not None:
            history.append(status)
    return history
