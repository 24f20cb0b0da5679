"""
Talon REPL access.

Pipes Python code into Talon's embedded REPL (``~/.talon/.venv/bin/repl``)
and reports the result. Used directly by tools and by the REPL readiness
probe, which only cares about the exit code.
"""

import subprocess
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional

from pilot_config import get_config
from pilot_logging import get_logger, TimingContext

logger = get_logger("repl")

REPL_HEADER_PREFIX = "Talon REPL |"


@dataclass
class ReplResult:
    """Outcome of one REPL invocation"""
    success: bool
    output: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.error is None:
            data.pop("error")
        return data


def _clean_output(stdout: str) -> str:
    lines = [line for line in stdout.split("\n") if not line.startswith(REPL_HEADER_PREFIX)]
    return "\n".join(lines).strip()


def execute_repl(code: str, timeout: float = 10, repl_path: Optional[Path] = None) -> ReplResult:
    """Run code in the Talon REPL. Never raises."""
    repl_path = repl_path or get_config().repl_path

    try:
        with TimingContext("repl", component="repl"):
            proc = subprocess.run(
                [str(repl_path)],
                input=code + "\n",
                capture_output=True,
                text=True,
                timeout=timeout,
            )
    except subprocess.TimeoutExpired:
        return ReplResult(success=False, error=f"REPL timed out after {timeout}s")
    except OSError as e:
        return ReplResult(success=False, error=f"Failed to execute REPL: {e}")

    output = _clean_output(proc.stdout or "")
    if proc.returncode == 0:
        return ReplResult(success=True, output=output)

    return ReplResult(
        success=False,
        output=output,
        error=(proc.stderr or "").strip() or f"REPL exited with code {proc.returncode}",
    )


def mimic_phrase(phrase: str, timeout: float = 10, repl_path: Optional[Path] = None) -> ReplResult:
    """Execute a phrase as if the user had spoken it"""
    escaped = phrase.replace("\\", "\\\\").replace('"', '\\"')
    result = execute_repl(f'actions.mimic("{escaped}")', timeout=timeout, repl_path=repl_path)
    if not result.success:
        logger.warning(f"Mimic failed for {phrase!r}: {result.error}")
    return result
