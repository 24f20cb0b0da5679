"""
Talon process probing and control.

``is_running`` asks the process table (via psutil) whether Talon is up and
never raises. ``quit_app`` / ``launch_app`` shell out to the macOS session
commands and raise ``CommandError`` when the command does not succeed.
"""

import subprocess
from typing import List, Optional, Sequence

import psutil

from pilot_logging import get_logger

logger = get_logger("process")

COMMAND_TIMEOUT_SEC = 15


class CommandError(Exception):
    """An OS-level command (quit/launch) failed"""

    def __init__(self, message: str, stderr: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode

    def detail(self) -> str:
        """Raw error text for user-facing results"""
        if self.stderr:
            return f"{self} ({self.stderr})"
        return str(self)


def find_processes(app_name: str) -> List[psutil.Process]:
    """Return processes whose name is exactly app_name (empty on any failure)"""
    matches = []
    try:
        for proc in psutil.process_iter(['pid', 'name']):
            try:
                if proc.info.get('name') == app_name:
                    matches.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
    except Exception as e:
        logger.debug(f"Process query failed: {e}")
        return []
    return matches


def is_running(app_name: str) -> bool:
    """Is a process named exactly app_name alive right now?"""
    return len(find_processes(app_name)) > 0


def _run(args: Sequence[str], what: str) -> str:
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT_SEC,
        )
    except FileNotFoundError as e:
        raise CommandError(f"{what} failed: {args[0]} not found", stderr=str(e))
    except subprocess.TimeoutExpired:
        raise CommandError(f"{what} timed out after {COMMAND_TIMEOUT_SEC}s")
    except OSError as e:
        raise CommandError(f"{what} failed: {e}")

    if result.returncode != 0:
        raise CommandError(
            f"{what} exited with code {result.returncode}",
            stderr=(result.stderr or "").strip(),
            returncode=result.returncode,
        )
    return result.stdout


def quit_app(app_name: str) -> str:
    """Ask the application to quit gracefully"""
    logger.info(f"Quitting {app_name}")
    return _run(["osascript", "-e", f'quit app "{app_name}"'], f"Quit {app_name}")


def launch_app(app_path: str) -> str:
    """Launch the application bundle"""
    logger.info(f"Launching {app_path}")
    return _run(["open", app_path], f"Launch {app_path}")
