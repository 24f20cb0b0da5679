"""
Talon Pilot Test Suite - Shared Fixtures and Configuration
==========================================================
"""

import sys
import pytest
import tempfile
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pilot_config import PilotConfig


SAMPLE_STARTUP_LOG = """\
2026-10-18 09:00:01.100    IO Talon Version: 0.4.0
2026-10-18 09:00:01.200  INFO Activating speech engine: W2lEngine(en_US)
2026-10-18 09:00:01.300  INFO Activating Microphone: "MacBook Pro Microphone"
2026-10-18 09:00:02.000 ERROR Failed to parse TalonScript in "user/community/sleep.talon" for "go to sleep"
2026-10-18 09:00:02.100 ERROR cb error topic="ready" cb=<function on_ready at 0x10>
   14:                       talon/scripting/dispatch.py:90|
   13:                       user/community/startup.py:12| on_ready()
RuntimeError: settings not loaded
2026-10-18 09:00:02.500 WARNING /x.py:42: DeprecationWarning: use y instead
2026-10-18 09:00:02.600 WARNING user/apps.py:7: SyntaxWarning: invalid escape sequence
2026-10-18 09:00:03.000 WARNING [!] 2 warning(s) during startup
2026-10-18 09:00:03.000 ERROR [!] 2 error(s) during startup
"""


class FakeClock:
    """Monotonic clock that only moves when sleep() is called"""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing"""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def pilot_config(temp_dir):
    """Config rooted in a temporary Talon home with an empty log"""
    (temp_dir / "talon.log").write_text("", encoding="utf-8")
    return PilotConfig(
        talon_home=temp_dir,
        repl_path=temp_dir / "repl",
        poll_interval=0.2,
        settle_delay=0.5,
        exit_timeout=10.0,
        ready_timeout=30.0,
        speech_timeout=15.0,
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sample_startup_log():
    return SAMPLE_STARTUP_LOG


def append_text(path: Path, text: str):
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)
