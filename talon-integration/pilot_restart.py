"""
Talon Restart Orchestrator
==========================
Quits Talon, relaunches it, waits until it is actually usable and then
reports what happened during startup.

Stages:
    IDLE -> QUITTING -> AWAITING_EXIT -> RELAUNCHING -> AWAITING_READY
         -> DIAGNOSING -> AWAITING_SPEECH_CONFIRM -> DONE

Every wait is a fixed-interval poll with its own deadline. Failing to quit
or launch, or running out of time while waiting for exit or readiness,
ends the cycle with a failure outcome. Not hearing speech before the
confirmation deadline only clears ``speech_detected``. Nothing is retried
and nothing is rolled back: if the relaunch fails Talon stays stopped.

At most one restart should run at a time; callers serialise invocations.

Usage:
    from pilot_restart import restart_talon

    outcome = restart_talon()
    print(outcome.to_dict())
"""

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pilot_config import ConfigError, PilotConfig, get_config
from pilot_health import record_timing, increment_counter
from pilot_logging import get_logger
from pilot_process import CommandError, is_running, quit_app, launch_app
from pilot_readiness import Cursor, ReadinessSignal, build_readiness_signal, read_since
from pilot_startup_parser import StartupDiagnostics, parse_startup_log

logger = get_logger("restart")


class RestartState(Enum):
    IDLE = "idle"
    QUITTING = "quitting"
    AWAITING_EXIT = "awaiting_exit"
    RELAUNCHING = "relaunching"
    AWAITING_READY = "awaiting_ready"
    DIAGNOSING = "diagnosing"
    AWAITING_SPEECH_CONFIRM = "awaiting_speech_confirm"
    DONE = "done"


# =============================================================================
# POLLING
# =============================================================================

@dataclass
class PollResult:
    ok: bool
    elapsed_ms: float


def poll_until(predicate: Callable[[], bool],
               interval: float,
               timeout: float,
               clock: Callable[[], float] = time.monotonic,
               sleep: Callable[[float], None] = time.sleep) -> PollResult:
    """Call predicate every interval seconds until it is true or timeout elapses.

    The deadline is measured from this call's own start. A predicate that
    raises counts as "not yet".
    """
    start = clock()
    while True:
        try:
            ok = bool(predicate())
        except Exception as e:
            logger.debug(f"Poll predicate raised: {e}")
            ok = False
        elapsed = clock() - start
        if ok:
            return PollResult(True, elapsed * 1000)
        if elapsed >= timeout:
            return PollResult(False, elapsed * 1000)
        sleep(interval)


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class RestartTiming:
    exit_wait_ms: float
    ready_wait_ms: Optional[float] = None
    speech_confirm_ms: Optional[float] = None
    total_ms: float = 0

    def to_dict(self) -> Dict[str, Any]:
        data = {"exit_wait_ms": round(self.exit_wait_ms)}
        if self.ready_wait_ms is not None:
            data["ready_wait_ms"] = round(self.ready_wait_ms)
        if self.speech_confirm_ms is not None:
            data["speech_confirm_ms"] = round(self.speech_confirm_ms)
        data["total_ms"] = round(self.total_ms)
        return data


@dataclass
class RestartOutcome:
    """Result of one restart cycle.

    ``success`` is true only when Talon became ready and the startup log
    reported zero errors.
    """
    success: bool
    message: str
    error: Optional[str] = None
    timing: Optional[RestartTiming] = None
    diagnostics: Optional[StartupDiagnostics] = None
    speech_detected: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error:
            data["error"] = self.error
        if self.timing is not None:
            data["timing"] = self.timing.to_dict()
        if self.diagnostics is not None:
            diagnostics = self.diagnostics.to_dict()
            diagnostics["speech_detected"] = bool(self.speech_detected)
            data["diagnostics"] = diagnostics
        return data


def build_message(app_name: str, diagnostics: StartupDiagnostics, speech_detected: bool) -> str:
    """Human-readable summary of a completed restart"""
    message = f"{app_name} restarted"
    if diagnostics.error_count > 0:
        message += f" with {diagnostics.error_count} error(s)"
    if diagnostics.warning_count > 0:
        joiner = "and" if diagnostics.error_count > 0 else "with"
        message += f" {joiner} {diagnostics.warning_count} warning(s)"
    if speech_detected:
        message += "; speech recognition confirmed"
    elif diagnostics.speech_engine_active and diagnostics.microphone_active:
        message += "; engine and microphone active (no speech detected yet)"
    return message


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class RestartOrchestrator:
    """Runs one quit/relaunch/diagnose cycle per ``restart()`` call.

    The collaborators default to the real process and filesystem helpers;
    tests substitute their own, along with a fake clock and sleep.
    """

    def __init__(self,
                 config: Optional[PilotConfig] = None,
                 readiness: Optional[ReadinessSignal] = None,
                 probe: Optional[Callable[[], bool]] = None,
                 quit: Optional[Callable[[], Any]] = None,
                 launch: Optional[Callable[[], Any]] = None,
                 tailer: Optional[Callable[[Path, Cursor], str]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or get_config()
        self.readiness = readiness or build_readiness_signal(self.config)
        self.probe = probe or (lambda: is_running(self.config.app_name))
        self.quit = quit or (lambda: quit_app(self.config.app_name))
        self.launch = launch or (lambda: launch_app(self.config.app_path))
        self.tailer = tailer or read_since
        self.clock = clock
        self.sleep = sleep
        self.state = RestartState.IDLE

    def _enter(self, state: RestartState):
        self.state = state
        logger.debug(f"[{state.name}]")

    def _poll(self, predicate: Callable[[], bool], timeout: float) -> PollResult:
        return poll_until(predicate, self.config.poll_interval, timeout,
                          clock=self.clock, sleep=self.sleep)

    def _elapsed_ms(self, started: float) -> float:
        return (self.clock() - started) * 1000

    def _command_failure(self, action: str, error: Exception) -> RestartOutcome:
        detail = error.detail() if isinstance(error, CommandError) else str(error)
        logger.error(f"[{self.state.name}] {action} failed: {detail}")
        return RestartOutcome(
            success=False,
            message=f"Failed to {action} {self.config.app_name}",
            error=detail,
        )

    def restart(self) -> RestartOutcome:
        """Run the full cycle. Always returns an outcome, never raises."""
        self.state = RestartState.IDLE
        started = self.clock()
        try:
            outcome = self._run(started)
        except Exception as e:
            logger.exception(f"Restart aborted in state {self.state.name}")
            outcome = RestartOutcome(
                success=False,
                message=f"Failed to restart {self.config.app_name}",
                error=str(e),
            )

        increment_counter("restart.success" if outcome.success else "restart.failure")
        log = logger.info if outcome.success else logger.warning
        log(f"[RESTART] {outcome.message}")
        return outcome

    def _run(self, started: float) -> RestartOutcome:
        cfg = self.config

        # Captured before quitting so the previous run's output is excluded
        cursor = Cursor.capture(cfg.log_path, cfg.marker_path)
        logger.debug(f"Cursor at offset {cursor.log_offset}, marker {cursor.marker_stamp!r}")

        self._enter(RestartState.QUITTING)
        try:
            self.quit()
        except Exception as e:
            return self._command_failure("restart", e)

        self._enter(RestartState.AWAITING_EXIT)
        exited = self._poll(lambda: not self.probe(), cfg.exit_timeout)
        record_timing("restart.exit_wait", exited.elapsed_ms)
        if not exited.ok:
            return RestartOutcome(
                success=False,
                message=f"{cfg.app_name} did not exit within timeout",
                timing=RestartTiming(exit_wait_ms=exited.elapsed_ms,
                                     total_ms=self._elapsed_ms(started)),
            )

        self._enter(RestartState.RELAUNCHING)
        self.sleep(cfg.settle_delay)
        try:
            self.launch()
        except Exception as e:
            return self._command_failure("relaunch", e)

        self._enter(RestartState.AWAITING_READY)
        ready = self._poll(lambda: self.readiness.check_ready(cursor), cfg.ready_timeout)
        record_timing("restart.ready_wait", ready.elapsed_ms)
        if not ready.ok:
            return RestartOutcome(
                success=False,
                message=f"{cfg.app_name} launched but did not become ready within timeout",
                timing=RestartTiming(exit_wait_ms=exited.elapsed_ms,
                                     ready_wait_ms=ready.elapsed_ms,
                                     total_ms=self._elapsed_ms(started)),
            )

        self._enter(RestartState.DIAGNOSING)
        diagnostics = parse_startup_log(self.tailer(cfg.log_path, cursor))
        logger.info(
            f"[DIAGNOSING] {diagnostics.error_count} error(s), "
            f"{diagnostics.warning_count} warning(s)"
        )

        self._enter(RestartState.AWAITING_SPEECH_CONFIRM)
        speech = self._poll(
            lambda: cfg.speech_marker in self.tailer(cfg.log_path, cursor),
            cfg.speech_timeout,
        )
        if speech.ok:
            record_timing("restart.speech_confirm", speech.elapsed_ms)

        self._enter(RestartState.DONE)
        total_ms = self._elapsed_ms(started)
        record_timing("restart.total", total_ms)

        return RestartOutcome(
            success=diagnostics.error_count == 0,
            message=build_message(cfg.app_name, diagnostics, speech.ok),
            timing=RestartTiming(
                exit_wait_ms=exited.elapsed_ms,
                ready_wait_ms=ready.elapsed_ms,
                speech_confirm_ms=speech.elapsed_ms if speech.ok else None,
                total_ms=total_ms,
            ),
            diagnostics=diagnostics,
            speech_detected=speech.ok,
        )


def restart_talon(config: Optional[PilotConfig] = None) -> RestartOutcome:
    """Restart Talon with the configured readiness strategy"""
    try:
        orchestrator = RestartOrchestrator(config=config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return RestartOutcome(success=False, message="Failed to restart Talon", error=str(e))
    return orchestrator.restart()
