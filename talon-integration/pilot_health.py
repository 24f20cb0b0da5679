"""
Talon Pilot Health Check and Metrics
====================================
Reports whether Talon and the files the pilot relies on are in a usable
state, and keeps timing metrics for restart stages.

Checks:
- process: is Talon running (pids, resident memory)
- log_file: does talon.log exist and is it readable
- repl: is the REPL executable present
- startup_status: did the last recorded startup report errors

Usage:
    from pilot_health import HealthChecker

    checker = HealthChecker()
    report = checker.get_full_report()
    print(report['status'])
"""

import os
import time
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum

import psutil

from pilot_config import PilotConfig, get_config
from pilot_logging import get_logger
from pilot_process import find_processes
from pilot_startup_status import get_startup_status

logger = get_logger("health")


# =============================================================================
# ENUMS AND DATA CLASSES
# =============================================================================

class HealthStatus(Enum):
    """Health status levels"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    """Health status for a single component"""
    name: str
    status: HealthStatus
    message: str = ""
    response_time_ms: float = 0
    details: Dict[str, Any] = field(default_factory=dict)
    last_check: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "response_time_ms": self.response_time_ms,
            "details": self.details,
            "last_check": self.last_check
        }


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricsCollector:
    """Collects and tracks performance metrics"""

    def __init__(self, max_history: int = 200):
        self.max_history = max_history
        self._metrics: Dict[str, List[Dict]] = {}
        self._counters: Dict[str, int] = {}
        self._start_time = time.time()
        self._lock = threading.Lock()

    def record_timing(self, name: str, duration_ms: float, tags: Dict[str, str] = None):
        """Record a timing metric"""
        with self._lock:
            entries = self._metrics.setdefault(name, [])
            entries.append({
                "timestamp": datetime.now().isoformat(),
                "duration_ms": duration_ms,
                "tags": tags or {}
            })
            if len(entries) > self.max_history:
                self._metrics[name] = entries[-self.max_history:]

    def increment_counter(self, name: str, value: int = 1):
        """Increment a counter"""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def _timing_stats(self, name: str) -> Dict[str, Any]:
        entries = self._metrics.get(name)
        if not entries:
            return {"count": 0}
        durations = [m["duration_ms"] for m in entries]
        return {
            "count": len(durations),
            "min_ms": min(durations),
            "max_ms": max(durations),
            "avg_ms": sum(durations) / len(durations),
            "last_ms": durations[-1]
        }

    def get_timing_stats(self, name: str) -> Dict[str, Any]:
        """Get statistics for a timing metric"""
        with self._lock:
            return self._timing_stats(name)

    def get_all_stats(self) -> Dict[str, Any]:
        """Get all metrics statistics"""
        with self._lock:
            return {
                "timings": {name: self._timing_stats(name) for name in self._metrics},
                "counters": dict(self._counters),
                "uptime_seconds": time.time() - self._start_time
            }


# Global metrics collector
_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics


def record_timing(name: str, duration_ms: float, tags: Dict[str, str] = None):
    """Record a timing metric (global function)"""
    _metrics.record_timing(name, duration_ms, tags)


def increment_counter(name: str, value: int = 1):
    """Increment a counter (global function)"""
    _metrics.increment_counter(name, value)


# =============================================================================
# HEALTH CHECKER
# =============================================================================

class HealthChecker:
    """Runs the registered checks against the configured Talon install"""

    def __init__(self, config: Optional[PilotConfig] = None):
        self.config = config or get_config()
        self._checks: Dict[str, Callable[[], ComponentHealth]] = {}
        self._register_default_checks()

    def _register_default_checks(self):
        self.register_check("process", self._check_process)
        self.register_check("log_file", self._check_log_file)
        self.register_check("repl", self._check_repl)
        self.register_check("startup_status", self._check_startup_status)

    def register_check(self, name: str, check_func: Callable[[], ComponentHealth]):
        """Register a health check function"""
        self._checks[name] = check_func

    def _check_process(self) -> ComponentHealth:
        """Is Talon running?"""
        start = time.perf_counter()
        procs = find_processes(self.config.app_name)

        if not procs:
            return ComponentHealth(
                name="process",
                status=HealthStatus.UNHEALTHY,
                message=f"{self.config.app_name} is not running",
                response_time_ms=(time.perf_counter() - start) * 1000,
                details={"running": False}
            )

        memory_mb = 0.0
        for proc in procs:
            try:
                memory_mb += proc.memory_info().rss / 1024 / 1024
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

        return ComponentHealth(
            name="process",
            status=HealthStatus.HEALTHY,
            message=f"{self.config.app_name} is running",
            response_time_ms=(time.perf_counter() - start) * 1000,
            details={
                "running": True,
                "pids": [p.pid for p in procs],
                "memory_mb": round(memory_mb, 1)
            }
        )

    def _check_log_file(self) -> ComponentHealth:
        """Is talon.log present and readable?"""
        start = time.perf_counter()
        path = self.config.log_path

        if not path.exists():
            status, message = HealthStatus.UNHEALTHY, f"Log file not found at {path}"
        elif not os.access(path, os.R_OK):
            status, message = HealthStatus.UNHEALTHY, f"Log file not readable at {path}"
        else:
            status, message = HealthStatus.HEALTHY, "Log file readable"

        details: Dict[str, Any] = {"path": str(path)}
        if path.exists():
            details["size_bytes"] = path.stat().st_size

        return ComponentHealth(
            name="log_file",
            status=status,
            message=message,
            response_time_ms=(time.perf_counter() - start) * 1000,
            details=details
        )

    def _check_repl(self) -> ComponentHealth:
        """Is the REPL executable installed?"""
        start = time.perf_counter()
        path = self.config.repl_path

        if not path.exists():
            status, message = HealthStatus.DEGRADED, f"REPL not found at {path}"
        elif not os.access(path, os.X_OK):
            status, message = HealthStatus.DEGRADED, f"REPL not executable at {path}"
        else:
            status, message = HealthStatus.HEALTHY, "REPL available"

        return ComponentHealth(
            name="repl",
            status=status,
            message=message,
            response_time_ms=(time.perf_counter() - start) * 1000,
            details={"path": str(path)}
        )

    def _check_startup_status(self) -> ComponentHealth:
        """Did the last recorded startup report problems?"""
        start = time.perf_counter()
        status_report = get_startup_status(self.config.status_path)

        if status_report is None:
            return ComponentHealth(
                name="startup_status",
                status=HealthStatus.UNKNOWN,
                message="No startup status recorded",
                response_time_ms=(time.perf_counter() - start) * 1000
            )

        if status_report.error_count > 0:
            status = HealthStatus.DEGRADED
            message = f"Last startup had {status_report.error_count} error(s)"
        else:
            status = HealthStatus.HEALTHY
            message = "Last startup was clean"

        return ComponentHealth(
            name="startup_status",
            status=status,
            message=message,
            response_time_ms=(time.perf_counter() - start) * 1000,
            details={
                "timestamp": status_report.timestamp,
                "error_count": status_report.error_count,
                "warning_count": status_report.warning_count
            }
        )

    def run_check(self, name: str) -> ComponentHealth:
        """Run a specific health check"""
        if name not in self._checks:
            return ComponentHealth(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"Unknown check: {name}"
            )

        try:
            return self._checks[name]()
        except Exception as e:
            logger.error(f"Health check '{name}' failed: {e}")
            return ComponentHealth(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"Check failed: {e}"
            )

    def run_all_checks(self) -> Dict[str, ComponentHealth]:
        """Run all registered health checks"""
        return {name: self.run_check(name) for name in self._checks}

    @staticmethod
    def overall_status(results: Dict[str, ComponentHealth]) -> HealthStatus:
        """Fold individual results into one status"""
        statuses = [r.status for r in results.values()]
        if HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY
        if HealthStatus.DEGRADED in statuses or HealthStatus.UNKNOWN in statuses:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    def get_overall_status(self) -> HealthStatus:
        return self.overall_status(self.run_all_checks())

    def get_full_report(self) -> Dict[str, Any]:
        """Get a full health report"""
        checks = self.run_all_checks()
        return {
            "status": self.overall_status(checks).value,
            "timestamp": datetime.now().isoformat(),
            "checks": {name: check.to_dict() for name, check in checks.items()},
            "performance": _metrics.get_all_stats()
        }
