"""
Talon Startup Log Parser
========================
Turns the slice of talon.log written during one launch into a structured
diagnostic record: typed errors and warnings, authoritative counts, and
whether the speech engine and microphone came up.

The log is unstructured and interleaves tracebacks with regular lines, so
parsing is line-by-line and best-effort. Unrecognised lines are ignored and
the parser never raises.

Usage:
    from pilot_startup_parser import parse_startup_log

    diagnostics = parse_startup_log(text)
    print(diagnostics.error_count, diagnostics.speech_engine_active)
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

# =============================================================================
# MARKERS AND PATTERNS
# =============================================================================

SPEECH_ENGINE_MARKER = "Activating speech engine"
MICROPHONE_MARKER = "Activating Microphone"

# Traceback lines that point into Talon's own modules
HOST_MODULE_PREFIXES = ("talon/", "talon.")

CALLBACK_LOOKAHEAD = 4

PARSE_ERROR_RE = re.compile(
    r'Failed to parse TalonScript in "(?P<file>[^"]*)" for "(?P<input>[^"]*)"'
)
CALLBACK_ERROR_RE = re.compile(
    r'cb error topic="?(?P<topic>[^"\s]+)"?\s+cb=(?P<callback>.+?)\s*$'
)
EXCEPTION_LINE_RE = re.compile(r'(?:^|\s)[A-Za-z_][\w.]*Error:\s')
FILE_WARNING_RE = re.compile(
    r'WARNING\s+(?P<file>\S.*?):(?P<line>\d+):\s*(?P<name>\w*Warning):\s*(?P<text>.*)$'
)
SUMMARY_LINE_RE = re.compile(r'\[!\]\s*\d+\s+(?:error|warning)\(s\)\s+during startup')
ERROR_SUMMARY_RE = re.compile(r'\[!\]\s*(\d+)\s+error\(s\)\s+during startup')
WARNING_SUMMARY_RE = re.compile(r'\[!\]\s*(\d+)\s+warning\(s\)\s+during startup')


# =============================================================================
# DATA MODEL
# =============================================================================

class ErrorKind(Enum):
    PARSE = "parse"
    CALLBACK = "callback"
    OTHER = "other"


class WarningKind(Enum):
    SYNTAX = "syntax"
    DEPRECATION = "deprecation"
    OTHER = "other"


def _enum_value(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


@dataclass
class StartupError:
    """One failure surfaced during a single startup"""
    kind: ErrorKind
    message: str
    source_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.source_file is not None:
            data["file"] = self.source_file
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StartupError":
        return cls(
            kind=_enum_value(ErrorKind, data.get("type"), ErrorKind.OTHER),
            message=str(data.get("message", "")),
            source_file=data.get("file"),
        )


@dataclass
class StartupWarning:
    """One warning surfaced during a single startup"""
    kind: WarningKind
    message: str
    source_file: Optional[str] = None
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.source_file is not None:
            data["file"] = self.source_file
        if self.line is not None:
            data["line"] = self.line
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StartupWarning":
        line = data.get("line")
        return cls(
            kind=_enum_value(WarningKind, data.get("type"), WarningKind.OTHER),
            message=str(data.get("message", "")),
            source_file=data.get("file"),
            line=int(line) if isinstance(line, (int, str)) and str(line).isdigit() else None,
        )


@dataclass
class StartupDiagnostics:
    """Structured summary of one startup's log window.

    ``error_count``/``warning_count`` come from Talon's own summary line when
    it is present and may exceed the itemised lists, which can be truncated.
    """
    error_count: int = 0
    warning_count: int = 0
    errors: List[StartupError] = field(default_factory=list)
    warnings: List[StartupWarning] = field(default_factory=list)
    speech_engine_active: bool = False
    microphone_active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "speech_engine_active": self.speech_engine_active,
            "microphone_active": self.microphone_active,
        }


# =============================================================================
# PARSER
# =============================================================================

def _is_duplicate(message: str, existing: Iterable[str]) -> bool:
    return any(seen in message or message in seen for seen in existing)


def _text_after(line: str, marker: str) -> str:
    return line.split(marker, 1)[1].strip()


def _is_stack_frame(line: str) -> bool:
    return line[:1].isspace() or line.startswith(HOST_MODULE_PREFIXES)


def _callback_message(lines: List[str], index: int, topic: str, callback: str) -> str:
    for candidate in lines[index + 1:index + 1 + CALLBACK_LOOKAHEAD]:
        if EXCEPTION_LINE_RE.search(candidate):
            return candidate.strip()
    return f"{topic} callback error in {callback}"


def _match_error(lines: List[str], index: int,
                 errors: List[StartupError]) -> Optional[StartupError]:
    """Classify lines[index] as an error, or return None"""
    line = lines[index]

    match = PARSE_ERROR_RE.search(line)
    if match:
        return StartupError(
            kind=ErrorKind.PARSE,
            source_file=match.group("file"),
            message=f'Failed to parse command "{match.group("input")}"',
        )

    match = CALLBACK_ERROR_RE.search(line)
    if match:
        return StartupError(
            kind=ErrorKind.CALLBACK,
            message=_callback_message(lines, index, match.group("topic"), match.group("callback")),
        )

    if "ERROR" in line and not SUMMARY_LINE_RE.search(line) and not _is_stack_frame(line):
        message = _text_after(line, "ERROR")
        if message and not _is_duplicate(message, (e.message for e in errors)):
            return StartupError(kind=ErrorKind.OTHER, message=message)

    return None


def _match_warning(line: str, warnings: List[StartupWarning]) -> Optional[StartupWarning]:
    """Classify a line as a warning, or return None"""
    match = FILE_WARNING_RE.search(line)
    if match:
        name = match.group("name")
        text = match.group("text").strip()
        if name == "SyntaxWarning":
            kind, message = WarningKind.SYNTAX, text
        elif name == "DeprecationWarning":
            kind, message = WarningKind.DEPRECATION, text
        else:
            kind, message = WarningKind.OTHER, f"{name}: {text}"
        return StartupWarning(
            kind=kind,
            source_file=match.group("file"),
            line=int(match.group("line")),
            message=message,
        )

    if "WARNING" in line and not SUMMARY_LINE_RE.search(line):
        message = _text_after(line, "WARNING")
        if message and not _is_duplicate(message, (w.message for w in warnings)):
            return StartupWarning(kind=WarningKind.OTHER, message=message)

    return None


def parse_startup_log(text: str) -> StartupDiagnostics:
    """Extract startup diagnostics from one launch's log text"""
    text = text or ""
    lines = text.splitlines()

    errors: List[StartupError] = []
    warnings: List[StartupWarning] = []

    for index, line in enumerate(lines):
        error = _match_error(lines, index, errors)
        if error is not None:
            errors.append(error)
            continue
        # A line containing ERROR is never a warning, even when it was skipped
        if "ERROR" in line:
            continue
        warning = _match_warning(line, warnings)
        if warning is not None:
            warnings.append(warning)

    error_summary = ERROR_SUMMARY_RE.search(text)
    warning_summary = WARNING_SUMMARY_RE.search(text)

    return StartupDiagnostics(
        error_count=int(error_summary.group(1)) if error_summary else len(errors),
        warning_count=int(warning_summary.group(1)) if warning_summary else len(warnings),
        errors=errors,
        warnings=warnings,
        speech_engine_active=SPEECH_ENGINE_MARKER in text,
        microphone_active=MICROPHONE_MARKER in text,
    )
