"""
Unit Tests for the Startup Log Parser
=====================================
"""

import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pilot_startup_parser import (
    ErrorKind,
    WarningKind,
    StartupError,
    StartupWarning,
    StartupDiagnostics,
    parse_startup_log,
)


class TestCleanLogs:
    """Logs without errors or warnings"""

    def test_empty_text(self):
        diagnostics = parse_startup_log("")

        assert diagnostics.error_count == 0
        assert diagnostics.warning_count == 0
        assert diagnostics.errors == []
        assert diagnostics.warnings == []
        assert diagnostics.speech_engine_active is False
        assert diagnostics.microphone_active is False

    def test_none_is_treated_as_empty(self):
        assert parse_startup_log(None) == StartupDiagnostics()

    def test_plain_info_lines(self):
        text = (
            "2026-10-18 09:00:00.000  INFO loading user scripts\n"
            "2026-10-18 09:00:00.100  INFO done\n"
        )
        diagnostics = parse_startup_log(text)

        assert diagnostics.error_count == 0
        assert diagnostics.errors == []
        assert diagnostics.warnings == []

    def test_parsing_is_idempotent(self, sample_startup_log):
        assert parse_startup_log(sample_startup_log) == parse_startup_log(sample_startup_log)


class TestErrors:
    """Error classification"""

    def test_parse_error(self):
        diagnostics = parse_startup_log('ERROR Failed to parse TalonScript in "foo.py" for "go to sleep"')

        assert diagnostics.errors == [
            StartupError(kind=ErrorKind.PARSE, source_file="foo.py",
                         message='Failed to parse command "go to sleep"')
        ]
        assert diagnostics.error_count == 1

    def test_callback_error_uses_exception_line(self):
        text = (
            '2026-10-18 09:00:00.000 ERROR cb error topic="ready" cb=<function on_ready>\n'
            "   14:      talon/scripting/dispatch.py:90|\n"
            "   13:      user/startup.py:12| on_ready()\n"
            "KeyError: 'missing'\n"
        )
        diagnostics = parse_startup_log(text)

        assert len(diagnostics.errors) == 1
        error = diagnostics.errors[0]
        assert error.kind == ErrorKind.CALLBACK
        assert error.message == "KeyError: 'missing'"

    def test_callback_error_fallback_message(self):
        text = (
            'ERROR cb error topic="app.launch" cb=<function handler>\n'
            "   1: nothing useful\n"
        )
        diagnostics = parse_startup_log(text)

        assert diagnostics.errors[0].kind == ErrorKind.CALLBACK
        assert diagnostics.errors[0].message == "app.launch callback error in <function handler>"

    def test_callback_lookahead_is_limited_to_four_lines(self):
        text = "\n".join([
            'ERROR cb error topic="t" cb=cb',
            "   a", "   b", "   c", "   d",
            "ValueError: too far away",
        ])
        diagnostics = parse_startup_log(text)

        assert diagnostics.errors[0].message == "t callback error in cb"

    def test_generic_error_text_after_marker(self):
        diagnostics = parse_startup_log("2026-10-18 09:00:00.000 ERROR something broke")

        assert diagnostics.errors == [StartupError(kind=ErrorKind.OTHER, message="something broke")]

    def test_generic_error_substring_dedup(self):
        text = (
            "ERROR module failed\n"
            "ERROR module failed to load twice\n"
            "ERROR another problem\n"
        )
        diagnostics = parse_startup_log(text)

        assert [e.message for e in diagnostics.errors] == ["module failed", "another problem"]

    def test_dedup_keeps_first_when_later_is_shorter(self):
        text = "ERROR disk is full right now\nERROR disk is full\n"
        diagnostics = parse_startup_log(text)

        assert [e.message for e in diagnostics.errors] == ["disk is full right now"]

    def test_stack_frames_and_host_paths_are_ignored(self):
        text = (
            "    ERROR inside an indented frame\n"
            "talon/scripting/core.py ERROR internal\n"
            "talon.lib ERROR internal\n"
        )
        diagnostics = parse_startup_log(text)

        assert diagnostics.errors == []

    def test_summary_line_is_authoritative(self):
        text = (
            "ERROR only one itemised error\n"
            "[!] 3 error(s) during startup\n"
        )
        diagnostics = parse_startup_log(text)

        assert diagnostics.error_count == 3
        assert len(diagnostics.errors) == 1

    def test_error_line_is_never_a_warning(self):
        diagnostics = parse_startup_log("ERROR failed with WARNING attached")

        assert len(diagnostics.errors) == 1
        assert diagnostics.warnings == []


class TestWarnings:
    """Warning classification"""

    def test_deprecation_warning(self):
        diagnostics = parse_startup_log("WARNING /x.py:42: DeprecationWarning: use y instead")

        assert diagnostics.warnings == [
            StartupWarning(kind=WarningKind.DEPRECATION, source_file="/x.py", line=42,
                           message="use y instead")
        ]

    def test_syntax_warning(self):
        diagnostics = parse_startup_log(
            "2026-10-18 09:00:00.000 WARNING user/a.py:3: SyntaxWarning: invalid escape sequence"
        )

        warning = diagnostics.warnings[0]
        assert warning.kind == WarningKind.SYNTAX
        assert warning.source_file == "user/a.py"
        assert warning.line == 3
        assert warning.message == "invalid escape sequence"

    def test_other_file_warning_keeps_name(self):
        diagnostics = parse_startup_log("WARNING lib.py:9: ResourceWarning: unclosed file")

        warning = diagnostics.warnings[0]
        assert warning.kind == WarningKind.OTHER
        assert warning.line == 9
        assert warning.message == "ResourceWarning: unclosed file"

    def test_generic_warning_and_dedup(self):
        text = (
            "WARNING slow startup\n"
            "WARNING slow startup detected again\n"
            "WARNING [!] 1 warning(s) during startup\n"
        )
        diagnostics = parse_startup_log(text)

        assert [w.message for w in diagnostics.warnings] == ["slow startup"]
        assert diagnostics.warning_count == 1

    def test_warning_count_without_summary(self):
        diagnostics = parse_startup_log("WARNING one\nWARNING two\n")

        assert diagnostics.warning_count == 2


class TestFullLog:
    """The shared sample log"""

    def test_sample_log(self, sample_startup_log):
        diagnostics = parse_startup_log(sample_startup_log)

        assert diagnostics.error_count == 2
        assert diagnostics.warning_count == 2
        assert [e.kind for e in diagnostics.errors] == [ErrorKind.PARSE, ErrorKind.CALLBACK]
        assert diagnostics.errors[1].message == "RuntimeError: settings not loaded"
        assert [w.kind for w in diagnostics.warnings] == [WarningKind.DEPRECATION, WarningKind.SYNTAX]
        assert diagnostics.speech_engine_active is True
        assert diagnostics.microphone_active is True

    def test_to_dict(self, sample_startup_log):
        data = parse_startup_log(sample_startup_log).to_dict()

        assert data["errors"][0] == {
            "type": "parse",
            "file": "user/community/sleep.talon",
            "message": 'Failed to parse command "go to sleep"',
        }
        assert data["warnings"][0] == {
            "type": "deprecation",
            "file": "/x.py",
            "line": 42,
            "message": "use y instead",
        }

    def test_garbage_does_not_raise(self):
        text = "\x00\x01 ERROR\nWARNING\n[!] x error(s) during startup\n:::: Error:"
        diagnostics = parse_startup_log(text)

        assert isinstance(diagnostics, StartupDiagnostics)


class TestItemSerialisation:

    def test_error_from_dict_unknown_type(self):
        error = StartupError.from_dict({"type": "weird", "message": "x"})
        assert error.kind == ErrorKind.OTHER

    def test_warning_from_dict(self):
        warning = StartupWarning.from_dict({"type": "syntax", "file": "a.py", "line": 4, "message": "m"})
        assert warning == StartupWarning(kind=WarningKind.SYNTAX, source_file="a.py", line=4, message="m")
