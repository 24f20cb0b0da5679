"""
Unit Tests for readiness signals
================================
"""

import os
import sys
import pytest
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import append_text
from pilot_logtail import file_identity
from pilot_readiness import (
    Cursor,
    LogMarkerReadiness,
    TimestampFileReadiness,
    ReplProbeReadiness,
    build_readiness_signal,
    read_since,
)
from pilot_repl import ReplResult


class TestCursor:

    def test_capture_records_offset_and_stamp(self, pilot_config):
        append_text(pilot_config.log_path, "previous run\n")
        pilot_config.marker_path.write_text("stamp-1\n", encoding="utf-8")

        cursor = Cursor.capture(pilot_config.log_path, pilot_config.marker_path)

        assert cursor.log_offset == len("previous run\n")
        assert cursor.marker_stamp == "stamp-1"
        assert cursor.log_identity == file_identity(pilot_config.log_path)

    def test_capture_without_files(self, temp_dir):
        cursor = Cursor.capture(temp_dir / "missing.log", temp_dir / "missing_stamp")

        assert cursor == Cursor(log_offset=0, marker_stamp=None)

    def test_negative_offset_rejected(self):
        with pytest.raises(ValueError):
            Cursor(log_offset=-5)


class TestLogMarkerReadiness:

    def test_ready_only_after_marker_appended(self, pilot_config):
        append_text(pilot_config.log_path, "Talon startup complete\n")
        cursor = Cursor.capture(pilot_config.log_path)
        signal = LogMarkerReadiness(pilot_config.log_path, "Talon startup complete")

        assert signal.check_ready(cursor) is False

        append_text(pilot_config.log_path, "INFO Talon startup complete\n")
        assert signal.check_ready(cursor) is True


    def test_rotated_log_is_never_ready(self, pilot_config):
        append_text(pilot_config.log_path, "previous session\n")
        cursor = Cursor.capture(pilot_config.log_path)
        signal = LogMarkerReadiness(pilot_config.log_path, "Talon startup complete")

        os.rename(pilot_config.log_path, pilot_config.talon_home / "talon.log.1")
        append_text(pilot_config.log_path, "x" * 100 + "\nINFO Talon startup complete\n")

        assert read_since(pilot_config.log_path, cursor) == ""
        assert signal.check_ready(cursor) is False


class TestTimestampFileReadiness:

    def test_unchanged_stamp_is_not_ready(self, pilot_config):
        pilot_config.marker_path.write_text("stamp-1", encoding="utf-8")
        cursor = Cursor.capture(pilot_config.log_path, pilot_config.marker_path)
        signal = TimestampFileReadiness(pilot_config.marker_path)

        assert signal.check_ready(cursor) is False

        pilot_config.marker_path.write_text("stamp-2", encoding="utf-8")
        assert signal.check_ready(cursor) is True

    def test_missing_or_empty_file_is_not_ready(self, pilot_config):
        cursor = Cursor()
        signal = TimestampFileReadiness(pilot_config.marker_path)

        assert signal.check_ready(cursor) is False

        pilot_config.marker_path.write_text("  \n", encoding="utf-8")
        assert signal.check_ready(cursor) is False

    def test_first_stamp_ever_is_ready(self, pilot_config):
        cursor = Cursor(marker_stamp=None)
        pilot_config.marker_path.write_text("stamp-1", encoding="utf-8")

        assert TimestampFileReadiness(pilot_config.marker_path).check_ready(cursor) is True


class TestReplProbeReadiness:

    def test_ready_when_repl_succeeds(self, temp_dir):
        signal = ReplProbeReadiness(temp_dir / "repl")
        with patch("pilot_readiness.execute_repl", return_value=ReplResult(success=True, output="ready")) as repl:
            assert signal.check_ready(Cursor()) is True
        assert repl.call_args.kwargs["repl_path"] == temp_dir / "repl"

    def test_not_ready_when_repl_fails(self, temp_dir):
        signal = ReplProbeReadiness(temp_dir / "repl")
        with patch("pilot_readiness.execute_repl", return_value=ReplResult(success=False, error="refused")):
            assert signal.check_ready(Cursor()) is False


class TestBuildReadinessSignal:

    @pytest.mark.parametrize("name,cls", [
        ("timestamp", TimestampFileReadiness),
        ("log", LogMarkerReadiness),
        ("repl", ReplProbeReadiness),
    ])
    def test_strategy_selection(self, pilot_config, name, cls):
        signal = build_readiness_signal(replace(pilot_config, readiness=name))
        assert isinstance(signal, cls)
