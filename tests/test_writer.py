"""Tests for the append-only writer and numbered rotation."""

import logging
import os
from unittest.mock import patch

from lograil.config import RotationConfig
from lograil.writer import (
    LogFileWriter,
    append_entry,
    rotate_log,
    rotate_log_if_needed,
    rotated_path,
)


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


def _write(path, text):
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


class TestAppend:
    def test_creates_and_appends(self, tmp_path):
        path = str(tmp_path / "comp.log")
        assert append_entry(path, "first\n---")
        assert append_entry(path, "second\n---")
        assert _read(path) == "first\n---\nsecond\n---\n"

    def test_new_file_permissions(self, tmp_path):
        path = str(tmp_path / "comp.log")
        old_umask = os.umask(0)
        try:
            append_entry(path, "x", 0o600)
        finally:
            os.umask(old_umask)
        assert os.stat(path).st_mode & 0o777 == 0o600

    def test_failure_warns_and_returns_false(self, tmp_path, caplog):
        target = tmp_path / "is-a-dir"
        target.mkdir()
        with caplog.at_level(logging.WARNING, logger="lograil.writer"):
            assert append_entry(str(target), "entry") is False
        assert "Failed to write to log file" in caplog.text


class TestRotation:
    def test_rotated_path(self):
        assert rotated_path("/x/a.log", 2) == "/x/a.log.2"
        assert rotated_path("/x/a.log", 3, "{path}-{index}") == "/x/a.log-3"
        assert rotated_path("/x/a.log", 3, "{bogus}") == "/x/a.log.3"

    def test_below_threshold_does_nothing(self, tmp_path):
        path = str(tmp_path / "comp.log")
        _write(path, "small")
        assert rotate_log_if_needed(path, 1024) is False
        assert not os.path.exists(path + ".1")

    def test_missing_file_does_nothing(self, tmp_path):
        assert rotate_log_if_needed(str(tmp_path / "absent.log"), 1) is False

    def test_at_threshold_rotates(self, tmp_path):
        path = str(tmp_path / "comp.log")
        _write(path, "x" * 100)
        assert rotate_log_if_needed(path, 100) is True
        assert not os.path.exists(path)
        assert _read(path + ".1") == "x" * 100

    def test_archives_shift_up(self, tmp_path):
        path = str(tmp_path / "comp.log")
        _write(path, "live")
        for i in range(1, 5):
            _write(f"{path}.{i}", f"archive {i}")

        rotate_log(path, 5)

        assert not os.path.exists(path)
        assert _read(path + ".1") == "live"
        for i in range(2, 6):
            assert _read(f"{path}.{i}") == f"archive {i - 1}"

    def test_oldest_archive_deleted(self, tmp_path):
        path = str(tmp_path / "comp.log")
        _write(path, "live")
        for i in range(1, 6):
            _write(f"{path}.{i}", f"archive {i}")

        rotate_log(path, 5)

        assert _read(path + ".5") == "archive 4"
        assert not os.path.exists(path + ".6")

    def test_repeated_rotation_keeps_bounded_archives(self, tmp_path):
        path = str(tmp_path / "comp.log")
        for generation in range(6):
            _write(path, f"generation {generation}")
            rotate_log(path, 5)

        archives = sorted(name for name in os.listdir(tmp_path) if name.startswith("comp.log."))
        assert archives == [f"comp.log.{i}" for i in range(1, 6)]
        assert _read(path + ".1") == "generation 5"
        assert _read(path + ".5") == "generation 1"

    def test_zero_rotations_discards_live_file(self, tmp_path):
        path = str(tmp_path / "comp.log")
        _write(path, "live")
        rotate_log(path, 0)
        assert os.listdir(tmp_path) == []

    def test_failed_rename_warns_and_continues(self, tmp_path, caplog):
        path = str(tmp_path / "comp.log")
        _write(path, "live")
        _write(path + ".1", "archive 1")
        real_replace = os.replace

        def flaky(src, dst):
            if src.endswith(".1"):
                raise PermissionError("denied")
            return real_replace(src, dst)

        with patch("lograil.writer.os.replace", side_effect=flaky), \
                caplog.at_level(logging.WARNING, logger="lograil.writer"):
            rotate_log(path, 5)

        assert "Failed to rotate log" in caplog.text
        # the live file still moved even though shifting .1 failed
        assert not os.path.exists(path)
        assert _read(path + ".1") == "live"


class TestLogFileWriter:
    def test_entry_after_threshold_starts_fresh_file(self, tmp_path):
        path = str(tmp_path / "comp.log")
        writer = LogFileWriter(path, RotationConfig(max_size_bytes=50))

        written = []
        while not os.path.exists(path) or os.path.getsize(path) < 50:
            text = f"entry {len(written)}\n---"
            written.append(text)
            writer.write(text)

        writer.write("entry N+1\n---")

        assert _read(path + ".1") == "".join(t + "\n" for t in written)
        assert _read(path) == "entry N+1\n---\n"
        assert not os.path.exists(path + ".2")

    def test_disabled_rotation(self, tmp_path):
        path = str(tmp_path / "comp.log")
        writer = LogFileWriter(path, RotationConfig(enabled=False, max_size_bytes=1))
        for i in range(5):
            writer.write(f"entry {i}")
        assert not os.path.exists(path + ".1")

    def test_check_every_amortizes_size_checks(self, tmp_path):
        path = str(tmp_path / "comp.log")
        writer = LogFileWriter(path, RotationConfig(check_every=3))
        with patch("lograil.writer.rotate_log_if_needed", return_value=False) as check:
            for i in range(7):
                writer.write(f"entry {i}")
        assert check.call_count == 3

    def test_write_failure_never_raises(self, tmp_path, caplog):
        path = str(tmp_path / "missing-dir" / "comp.log")
        writer = LogFileWriter(path)
        with caplog.at_level(logging.WARNING, logger="lograil.writer"):
            assert writer.write("entry") is False
        assert "Failed to write" in caplog.text
