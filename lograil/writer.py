"""Append-only entry writer with numbered size-based rotation.

Archives are <path>.1 (newest) through <path>.N (oldest). Every failure here is
logged as a warning and swallowed; a lost entry never interrupts the caller.
"""

import logging
import os

from lograil.config import FilesConfig, FormatConfig, RotationConfig

logger = logging.getLogger(__name__)


def rotated_path(path: str, index: int, rotated_format: str = "{path}.{index}") -> str:
    try:
        return rotated_format.format(path=path, index=index)
    except (KeyError, IndexError, ValueError):
        return f"{path}.{index}"


def rotate_log(path: str, max_rotations: int = 5, rotated_format: str = "{path}.{index}"):
    """Shift archives up by one suffix and move the live file to .1.

    The oldest archive (.max_rotations) is deleted first. Each step is
    independent: a failed rename is reported and the remaining steps still run.
    """
    if max_rotations < 1:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Failed to discard log %s: %s", path, e)
        return

    oldest = rotated_path(path, max_rotations, rotated_format)
    if os.path.exists(oldest):
        try:
            os.remove(oldest)
        except OSError as e:
            logger.warning("Failed to remove oldest log rotation %s: %s", oldest, e)

    for index in range(max_rotations - 1, 0, -1):
        current = rotated_path(path, index, rotated_format)
        if not os.path.exists(current):
            continue
        target = rotated_path(path, index + 1, rotated_format)
        try:
            os.replace(current, target)
        except OSError as e:
            logger.warning("Failed to rotate log %s to %s: %s", current, target, e)

    first = rotated_path(path, 1, rotated_format)
    try:
        os.replace(path, first)
    except OSError as e:
        logger.warning("Failed to rotate current log %s to %s: %s", path, first, e)


def rotate_log_if_needed(
    path: str,
    max_size_bytes: int,
    max_rotations: int = 5,
    rotated_format: str = "{path}.{index}",
) -> bool:
    """Rotate *path* when it is at or above *max_size_bytes*. Returns True if rotated."""
    try:
        size = os.path.getsize(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to stat log file %s: %s", path, e)
        return False

    if size < max_size_bytes:
        return False

    rotate_log(path, max_rotations, rotated_format)
    return True


def append_entry(path: str, text: str, file_permissions: int = 0o644) -> bool:
    """Append *text* plus a newline, closing the handle right away. Returns success."""

    def _opener(p, flags):
        return os.open(p, flags, file_permissions)

    try:
        with open(path, "a", encoding="utf-8", newline="", opener=_opener) as f:
            f.write(text + "\n")
    except (OSError, UnicodeError) as e:
        logger.warning("Failed to write to log file %s: %s", path, e)
        return False
    return True


class LogFileWriter:
    """Writes formatted entries to one log file, rotating before each append.

    With rotation.check_every = K the size check runs on the first write and
    then on every K-th write.
    """

    def __init__(
        self,
        path: str,
        rotation: RotationConfig | None = None,
        files: FilesConfig | None = None,
        fmt: FormatConfig | None = None,
    ):
        self._path = path
        self._rotation = rotation or RotationConfig()
        self._files = files or FilesConfig()
        self._format = fmt or FormatConfig()
        self._writes = 0

    @property
    def path(self) -> str:
        return self._path

    def _should_check(self) -> bool:
        every = max(1, self._rotation.check_every)
        return self._rotation.enabled and self._writes % every == 0

    def write(self, text: str) -> bool:
        if self._should_check():
            rotated = rotate_log_if_needed(
                self._path,
                self._rotation.threshold_bytes,
                self._rotation.max_files_per_component,
                self._files.rotated_log_format,
            )
            if rotated:
                logger.debug("Rotated %s", self._path)
        self._writes += 1
        return append_entry(self._path, text, self._format.log_file_permissions)
