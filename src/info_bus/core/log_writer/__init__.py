"""Buffered log writers.

Contains the buffering/flush base class, the file-backed writer and the
offline truncation utility.
"""

from __future__ import annotations

from .base import BufferedLogWriter
from .cut import backup_path, cut_log, leading_date
from .file_writer import (
    MAX_WRITE_ATTEMPTS,
    FileLogWriter,
    attach_file_writer,
    compile_filter,
)

__all__ = [
    "MAX_WRITE_ATTEMPTS",
    "BufferedLogWriter",
    "FileLogWriter",
    "attach_file_writer",
    "backup_path",
    "compile_filter",
    "cut_log",
    "leading_date",
]
