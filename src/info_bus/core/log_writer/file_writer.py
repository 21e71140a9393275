"""File-backed log writer: formatting, regex filtering, retries and archiving."""

from __future__ import annotations

import logging
import os
import re
import time
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from ..config import REPLACE_MODE_SENTINEL, LogWriterSettings
from ..dispatcher import Dispatcher
from ..models import MessageEnvelope
from ..severity import Severity, SeverityGroups
from .base import BufferedLogWriter

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5
WRITE_RETRY_DELAY_S = 0.01
ARCHIVE_SUFFIX_FORMAT = "%m%d_%H%M%S"
SEVERITY_WIDTH = 10
ENCODING = "utf-8"

_UNFILTERED = (Severity.EXCEPTION, Severity.NO_FILTER)


def compile_filter(pattern: str) -> tuple[re.Pattern[str] | None, bool]:
    """Compile a writer filter; returns (regex or None, replace mode)."""
    replace = pattern.startswith(REPLACE_MODE_SENTINEL)
    if replace:
        pattern = pattern[len(REPLACE_MODE_SENTINEL):]
    if not pattern:
        return None, replace
    try:
        return re.compile(pattern), replace
    except re.error as exc:
        raise ValueError(f"Invalid regex filter {pattern!r}: {exc}") from exc


def _encode_line(line: str) -> bytes:
    data = line + "\n"
    try:
        return data.encode(ENCODING, "surrogateescape")
    except UnicodeEncodeError:
        # Lone surrogates outside the surrogateescape range.
        return data.encode(ENCODING, "backslashreplace")


def _file_birth(st: os.stat_result) -> float:
    # st_birthtime exists on macOS/BSD and Windows; Linux falls back to mtime.
    return getattr(st, "st_birthtime", st.st_mtime)


class FileLogWriter(BufferedLogWriter):
    """Write envelopes to a text file through the buffered flush protocol.

    Example:
        writer = FileLogWriter(LogWriterSettings(path="app.log", regex_filter="ERR"))
        bus.register_receiver(writer, None, SeverityGroups.ALL)
    """

    def __init__(self, settings: LogWriterSettings | None = None) -> None:
        super().__init__(settings)
        self.path = Path(os.path.abspath(self.settings.path))
        self.indent = self.settings.indent
        self._filter, self._replace_mode = compile_filter(self.settings.regex_filter)
        self._born_at: float | None = None
        if self.path.is_file():
            self._born_at = _file_birth(self.path.stat())

    @property
    def regex_filter(self) -> str:
        return self.settings.regex_filter

    @property
    def replace_mode(self) -> bool:
        return self._replace_mode

    # ------------------------------------------------------------------ #
    # formatting
    # ------------------------------------------------------------------ #

    def handle_message(self, sender: Any, envelope: MessageEnvelope) -> None:
        if envelope.severity is Severity.NO_LOG:
            return
        message = self.apply_filter(envelope.text, envelope.severity)
        if message is None:
            return
        if self.plain:
            self.log(message)
        else:
            self.log(self.format_line(envelope, message))

    def apply_filter(self, message: str, severity: Severity) -> str | None:
        """Return the (possibly trimmed) message, or None if it is filtered out."""
        if self._filter is None or severity in _UNFILTERED:
            return message
        m = self._filter.search(message)
        if m is None:
            return None
        if self._replace_mode:
            return (message[: m.start()] + message[m.end():]).strip()
        return message

    def format_line(self, envelope: MessageEnvelope, message: str) -> str:
        """``<timestamp> [<thread>] <severity padded to 10><message>``."""
        parts = [envelope.timestamp, " "]
        if envelope.thread_tag:
            parts += [envelope.thread_tag, " "]
        parts.append(envelope.severity.label.ljust(SEVERITY_WIDTH))

        message = message.replace("\r\n", "\n")
        if "\n" in message:
            pad = "\n" + " " * self.indent
            parts.append(pad + message.replace("\n", pad))
        else:
            parts.append(message)
        return "".join(parts)

    # ------------------------------------------------------------------ #
    # storage
    # ------------------------------------------------------------------ #

    def write_lines(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.write_line(line)

    def write_line(self, line: str) -> bool:
        """Append one line, retrying transient failures; never raises."""
        data = _encode_line(line)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            try:
                with self.path.open("ab") as f:
                    f.write(data)
                if self._born_at is None:
                    self._born_at = time.time()
                return True
            except OSError as e:
                logger.debug(
                    "Write to %s failed (attempt %s/%s): %s",
                    self.path,
                    attempt,
                    MAX_WRITE_ATTEMPTS,
                    e,
                )
                if attempt < MAX_WRITE_ATTEMPTS:
                    time.sleep(WRITE_RETRY_DELAY_S)
        logger.warning("Dropped log line after %s failed writes to %s", MAX_WRITE_ATTEMPTS, self.path)
        return False

    # ------------------------------------------------------------------ #
    # archiving
    # ------------------------------------------------------------------ #

    def archived_files(self) -> list[Path]:
        """Archived siblings of the log file, oldest first."""
        pattern = re.compile(re.escape(self.path.name) + r"\.\d{4}_\d{6}(?:_\d+)?")
        found: list[tuple[float, str, Path]] = []
        try:
            for p in self.path.parent.iterdir():
                if pattern.fullmatch(p.name) and p.is_file():
                    found.append((_file_birth(p.stat()), p.name, p))
        except OSError as e:
            logger.warning("Could not list archives of %s: %s", self.path, e)
            return []
        return [p for _, _, p in sorted(found)]

    def organize_archives(self, interval: timedelta, max_count: int) -> None:
        try:
            self._archive_if_due(interval)
        except OSError as e:
            logger.warning("Archiving %s failed: %s", self.path, e)
        if max_count > 0:
            self._prune_archives(max_count)

    def _archive_if_due(self, interval: timedelta) -> None:
        if not self.path.is_file():
            return
        born = self._born_at if self._born_at is not None else _file_birth(self.path.stat())
        if time.time() - born < interval.total_seconds():
            return

        target = self._archive_target()
        os.replace(self.path, target)
        self._born_at = None
        logger.debug("Archived %s to %s", self.path, target.name)

    def _archive_target(self) -> Path:
        base = f"{self.path}.{datetime.now().strftime(ARCHIVE_SUFFIX_FORMAT)}"
        target = Path(base)
        n = 0
        while target.exists():
            n += 1
            target = Path(f"{base}_{n}")
        return target

    def _prune_archives(self, max_count: int) -> None:
        archives = self.archived_files()
        for p in archives[: max(0, len(archives) - max_count)]:
            try:
                p.unlink()
            except OSError as e:
                logger.warning("Could not delete archive %s: %s", p, e)


def attach_file_writer(
    dispatcher: Dispatcher,
    settings: LogWriterSettings | None = None,
    severities: str | Iterable[Severity] = SeverityGroups.ALL,
) -> FileLogWriter:
    """Create a FileLogWriter and register it for ``severities`` (any payload)."""
    writer = FileLogWriter(settings)
    dispatcher.register_receiver(writer, None, severities)
    return writer
