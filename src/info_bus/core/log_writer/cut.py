"""Offline log truncation.

Keeps a head and a tail window of a log file and drops everything in between.
The untouched original is preserved as ``<stem>.last`` next to the file.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_DATE_FIELD_WIDTH = 10
_DATE_FORMATS = ("%Y.%m.%d", "%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y")


def leading_date(line: str) -> str | None:
    """Return the first 10 characters if they form a date, else None."""
    field = line[:_DATE_FIELD_WIDTH].strip()
    for fmt in _DATE_FORMATS:
        try:
            datetime.strptime(field, fmt)
        except ValueError:
            continue
        return field
    return None


def backup_path(log_path: str | Path) -> Path:
    """``dir/app.log`` -> ``dir/app.last``."""
    path = Path(log_path)
    return path.with_name(path.stem + ".last")


def _window(items: list, keep_head: int, keep_tail: int) -> list:
    if len(items) <= keep_head + keep_tail:
        return items
    tail = items[len(items) - keep_tail:] if keep_tail > 0 else []
    return items[:keep_head] + tail


def _select_by_date(lines: list[str], keep_head: int, keep_tail: int) -> list[str]:
    dates = list(dict.fromkeys(d for d in map(leading_date, lines) if d is not None))
    kept = set(_window(dates, keep_head, keep_tail))

    out: list[str] = []
    # Lines before the first date belong to the head window.
    keep_current = keep_head > 0 or not dates
    for line in lines:
        d = leading_date(line)
        if d is not None:
            keep_current = d in kept
        if keep_current:
            out.append(line)
    return out


def cut_log(
    log_path: str | Path,
    keep_head: int,
    keep_tail: int,
    count_lines: bool = True,
) -> bool:
    """Shrink a log file to its first ``keep_head`` and last ``keep_tail`` items.

    Args:
        log_path: Log file to rewrite in place.
        keep_head: Items to keep from the start.
        keep_tail: Items to keep from the end.
        count_lines: Count physical lines when True, distinct leading dates
            (``YYYY.MM.DD`` and similar) when False.

    Returns:
        True if the file was rewritten, False if it does not exist or could
        not be processed.
    """
    if keep_head < 0 or keep_tail < 0:
        raise ValueError("keep_head and keep_tail must be >= 0")

    path = Path(log_path)
    if not path.is_file():
        return False

    try:
        text = path.read_text(encoding="utf-8", errors="surrogateescape")
        # read_text already folds \r\n and \r; other separators belong to the line.
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()

        if count_lines:
            kept = _window(lines, keep_head, keep_tail)
        else:
            kept = _select_by_date(lines, keep_head, keep_tail)

        os.replace(path, backup_path(path))
        path.write_text(
            "".join(line + "\n" for line in kept),
            encoding="utf-8",
            errors="surrogateescape",
        )
    except OSError as e:
        logger.warning("Cutting %s failed: %s", path, e)
        return False

    logger.debug("Cut %s from %s to %s lines", path, len(lines), len(kept))
    return True
