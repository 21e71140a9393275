"""Settings for log writers and the statistics aggregator."""

from __future__ import annotations

import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TRIGGER_THRESHOLD = 5000
DEFAULT_MAX_BUFFER_LINES = 10000
REPLACE_MODE_SENTINEL = "@"


def default_log_path() -> Path:
    """``<tempdir>/<program>.log`` for hosts that do not pick a path."""
    program = Path(sys.argv[0]).stem if sys.argv and sys.argv[0] else ""
    return Path(tempfile.gettempdir()) / f"{program or 'info_bus'}.log"


class LogWriterSettings(BaseModel):
    """Configuration of a buffered file log writer."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(default_factory=default_log_path, description="Backing log file.")
    regex_filter: str = Field(
        default="",
        description="Lines must match to be logged; a leading '@' removes the match instead.",
    )
    plain: bool = Field(default=False, description="Write payload text verbatim.")
    indent: int = Field(default=4, ge=0, description="Indent of continuation lines.")
    timer_triggered: bool = Field(default=True, description="Flush on a timer instead of a line count.")
    trigger_threshold: int = Field(
        default=DEFAULT_TRIGGER_THRESHOLD,
        ge=1,
        description="Timer interval in ms, or line count when counter-triggered.",
    )
    max_buffer_lines: int = Field(default=DEFAULT_MAX_BUFFER_LINES, ge=1)
    archive_interval: timedelta | None = Field(
        default=None,
        description="Archive the log file once it is this old; None disables archiving.",
    )
    archive_max_count: int = Field(default=0, ge=0, description="Archived files to keep; 0 keeps all.")


class StatisticsSettings(BaseModel):
    """Configuration of the statistics aggregator."""

    model_config = ConfigDict(frozen=True)

    timer_triggered: bool = True
    trigger_threshold: int = Field(default=DEFAULT_TRIGGER_THRESHOLD, ge=1)
    regex_filter: str = Field(default="", description="Only counters whose name matches are reported.")


def _env_int(name: str, *, minimum: int) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def resolve_log_writer_settings(settings: LogWriterSettings | None = None) -> LogWriterSettings:
    """Return settings with optional environment overrides applied."""
    if settings is None:
        settings = LogWriterSettings()

    update: dict[str, object] = {}
    path = os.getenv("INFO_BUS_LOG_PATH")
    if path:
        update["path"] = Path(path)
    regex_filter = os.getenv("INFO_BUS_LOG_FILTER")
    if regex_filter is not None:
        update["regex_filter"] = regex_filter
    threshold = _env_int("INFO_BUS_FLUSH_THRESHOLD", minimum=1)
    if threshold is not None:
        update["trigger_threshold"] = threshold
    archive_max = _env_int("INFO_BUS_ARCHIVE_MAX_COUNT", minimum=0)
    if archive_max is not None:
        update["archive_max_count"] = archive_max

    if not update:
        return settings
    return settings.model_copy(update=update)


def resolve_statistics_settings(settings: StatisticsSettings | None = None) -> StatisticsSettings:
    """Return statistics settings with optional environment overrides applied."""
    if settings is None:
        settings = StatisticsSettings()

    threshold = _env_int("INFO_BUS_STATISTICS_THRESHOLD", minimum=1)
    if threshold is None or threshold == settings.trigger_threshold:
        return settings
    return settings.model_copy(update={"trigger_threshold": threshold})
