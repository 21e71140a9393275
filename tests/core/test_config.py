from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from info_bus.core.config import (
    DEFAULT_TRIGGER_THRESHOLD,
    LogWriterSettings,
    StatisticsSettings,
    default_log_path,
    resolve_log_writer_settings,
    resolve_statistics_settings,
)

_ENV = (
    "INFO_BUS_LOG_PATH",
    "INFO_BUS_LOG_FILTER",
    "INFO_BUS_FLUSH_THRESHOLD",
    "INFO_BUS_ARCHIVE_MAX_COUNT",
    "INFO_BUS_STATISTICS_THRESHOLD",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_log_writer_defaults() -> None:
    s = LogWriterSettings()
    assert s.path == default_log_path()
    assert s.timer_triggered is True
    assert s.trigger_threshold == DEFAULT_TRIGGER_THRESHOLD
    assert s.archive_interval is None
    assert s.archive_max_count == 0
    assert s.indent == 4


def test_default_log_path_lives_in_tempdir() -> None:
    assert default_log_path().suffix == ".log"


def test_settings_are_frozen() -> None:
    s = LogWriterSettings(path=Path("x.log"))
    with pytest.raises(ValidationError):
        s.plain = True  # type: ignore[misc]


@pytest.mark.parametrize(
    "fields",
    [{"trigger_threshold": 0}, {"max_buffer_lines": 0}, {"archive_max_count": -1}, {"indent": -2}],
)
def test_log_writer_settings_validation(fields) -> None:
    with pytest.raises(ValidationError):
        LogWriterSettings(**fields)


def test_archive_interval_accepts_seconds() -> None:
    assert LogWriterSettings(archive_interval=90).archive_interval == timedelta(seconds=90)


def test_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("INFO_BUS_LOG_PATH", str(tmp_path / "env.log"))
    monkeypatch.setenv("INFO_BUS_LOG_FILTER", "@noise")
    monkeypatch.setenv("INFO_BUS_FLUSH_THRESHOLD", "250")
    monkeypatch.setenv("INFO_BUS_ARCHIVE_MAX_COUNT", "3")

    s = resolve_log_writer_settings(LogWriterSettings(plain=True))

    assert s.path == tmp_path / "env.log"
    assert s.regex_filter == "@noise"
    assert s.trigger_threshold == 250
    assert s.archive_max_count == 3
    assert s.plain is True


def test_no_env_returns_same_settings() -> None:
    s = LogWriterSettings(path=Path("keep.log"))
    assert resolve_log_writer_settings(s) is s


@pytest.mark.parametrize(
    ("value", "message"),
    [("soon", "must be an integer"), ("0", "must be >= 1")],
)
def test_invalid_env_values(monkeypatch, value, message) -> None:
    monkeypatch.setenv("INFO_BUS_FLUSH_THRESHOLD", value)
    with pytest.raises(ValueError, match=message):
        resolve_log_writer_settings()


def test_statistics_env_override(monkeypatch) -> None:
    assert resolve_statistics_settings().trigger_threshold == DEFAULT_TRIGGER_THRESHOLD

    monkeypatch.setenv("INFO_BUS_STATISTICS_THRESHOLD", "10")
    s = resolve_statistics_settings(StatisticsSettings(timer_triggered=False))

    assert s.trigger_threshold == 10
    assert s.timer_triggered is False
