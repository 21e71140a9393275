from __future__ import annotations

import pytest

from info_bus.core.log_writer import backup_path, cut_log, leading_date


def _read(path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()


def test_keeps_head_and_tail_lines(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    original = [f"line {n}" for n in range(1, 6)]
    write_lines(log, original)

    assert cut_log(log, 1, 2) is True

    assert _read(log) == ["line 1", "line 4", "line 5"]
    assert backup_path(log) == tmp_path / "app.last"
    assert _read(backup_path(log)) == original


def test_short_file_is_kept_whole(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    write_lines(log, ["a", "b"])

    assert cut_log(log, 2, 2) is True
    assert _read(log) == ["a", "b"]


def test_tail_only(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    write_lines(log, ["a", "b", "c", "d"])

    assert cut_log(log, 0, 1) is True
    assert _read(log) == ["d"]


def test_zero_windows_empty_the_file(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    write_lines(log, ["a", "b"])

    assert cut_log(log, 0, 0) is True
    assert log.read_text(encoding="utf-8") == ""


def test_date_mode_counts_distinct_dates(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    write_lines(
        log,
        [
            "2025.12.01 10:00:00,000001 T1 Info      first day",
            "    continuation of first day",
            "2025.12.01 11:00:00,000001 T1 Info      still first day",
            "2025.12.02 10:00:00,000001 T1 Info      second day",
            "2025.12.03 10:00:00,000001 T1 Error     third day",
            "    traceback line",
        ],
    )

    assert cut_log(log, 1, 1, count_lines=False) is True

    assert _read(log) == [
        "2025.12.01 10:00:00,000001 T1 Info      first day",
        "    continuation of first day",
        "2025.12.01 11:00:00,000001 T1 Info      still first day",
        "2025.12.03 10:00:00,000001 T1 Error     third day",
        "    traceback line",
    ]


def test_missing_file_returns_false(tmp_path) -> None:
    log = tmp_path / "absent.log"
    assert cut_log(log, 1, 1) is False
    assert not backup_path(log).exists()


def test_existing_backup_is_replaced(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    write_lines(backup_path(log), ["stale"])
    write_lines(log, ["x", "y", "z"])

    assert cut_log(log, 0, 1) is True
    assert _read(backup_path(log)) == ["x", "y", "z"]


def test_negative_counts_are_rejected(tmp_path, write_lines) -> None:
    log = tmp_path / "app.log"
    write_lines(log, ["a"])
    with pytest.raises(ValueError):
        cut_log(log, -1, 1)


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("2025.12.30 08:12:01,000001 T1 Info", "2025.12.30"),
        ("2025-12-30 08:12:01 INFO", "2025-12-30"),
        ("30.12.2025 done", "30.12.2025"),
        ("    continuation", None),
        ("2025.13.45 bogus", None),
        ("", None),
    ],
)
def test_leading_date(line, expected) -> None:
    assert leading_date(line) == expected


def test_only_newlines_separate_lines(tmp_path) -> None:
    log = tmp_path / "app.log"
    log.write_text("one\ntwo\nthree\nfour\nfive\x0cpage\x1cgroup sep\n", encoding="utf-8")

    assert cut_log(log, 1, 2) is True

    assert log.read_text(encoding="utf-8") == "one\nfour\nfive\x0cpage\x1cgroup sep\n"
