from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
import time
from collections.abc import Sequence
from pathlib import Path

from info_bus.core.config import LogWriterSettings, StatisticsSettings, resolve_log_writer_settings
from info_bus.core.dispatcher import Dispatcher
from info_bus.core.log_writer import attach_file_writer, backup_path, cut_log
from info_bus.core.models import MessageEnvelope
from info_bus.core.severity import Severity, SeverityGroups, parse_severities
from info_bus.core.statistics import Statistics

LOGGER = logging.getLogger(__name__)

_STRESS_SEVERITIES = (Severity.DEBUG, Severity.INFO, Severity.WARN, Severity.ERROR, Severity.NO_FILTER)


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.getenv("INFO_BUS_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _non_negative(s: str) -> int:
    try:
        value = int(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an integer: {s!r}") from e
    if value < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return value


def _positive(s: str) -> int:
    value = _non_negative(s)
    if value < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return value


def _severity_set(s: str) -> tuple[Severity, ...]:
    result = parse_severities(s)
    if not result.severities and result.group != "NONE":
        raise argparse.ArgumentTypeError(f"no known severity in {s!r}")
    return result.severities


def _cmd_cut_log(args: argparse.Namespace) -> None:
    path = Path(args.log_path)
    if not path.is_file():
        raise FileNotFoundError(f"Log file not found: {path}")
    if not cut_log(path, args.head, args.tail, count_lines=not args.by_date):
        raise ValueError(f"could not cut {path}")
    print(f"Cut {path} (original kept as {backup_path(path)})")


def _cmd_stress(args: argparse.Namespace) -> None:
    settings = resolve_log_writer_settings(
        LogWriterSettings(
            path=Path(args.log),
            regex_filter=args.filter,
            plain=args.plain,
            timer_triggered=not args.count_trigger,
            trigger_threshold=args.threshold,
        )
    )

    with Dispatcher() as bus:
        writer = attach_file_writer(bus, settings, args.severities)
        stats = Statistics(bus, StatisticsSettings(timer_triggered=False, trigger_threshold=args.messages))
        echo = _StatisticsEcho()
        bus.register_receiver(echo, str, (Severity.STATISTICS,))

        def produce(worker_no: int) -> None:
            for i in range(args.messages):
                severity = _STRESS_SEVERITIES[i % len(_STRESS_SEVERITIES)]
                bus.publish(f"worker {worker_no} message {i}", severity, sender="stress")
                stats.increment(f"worker.{worker_no:02d}")

        started = time.monotonic()
        threads = [
            threading.Thread(target=produce, args=(n,), name=f"stress-{n}")
            for n in range(args.threads)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        stats.stop()
        bus.flush()
        elapsed = time.monotonic() - started

    written = 0
    if writer.path.is_file():
        with writer.path.open(encoding="utf-8", errors="replace") as f:
            written = sum(1 for _ in f)

    total = args.threads * args.messages
    print(f"Published {total} messages from {args.threads} threads in {elapsed:.2f}s")
    print(f"{writer.path}: {written} lines")
    if echo.last:
        print(echo.last)


class _StatisticsEcho:
    """Keeps the last statistics report for the summary."""

    def __init__(self) -> None:
        self.last: str | None = None

    def handle_message(self, sender: object, envelope: MessageEnvelope) -> None:
        self.last = envelope.text


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="info-bus", description="Notification bus maintenance tools.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug diagnostics on stderr")
    sub = p.add_subparsers(dest="command", required=True)

    cut = sub.add_parser("cut-log", help="Keep only the head and tail of a log file")
    cut.add_argument("log_path")
    cut.add_argument("--head", type=_non_negative, default=0, help="Items to keep from the start")
    cut.add_argument("--tail", type=_non_negative, required=True, help="Items to keep from the end")
    cut.add_argument(
        "--by-date",
        action="store_true",
        help="Count distinct leading dates instead of lines",
    )
    cut.set_defaults(func=_cmd_cut_log)

    stress = sub.add_parser("stress", help="Publish from many threads into a file log writer")
    stress.add_argument("--log", default="stress.log", help="Log file to write (default: stress.log)")
    stress.add_argument("--threads", type=_positive, default=4)
    stress.add_argument("--messages", type=_positive, default=1000, help="Messages per thread")
    stress.add_argument("--plain", action="store_true", help="Write payloads verbatim")
    stress.add_argument("--filter", default="", help="Regex filter ('@' prefix = replace mode)")
    stress.add_argument(
        "--severities",
        type=_severity_set,
        default=SeverityGroups.ALL,
        help="Pipe-delimited severities for the writer (default: ALL)",
    )
    stress.add_argument("--count-trigger", action="store_true", help="Flush by line count, not timer")
    stress.add_argument("--threshold", type=_positive, default=5000, help="ms or line count")
    stress.set_defaults(func=_cmd_stress)
    return p


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    LOGGER.debug("Running %s", args.command)

    try:
        args.func(args)
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    main()
