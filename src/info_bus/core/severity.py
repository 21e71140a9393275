"""Severity taxonomy and the pipe-delimited severity-set mini-language."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    """Classification level of a published message."""

    STATISTICS = "Statistics"
    DEBUG = "Debug"
    INFO = "Info"
    WARN = "Warn"
    MILESTONE = "Milestone"
    ERROR = "Error"
    EXCEPTION = "Exception"
    NO_FILTER = "NoFilter"  # bypasses a writer's regex filter
    NO_LOG = "NoLog"  # never written by log writers
    UNKNOWN = "Unknown"

    @property
    def label(self) -> str:
        """Name used in structured log lines."""
        if self is Severity.NO_FILTER:
            return "System"
        return self.value


class SeverityGroups:
    """Precomputed severity sets addressable by group name."""

    NONE: tuple[Severity, ...] = ()
    ALL: tuple[Severity, ...] = (
        Severity.DEBUG,
        Severity.INFO,
        Severity.WARN,
        Severity.MILESTONE,
        Severity.ERROR,
        Severity.EXCEPTION,
        Severity.NO_FILTER,
    )
    SERIOUS: tuple[Severity, ...] = (Severity.MILESTONE, Severity.ERROR, Severity.EXCEPTION)
    AVERAGE: tuple[Severity, ...] = (
        Severity.INFO,
        Severity.WARN,
        Severity.MILESTONE,
        Severity.ERROR,
        Severity.EXCEPTION,
    )
    EXPECTED: tuple[Severity, ...] = (Severity.INFO, Severity.MILESTONE)
    UNEXPECTED: tuple[Severity, ...] = (Severity.WARN, Severity.ERROR, Severity.EXCEPTION)

    @classmethod
    def by_name(cls, name: str) -> tuple[Severity, ...] | None:
        """Return the group called `name` (case-insensitive), or None."""
        key = name.strip().upper()
        if key not in _GROUP_NAMES:
            return None
        return getattr(cls, key)


_GROUP_NAMES = frozenset({"NONE", "ALL", "SERIOUS", "AVERAGE", "EXPECTED", "UNEXPECTED"})
_BY_NAME = {s.value.upper(): s for s in Severity} | {s.name: s for s in Severity}


@dataclass(frozen=True, slots=True)
class SeverityParseResult:
    """Outcome of parsing a severity-set string."""

    severities: tuple[Severity, ...]
    rejected: tuple[str, ...] = ()
    group: str | None = None  # set when a group name consumed the list

    @property
    def ok(self) -> bool:
        return not self.rejected


def parse_severity(token: str) -> Severity | None:
    """Resolve a single severity name (case-insensitive), or None if unknown."""
    return _BY_NAME.get(token.strip().upper())


def parse_severities(text: str) -> SeverityParseResult:
    """Parse a pipe-delimited severity set such as ``"DEBUG|INFO"``.

    A group name (``NONE|ALL|SERIOUS|AVERAGE|EXPECTED|UNEXPECTED``) replaces
    whatever was collected so far and stops parsing. Unknown tokens are
    skipped and listed in ``rejected``.
    """
    collected: list[Severity] = []
    rejected: list[str] = []

    for token in text.split("|"):
        group = SeverityGroups.by_name(token)
        if group is not None:
            return SeverityParseResult(
                severities=group,
                rejected=tuple(rejected),
                group=token.strip().upper(),
            )

        severity = parse_severity(token)
        if severity is None:
            rejected.append(token)
            continue
        collected.append(severity)

    return SeverityParseResult(severities=tuple(collected), rejected=tuple(rejected))


def as_severities(value: str | Iterable[Severity]) -> tuple[Severity, ...]:
    """Accept either a severity-set string or an iterable of severities."""
    if isinstance(value, str):
        return parse_severities(value).severities
    return tuple(value)


def format_severities(severities: Iterable[Severity]) -> str:
    """Render severities as a pipe-delimited string (inverse of parsing)."""
    return "|".join(s.value for s in severities)
