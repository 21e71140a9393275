from __future__ import annotations

from info_bus.core.severity import (
    Severity,
    SeverityGroups,
    as_severities,
    format_severities,
    parse_severities,
    parse_severity,
)


def test_parse_severities_individual_tokens() -> None:
    result = parse_severities("DEBUG|INFO")
    assert result.severities == (Severity.DEBUG, Severity.INFO)
    assert result.ok
    assert result.group is None


def test_parse_severities_is_case_insensitive() -> None:
    result = parse_severities("debug|Warn|EXCEPTION")
    assert result.severities == (Severity.DEBUG, Severity.WARN, Severity.EXCEPTION)


def test_parse_severities_group_replaces_whole_list() -> None:
    result = parse_severities("Debug|serious|Info")
    assert result.severities == SeverityGroups.SERIOUS
    assert result.group == "SERIOUS"


def test_parse_severities_skips_unknown_tokens() -> None:
    result = parse_severities("DEBUG|bogus|ERROR|")
    assert result.severities == (Severity.DEBUG, Severity.ERROR)
    assert result.rejected == ("bogus", "")
    assert not result.ok


def test_parse_severities_none_group_is_empty() -> None:
    result = parse_severities("NONE")
    assert result.severities == ()
    assert result.group == "NONE"


def test_groups_contents() -> None:
    assert Severity.STATISTICS not in SeverityGroups.ALL
    assert Severity.NO_LOG not in SeverityGroups.ALL
    assert Severity.NO_FILTER in SeverityGroups.ALL
    assert SeverityGroups.EXPECTED == (Severity.INFO, Severity.MILESTONE)
    assert SeverityGroups.UNEXPECTED == (Severity.WARN, Severity.ERROR, Severity.EXCEPTION)
    assert SeverityGroups.by_name("average") == SeverityGroups.AVERAGE
    assert SeverityGroups.by_name("debug") is None


def test_parse_severity_accepts_value_and_member_names() -> None:
    assert parse_severity("nofilter") is Severity.NO_FILTER
    assert parse_severity("NO_FILTER") is Severity.NO_FILTER
    assert parse_severity(" milestone ") is Severity.MILESTONE
    assert parse_severity("fatal") is None


def test_format_severities_round_trips() -> None:
    text = format_severities(SeverityGroups.SERIOUS)
    assert text == "Milestone|Error|Exception"
    assert parse_severities(text).severities == SeverityGroups.SERIOUS


def test_as_severities_accepts_strings_and_iterables() -> None:
    assert as_severities("error|exception") == (Severity.ERROR, Severity.EXCEPTION)
    assert as_severities([Severity.INFO]) == (Severity.INFO,)


def test_no_filter_label_is_system() -> None:
    assert Severity.NO_FILTER.label == "System"
    assert Severity.WARN.label == "Warn"
