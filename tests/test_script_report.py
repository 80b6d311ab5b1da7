"""Markdown rendering of validator findings."""

from __future__ import annotations

from flowdot_mcp.validation import Finding, Location, format_report
from flowdot_mcp.validation.report import NO_ISSUES


def test_empty_report_says_no_issues():
    assert format_report([]) == f"## Script Validation\n\n{NO_ISSUES}"


def test_groups_by_severity_most_severe_first():
    findings = [
        Finding("best_practice", "info", "note one"),
        Finding("output_mismatch", "warning", "warn one", Location(4, 2)),
        Finding("security", "error", "err one", Location(3, 1)),
    ]
    assert format_report(findings) == (
        "## Script Validation\n"
        "\n"
        "### Errors (script will not be accepted):\n"
        "- [security] err one (line 3, column 1)\n"
        "\n"
        "### Warnings:\n"
        "- [output_mismatch] warn one (line 4, column 2)\n"
        "\n"
        "### Notes:\n"
        "- [best_practice] note one"
    )


def test_keeps_pipeline_order_within_a_group():
    findings = [
        Finding("missing_function", "error", "first"),
        Finding("security", "error", "second", Location(1, 1)),
    ]
    report = format_report(findings)
    assert report.index("first") < report.index("second")


def test_omits_empty_groups():
    report = format_report([Finding("security", "warning", "w", Location(1, 1))])
    assert "### Errors" not in report
    assert "### Notes" not in report
    assert "### Warnings:" in report
