"""Render a finding list as markdown for MCP tool responses."""

from __future__ import annotations

from collections.abc import Sequence

from flowdot_mcp.validation.findings import SEVERITY_ORDER, Finding

NO_ISSUES = "No issues found."

_HEADINGS = {
    "error": "### Errors (script will not be accepted):",
    "warning": "### Warnings:",
    "info": "### Notes:",
}


def _line(f: Finding) -> str:
    loc = f" (line {f.location.line}, column {f.location.column})" if f.location else ""
    return f"- [{f.kind}] {f.message}{loc}"


def format_report(findings: Sequence[Finding]) -> str:
    """Group by severity (error, warning, info), keeping pipeline order inside each group."""
    if not findings:
        return f"## Script Validation\n\n{NO_ISSUES}"

    lines = ["## Script Validation", ""]
    for severity in SEVERITY_ORDER:
        group = [f for f in findings if f.severity == severity]
        if not group:
            continue
        lines.append(_HEADINGS[severity])
        lines.extend(_line(f) for f in group)
        lines.append("")
    return "\n".join(lines).rstrip()
