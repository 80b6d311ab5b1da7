"""Security pattern catalogue for custom-node scripts."""

from __future__ import annotations

import pytest

from flowdot_mcp.validation import Location, validate
from flowdot_mcp.validation.rules import SECURITY_RULES

OUT = [{"name": "r"}]


def _script(*body: str) -> str:
    lines = ["function processData(inputs, properties) {", *body, "  return { r: 1 };", "}"]
    return "\n".join(lines) + "\n"


def _security(src: str) -> list:
    return [f for f in validate(src, OUT) if f.kind == "security"]


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


def test_rule_names_are_unique():
    names = [r.name for r in SECURITY_RULES]
    assert len(names) == len(set(names))


def test_every_rule_has_a_message():
    for rule in SECURITY_RULES:
        assert rule.message, f"{rule.name}: empty message"
        assert rule.severity in ("error", "warning")


# ---------------------------------------------------------------------------
# Blocked constructs
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "line, fragment",
    [
        ("  const x = eval(inputs.code);", "eval()"),
        ("  const f = new Function('return 1');", "Function constructor"),
        ("  const m = require('os');", "require()"),
        ("  const m = import('os');", "import()"),
        ("  const env = process.env.SECRET;", "process object"),
        ("  global.x = 1;", "global object"),
        ("  globalThis.x = 1;", "globalThis"),
        ("  const p = inputs.__proto__;", "__proto__"),
        ("  const F = inputs.constructor.constructor;", "Constructor chain"),
        ("  const data = fs.readFileSync(inputs.path);", "File system"),
        ("  exec(inputs.cmd);", "exec()"),
        ("  spawn(inputs.cmd);", "spawn()"),
        ("  const res = fetch(inputs.url);", "HTTP Request node"),
        ("  const ws = new WebSocket(inputs.url);", "Raw network"),
        ("  setTimeout('doIt()', 10);", "setTimeout"),
        ("  setInterval(\"doIt()\", 10);", "setInterval"),
    ],
)
def test_blocked_construct_is_a_security_error(line, fragment):
    findings = _security(_script(line))
    assert findings, f"no finding for {line!r}"
    assert findings[0].severity == "error"
    assert findings[0].location.line == 2
    assert fragment in findings[0].message


def test_import_statement_is_flagged():
    src = "import fs from 'fs';\n" + _script()
    findings = _security(src)
    assert findings[0].location == Location(1, 1)
    assert "import statements" in findings[0].message


def test_busy_wait_is_a_warning():
    findings = _security(_script(
        "  const end = Date.now() + 1000;",
        "  while (Date.now() < end) {}",
    ))
    assert [(f.severity, f.location.line) for f in findings] == [("warning", 3)]


def test_location_points_at_the_match():
    findings = _security(_script("  const x = eval(inputs.code);"))
    assert findings[0].location == Location(2, 13)


def test_columns_are_counted_in_characters():
    findings = _security(_script('  const s = "é"; eval(inputs.x);'))
    assert findings[0].location == Location(2, 18)


def test_dynamic_import_with_space_is_one_finding():
    findings = _security(_script("  const m = import ('os');"))
    assert [f.message for f in findings] == ["Dynamic import() is not available in the sandbox"]


# ---------------------------------------------------------------------------
# Indirect references to blocked globals
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "line, message, column",
    [
        ("  const x = (0, eval)('1+1');", "eval() is blocked in the sandbox", 17),
        ("  const x = eval?.('1+1');", "eval() is blocked in the sandbox", 13),
        ("  const s = process['env']['SECRET'];", "The process object is not available", 13),
        ("  const s = process?.env.SECRET;", "The process object is not available", 13),
        ("  const g = globalThis;", "globalThis access is blocked", 13),
    ],
)
def test_indirect_reference_is_a_security_error(line, message, column):
    findings = _security(_script(line))
    assert len(findings) == 1
    assert findings[0].severity == "error"
    assert findings[0].message.startswith(message)
    assert findings[0].location == Location(2, column)


def test_direct_call_is_reported_once():
    findings = _security(_script("  const x = eval(inputs.code);"))
    assert len(findings) == 1


# ---------------------------------------------------------------------------
# No false positives
# ---------------------------------------------------------------------------


def test_mentions_inside_strings_are_ignored():
    assert _security(_script('  const s = "eval(x) and process.env";')) == []


def test_mentions_inside_comments_are_ignored():
    assert _security(_script("  // require('fs') would be nice", "  /* fetch(url) */")) == []


def test_mentions_inside_template_literal_text_are_ignored():
    assert _security(_script("  const s = `call eval(x) here`;")) == []


def test_code_inside_template_substitution_is_checked():
    findings = _security(_script("  const s = `${eval(inputs.x)}`;"))
    assert [f.message for f in findings] == ["eval() is blocked in the sandbox"]


def test_method_calls_with_blocked_names_are_ignored():
    assert _security(_script(
        "  const m = /a(b)/.exec(inputs.s);",
        "  const n = inputs.process.length;",
        "  const o = api.fetch(inputs.url);",
    )) == []


def test_properties_named_like_blocked_globals_are_ignored():
    assert _security(_script(
        "  const o = { process: inputs.a, eval: 1 };",
        "  const p = inputs['process'];",
    )) == []


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def test_every_match_is_reported():
    findings = _security(_script("  eval(inputs.a);", "  eval(inputs.b);"))
    assert [f.location.line for f in findings] == [2, 3]


def test_same_line_findings_follow_catalogue_order():
    findings = _security(_script("  const cp = require('child_process');"))
    assert [f.message for f in findings] == [
        "require() is not available in the sandbox",
        "The child_process module is not available",
    ]


def test_findings_are_ordered_by_line():
    findings = _security(_script("  fetch(inputs.url);", "  eval(inputs.a);"))
    assert [f.location.line for f in findings] == [2, 3]
