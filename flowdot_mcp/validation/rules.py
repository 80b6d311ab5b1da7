"""Security pattern catalogue for custom-node scripts.

Each rule is data: a compiled pattern, the message shown to the author, a
severity, and the text scope it runs against:

  code    comments and string contents blanked; a mention of ``eval(`` in a
          string or comment is not a call
  source  comments blanked only, for names usually written as strings
          (``require('child_process')``) or used as bracket keys (``o['__proto__']``)

The sandbox blocks everything here; ``error`` rules are hard blocks, ``warning``
rules are discouraged but still run.  Order matters: it breaks ties between
findings on the same line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from flowdot_mcp.validation.findings import Severity

Scope = Literal["code", "source"]

# Call of a bare name, not a method: ``exec(`` but not ``regex.exec(``.
_BARE = r"(?<![\w$.])"


@dataclass(frozen=True)
class PatternRule:
    name: str
    pattern: re.Pattern[str]
    message: str
    severity: Severity = "error"
    scope: Scope = "code"


def _rule(name: str, pattern: str, message: str, severity: Severity = "error", scope: Scope = "code") -> PatternRule:
    return PatternRule(name=name, pattern=re.compile(pattern), message=message, severity=severity, scope=scope)


SECURITY_RULES: tuple[PatternRule, ...] = (
    # ── dynamic code evaluation ───────────────────────────────────
    _rule("eval", r"\beval\s*\(", "eval() is blocked in the sandbox"),
    _rule("function_constructor", r"\bFunction\s*\(", "The Function constructor is blocked in the sandbox"),
    # ── module loading ────────────────────────────────────────────
    _rule("require", r"\brequire\s*\(", "require() is not available in the sandbox"),
    _rule("import_statement", r"\bimport\s+(?![\s(])", "import statements are not supported in custom node scripts"),
    _rule("dynamic_import", r"\bimport\s*\(", "Dynamic import() is not available in the sandbox"),
    # ── runtime / global escape ───────────────────────────────────
    _rule("process", _BARE + r"process\.",
          "The process object is not available (no environment or process access)"),
    _rule("global", _BARE + r"global\.", "global object access is blocked"),
    _rule("global_this", _BARE + r"globalThis\.", "globalThis access is blocked"),
    _rule("proto", r"__proto__", "__proto__ access is blocked (prototype pollution)", scope="source"),
    _rule("constructor_chain", r"\.constructor\s*\.\s*constructor",
          "Constructor chain access is blocked (sandbox escape)"),
    # ── filesystem / subprocess ───────────────────────────────────
    _rule("fs", _BARE + r"fs\.", "File system (fs) access is not available"),
    _rule("child_process", r"\bchild_process\b", "The child_process module is not available", scope="source"),
    _rule("exec", _BARE + r"exec\s*\(", "exec() is not available (no subprocesses)"),
    _rule("spawn", _BARE + r"spawn\s*\(", "spawn() is not available (no subprocesses)"),
    # ── network ───────────────────────────────────────────────────
    _rule("fetch", _BARE + r"fetch\s*\(",
          "fetch() is not available; use an HTTP Request node for outbound calls"),
    _rule("raw_network", r"\b(?:XMLHttpRequest|WebSocket)\b",
          "Raw network access is not available; use an HTTP Request node for outbound calls"),
    # ── timers ────────────────────────────────────────────────────
    _rule("set_timeout_string", r"\bsetTimeout\s*\(\s*['\"`]", "setTimeout with a string argument is blocked"),
    _rule("set_interval_string", r"\bsetInterval\s*\(\s*['\"`]", "setInterval with a string argument is blocked"),
    _rule("busy_wait",
          r"\bwhile\s*\([^)]*(?:Date\.now\s*\(\s*\)|new\s+Date\s*\(\s*\)\s*\.\s*getTime\s*\(\s*\))",
          "Busy-wait loop on the clock blocks the node until the execution timeout; avoid sleeping in processData",
          severity="warning"),
)

# Names flagged wherever they appear as a reference in the syntax tree, so
# ``(0, eval)(x)``, ``eval?.(x)`` and ``process['env']`` are caught as well as
# the plain call or member forms the patterns above match.  Each maps to the
# rule whose message and severity it reuses.
BLOCKED_IDENTIFIERS: dict[str, str] = {
    "eval": "eval",
    "Function": "function_constructor",
    "process": "process",
    "global": "global",
    "globalThis": "global_this",
}
