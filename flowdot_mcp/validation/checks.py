"""Analysis passes over a parsed custom-node script.

Every check is a plain function ``(ScriptContext) -> list[Finding]``.  The
pipeline in validator.py runs them in a fixed order:

  structural: processData present and shaped right, no top-level return
  outputs: returned keys vs. declared outputs
  security: SECURITY_RULES pattern catalogue (rules.py)
  best practice: BEST_PRACTICE_CHECKS, advisory only (warning / info)

Output binding model: the platform calls ``processData(inputs, properties, llm)``
and uses the returned object's keys as output values.  The analysis is a
heuristic, not control-flow analysis: an assignment or return anywhere in the
body counts as "set", even in a branch that can never run, and values built
through helper functions are not followed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from flowdot_mcp.validation.findings import Finding, PortDef
from flowdot_mcp.validation.parser import ParsedScript
from flowdot_mcp.validation.rules import BLOCKED_IDENTIFIERS, SECURITY_RULES
from flowdot_mcp.validation.syntax import (
    Assignment,
    Block,
    Call,
    Conditional,
    Declaration,
    Function,
    Identifier,
    Literal,
    Member,
    Node,
    NodeVisitor,
    ObjectLiteral,
    ObjectPattern,
    Program,
    Return,
    SpreadElement,
    StringLiteral,
    Try,
    walk,
)

ENTRY_POINT = "processData"
ENTRY_SIGNATURE = "function processData(inputs, properties) { return { ... }; }"

_DECLARATION_BLOCKS = frozenset({"lexical_declaration", "variable_declaration"})
_STRING_DATA_TYPE = re.compile(r"dataType.*['\"]string['\"]")


@dataclass
class ScriptContext:
    script: ParsedScript
    outputs: list[PortDef]
    inputs: list[PortDef]
    entries: list[Function] = field(default_factory=list)

    @property
    def program(self) -> Program:
        return self.script.program

    @property
    def entry(self) -> Function | None:
        # Function declarations hoist; the last definition is the one that runs.
        return self.entries[-1] if self.entries else None


Check = Callable[[ScriptContext], list[Finding]]


def build_context(script: ParsedScript, outputs: list[PortDef], inputs: list[PortDef]) -> ScriptContext:
    return ScriptContext(script=script, outputs=outputs, inputs=inputs, entries=find_entry_points(script.program))


def find_entry_points(program: Program) -> list[Function]:
    """Top-level ``function processData`` declarations and ``const processData = ...`` bindings."""
    found: list[Function] = []
    for stmt in program.body:
        if isinstance(stmt, Function) and stmt.declaration and stmt.name == ENTRY_POINT:
            found.append(stmt)
        elif isinstance(stmt, Block) and stmt.kind in _DECLARATION_BLOCKS:
            for decl in stmt.items:
                if isinstance(decl, Declaration) and decl.name == ENTRY_POINT and isinstance(decl.init, Function):
                    found.append(decl.init)
    return found


# ---------------------------------------------------------------------------
# Structural checks
# ---------------------------------------------------------------------------


def check_entry_point(ctx: ScriptContext) -> list[Finding]:
    entry = ctx.entry
    if entry is None:
        return [Finding(
            "missing_function", "error",
            f"No '{ENTRY_POINT}' function found. Script must define: {ENTRY_SIGNATURE}",
        )]
    if not entry.params:
        return [Finding(
            "missing_function", "warning",
            f"{ENTRY_POINT} has no parameters. Expected: function {ENTRY_POINT}(inputs, properties)",
            entry.loc,
        )]
    return []


def check_top_level_returns(ctx: ScriptContext) -> list[Finding]:
    return [
        Finding(
            "syntax_error", "error",
            f"Top-level 'return' statement found. Return must be inside the {ENTRY_POINT} function.",
            stmt.loc,
        )
        for stmt in ctx.program.body
        if isinstance(stmt, Return)
    ]


# ---------------------------------------------------------------------------
# Output binding
# ---------------------------------------------------------------------------


class _ReturnCollector(NodeVisitor):
    """Collects the return statements that belong to one function (not to nested callbacks)."""

    def __init__(self, root: Function) -> None:
        self.root = root
        self.returns: list[Return] = []

    def visit_Function(self, node: Function) -> None:
        if node is self.root:
            self.generic_visit(node)

    def visit_Return(self, node: Return) -> None:
        self.returns.append(node)


@dataclass
class _ReturnSummary:
    keys: dict[str, None] = field(default_factory=dict)
    value_returns: list[Return] = field(default_factory=list)
    empty_returns: list[Return] = field(default_factory=list)
    # Some returned value has keys that can't be listed (a spread, a call result).
    open: bool = False


def _is_empty(expr: Node | None) -> bool:
    if expr is None:
        return True
    if isinstance(expr, Literal):
        return expr.kind in ("null", "undefined")
    return isinstance(expr, Identifier) and expr.name == "undefined"


def _bound_keys(name: str, fn: Function) -> list[str]:
    """Keys of a local result object: its literal initializer plus ``name.key = ...`` assignments."""
    keys: list[str] = []
    for node in walk(fn):
        if isinstance(node, Declaration) and node.name == name and isinstance(node.init, ObjectLiteral):
            keys.extend(node.init.keys)
        elif isinstance(node, Assignment) and isinstance(node.target, Member):
            target = node.target
            if isinstance(target.object, Identifier) and target.object.name == name and target.property:
                keys.append(target.property)
    return keys


def _local_literal(name: str, fn: Function) -> ObjectLiteral | None:
    for node in walk(fn):
        if isinstance(node, Declaration) and node.name == name and isinstance(node.init, ObjectLiteral):
            return node.init
    return None


def _returned_keys(expr: Node | None, fn: Function, seen: frozenset[str] = frozenset()) -> tuple[list[str], bool]:
    """Keys a returned expression provides, and whether it may provide keys not seen here."""
    if isinstance(expr, ObjectLiteral):
        keys = list(expr.keys)
        is_open = False
        for prop in expr.properties:
            if not isinstance(prop, SpreadElement):
                continue
            arg = prop.argument
            if isinstance(arg, Identifier) and arg.name not in seen and _local_literal(arg.name, fn) is not None:
                spread_keys, spread_open = _returned_keys(arg, fn, seen | {arg.name})
                keys.extend(spread_keys)
                is_open = is_open or spread_open
            else:
                is_open = True
        return keys, is_open
    if isinstance(expr, Conditional):
        left, left_open = _returned_keys(expr.consequent, fn, seen)
        right, right_open = _returned_keys(expr.alternate, fn, seen)
        return left + right, left_open or right_open
    if isinstance(expr, Identifier):
        literal = _local_literal(expr.name, fn)
        if literal is None:
            return _bound_keys(expr.name, fn), True
        keys = _bound_keys(expr.name, fn)
        if literal.has_spread:
            spread_keys, is_open = _returned_keys(literal, fn, seen | {expr.name})
            return keys + spread_keys, is_open
        return keys, False
    if isinstance(expr, (Literal, StringLiteral, Function)):
        return [], False
    return [], True


def summarize_returns(fn: Function) -> _ReturnSummary:
    collector = _ReturnCollector(fn)
    collector.visit(fn)
    summary = _ReturnSummary()
    for ret in collector.returns:
        if _is_empty(ret.argument):
            summary.empty_returns.append(ret)
            continue
        summary.value_returns.append(ret)
        keys, is_open = _returned_keys(ret.argument, fn)
        for key in keys:
            summary.keys.setdefault(key, None)
        summary.open = summary.open or is_open
    return summary


def check_outputs(ctx: ScriptContext) -> list[Finding]:
    entry = ctx.entry
    if entry is None or not ctx.outputs:
        return []

    summary = summarize_returns(entry)
    if not summary.value_returns:
        names = ", ".join(f"'{o.name}'" for o in ctx.outputs)
        return [Finding(
            "output_mismatch", "error",
            f"{ENTRY_POINT} never returns a value, so no outputs will be produced (declared: {names}). "
            f"Return an object such as {{ {ctx.outputs[0].name}: value }}.",
            entry.loc,
        )]

    findings: list[Finding] = []
    declared = {o.name for o in ctx.outputs}
    for output in ctx.outputs:
        if output.name not in summary.keys and not summary.open:
            findings.append(Finding(
                "output_mismatch", "warning",
                f"Output '{output.name}' is never set: no return statement in {ENTRY_POINT} "
                "includes it, so it will be undefined",
            ))
    for key in summary.keys:
        if key not in declared:
            findings.append(Finding(
                "output_mismatch", "warning",
                f"{ENTRY_POINT} returns '{key}', which is not a declared output; it will be ignored",
            ))
    return findings


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


def check_security(ctx: ScriptContext) -> list[Finding]:
    """One finding per match.  Ordered by line, then catalogue order, then column.

    Pattern matches and blocked-identifier references at the same position
    are the same finding.
    """
    hits: dict[tuple[int, int, int], Finding] = {}
    for order, rule in enumerate(SECURITY_RULES):
        text = ctx.script.code_text if rule.scope == "code" else ctx.script.source_text
        for m in rule.pattern.finditer(text):
            loc = ctx.script.location_at(m.start())
            hits.setdefault((loc.line, order, loc.column), Finding("security", rule.severity, rule.message, loc))

    order_of = {rule.name: i for i, rule in enumerate(SECURITY_RULES)}
    for node in walk(ctx.program):
        if not isinstance(node, Identifier) or node.name not in BLOCKED_IDENTIFIERS:
            continue
        order = order_of[BLOCKED_IDENTIFIERS[node.name]]
        rule = SECURITY_RULES[order]
        hits.setdefault(
            (node.loc.line, order, node.loc.column),
            Finding("security", rule.severity, rule.message, node.loc),
        )
    return [hits[key] for key in sorted(hits)]


# ---------------------------------------------------------------------------
# Best practice: warning / info only, never blocking
# ---------------------------------------------------------------------------


def _single_parameter(ctx: ScriptContext) -> list[Finding]:
    entry = ctx.entry
    if entry is None or len(entry.params) != 1:
        return []
    return [Finding(
        "best_practice", "info",
        f"{ENTRY_POINT} has 1 parameter. Consider adding 'properties' as the second parameter "
        "to read node configuration.",
        entry.loc,
    )]


def _duplicate_entry(ctx: ScriptContext) -> list[Finding]:
    if len(ctx.entries) < 2:
        return []
    return [Finding(
        "best_practice", "warning",
        f"{ENTRY_POINT} is defined {len(ctx.entries)} times; only the last definition runs.",
        ctx.entries[-1].loc,
    )]


def _referenced_inputs(fn: Function) -> set[str] | None:
    """Input names read through the first parameter, or None when usage can't be determined."""
    param = fn.params[0]
    if isinstance(param, ObjectPattern):
        return None if param.rest else set(param.keys)
    if not isinstance(param, Identifier):
        return None

    used: set[str] = set()
    accounted = {id(param)}
    for node in walk(fn):
        if isinstance(node, Member) and isinstance(node.object, Identifier) and node.object.name == param.name:
            if node.property is None:
                return None  # inputs[someVariable]
            used.add(node.property)
            accounted.add(id(node.object))
        elif (
            isinstance(node, Declaration)
            and isinstance(node.init, Identifier)
            and node.init.name == param.name
            and isinstance(node.pattern, ObjectPattern)
        ):
            if node.pattern.rest:
                return None
            used.update(node.pattern.keys)
            accounted.add(id(node.init))

    for node in walk(fn):
        if isinstance(node, Identifier) and node.name == param.name and id(node) not in accounted:
            return None  # passed on whole, e.g. JSON.stringify(inputs)
    return used


def _unused_inputs(ctx: ScriptContext) -> list[Finding]:
    entry = ctx.entry
    if entry is None or not ctx.inputs or not entry.params:
        return []
    used = _referenced_inputs(entry)
    if used is None:
        return []
    return [
        Finding(
            "best_practice", "info",
            f"Input '{p.name}' is declared but never read in {ENTRY_POINT} (expected inputs.{p.name})",
        )
        for p in ctx.inputs
        if p.name not in used
    ]


def _empty_return_paths(ctx: ScriptContext) -> list[Finding]:
    entry = ctx.entry
    if entry is None or not ctx.outputs:
        return []
    summary = summarize_returns(entry)
    if not summary.value_returns:
        return []  # already an output_mismatch error
    return [
        Finding(
            "best_practice", "warning",
            "This return path sets no outputs; every declared output will be undefined when it is taken.",
            ret.loc,
        )
        for ret in summary.empty_returns
    ]


def _declared_names(program: Program) -> set[str]:
    names: set[str] = set()
    for node in walk(program):
        if isinstance(node, Declaration):
            names.update(node.bindings)
        elif isinstance(node, Function):
            if node.name:
                names.add(node.name)
            for param in node.params:
                names.update(_param_names(param))
    return names


def _param_names(param: Node) -> list[str]:
    if isinstance(param, Identifier):
        return [param.name]
    if isinstance(param, ObjectPattern):
        return list(param.bindings)
    # Array patterns lower to a Block of their elements.
    names: list[str] = []
    for node in walk(param):
        if isinstance(node, ObjectPattern):
            names.extend(node.bindings)
        elif isinstance(node, Identifier):
            names.append(node.name)
    return names


def _outputs_pseudo_global(ctx: ScriptContext) -> list[Finding]:
    if "outputs" in _declared_names(ctx.program):
        return []
    for node in walk(ctx.program):
        if isinstance(node, Identifier) and node.name == "outputs":
            return [Finding(
                "best_practice", "warning",
                f"'outputs' is not a predefined variable. Return values from {ENTRY_POINT}() instead.",
                node.loc,
            )]
    return []


def _unreturned_result(ctx: ScriptContext) -> list[Finding]:
    if any(o.name == "result" for o in ctx.outputs):
        return []
    decl = next(
        (n for n in walk(ctx.program) if isinstance(n, Declaration) and n.name == "result"),
        None,
    )
    if decl is None:
        return []
    for ret in (n for n in walk(ctx.program) if isinstance(n, Return) and n.argument is not None):
        if any(isinstance(n, Identifier) and n.name == "result" for n in walk(ret.argument)):
            return []
    return [Finding(
        "best_practice", "info",
        "Variable 'result' is defined but never returned. Did you mean to include it in the return statement?",
        decl.loc,
    )]


def _string_data_type(ctx: ScriptContext) -> list[Finding]:
    ports = [*ctx.inputs, *ctx.outputs]
    if any(p.data_type == "string" for p in ports) or _STRING_DATA_TYPE.search(ctx.script.source_text):
        return [Finding("best_practice", "info", "Use 'text' instead of 'string' for dataType values.")]
    return []


def _is_method_call(node: Node, obj: str, method: str) -> bool:
    return (
        isinstance(node, Call)
        and isinstance(node.callee, Member)
        and isinstance(node.callee.object, Identifier)
        and node.callee.object.name == obj
        and node.callee.property == method
    )


class _UnguardedJsonParse(NodeVisitor):
    def __init__(self) -> None:
        self.try_depth = 0
        self.calls: list[Call] = []

    def visit_Try(self, node: Try) -> None:
        self.try_depth += 1
        if node.block is not None:
            self.visit(node.block)
        self.try_depth -= 1
        for part in (node.handler, node.finalizer):
            if part is not None:
                self.visit(part)

    def visit_Call(self, node: Call) -> None:
        if self.try_depth == 0 and _is_method_call(node, "JSON", "parse"):
            self.calls.append(node)
        self.generic_visit(node)


def _json_parse_outside_try(ctx: ScriptContext) -> list[Finding]:
    visitor = _UnguardedJsonParse()
    visitor.visit(ctx.program)
    return [
        Finding(
            "best_practice", "info",
            "JSON.parse() outside try/catch throws on malformed input and fails the whole node; "
            "wrap it in try/catch.",
            call.loc,
        )
        for call in visitor.calls
    ]


def _unchecked_llm_call(ctx: ScriptContext) -> list[Finding]:
    calls = [n for n in walk(ctx.program) if _is_method_call(n, "llm", "call")]
    if not calls:
        return []
    if any(isinstance(n, Member) and n.property == "success" for n in walk(ctx.program)):
        return []
    return [Finding(
        "best_practice", "info",
        "llm.call() result is never checked; test result.success before using result.response.",
        calls[0].loc,
    )]


BEST_PRACTICE_CHECKS: tuple[Check, ...] = (
    _single_parameter,
    _duplicate_entry,
    _unused_inputs,
    _empty_return_paths,
    _outputs_pseudo_global,
    _unreturned_result,
    _string_data_type,
    _json_parse_outside_try,
    _unchecked_llm_call,
)


def check_best_practices(ctx: ScriptContext) -> list[Finding]:
    findings: list[Finding] = []
    for check in BEST_PRACTICE_CHECKS:
        findings.extend(check(ctx))
    return findings
