"""tree-sitter adapter: lowering, masking and syntax-error reporting."""

from __future__ import annotations

import pytest

from flowdot_mcp.validation import ValidatorConfig, ValidatorLimitError
from flowdot_mcp.validation.checks import find_entry_points, summarize_returns
from flowdot_mcp.validation.findings import Location
from flowdot_mcp.validation.parser import ScriptSyntaxError, parse_script
from flowdot_mcp.validation.syntax import (
    Block,
    Call,
    Declaration,
    Function,
    Identifier,
    Member,
    NodeVisitor,
    ObjectLiteral,
    Return,
    walk,
)


# ---------------------------------------------------------------------------
# Lowering
# ---------------------------------------------------------------------------


def test_function_declaration_is_lowered():
    script = parse_script("function processData(inputs, properties) { return { a: 1, 'b': 2 }; }")
    fn = script.program.body[0]
    assert isinstance(fn, Function)
    assert fn.declaration
    assert fn.name == "processData"
    assert [p.name for p in fn.params] == ["inputs", "properties"]
    ret = fn.body[0]
    assert isinstance(ret, Return)
    assert isinstance(ret.argument, ObjectLiteral)
    assert ret.argument.keys == ["a", "b"]


def test_lexical_declaration_becomes_block_of_declarations():
    script = parse_script("const x = 1, y = inputs.a;")
    block = script.program.body[0]
    assert isinstance(block, Block)
    assert block.kind == "lexical_declaration"
    assert [d.name for d in block.items] == ["x", "y"]
    assert all(isinstance(d, Declaration) and d.keyword == "const" for d in block.items)


def test_concise_arrow_body_is_an_implicit_return():
    script = parse_script("const processData = (inputs) => ({ total: inputs.a });")
    (entry,) = find_entry_points(script.program)
    ret = entry.body[0]
    assert isinstance(ret, Return)
    assert ret.implicit
    assert isinstance(ret.argument, ObjectLiteral)


def test_member_and_subscript_properties():
    script = parse_script("inputs.a; inputs['b']; inputs[k];")
    members = [n for n in walk(script.program) if isinstance(n, Member)]
    assert [m.property for m in members] == ["a", "b", None]
    assert all(isinstance(m.object, Identifier) and m.object.name == "inputs" for m in members)


def test_new_expression_is_a_call():
    script = parse_script("new Date();")
    call = script.program.body[0]
    assert isinstance(call, Call)
    assert call.new
    assert call.callee.name == "Date"


def test_nested_function_returns_belong_to_the_nested_function():
    script = parse_script(
        "function processData(inputs) {\n"
        "  inputs.list.map(x => { return { k: x }; });\n"
        "  return { total: 1 };\n"
        "}\n"
    )
    summary = summarize_returns(script.program.body[0])
    assert list(summary.keys) == ["total"]


def test_walk_can_stay_out_of_nested_functions():
    script = parse_script("function f() { const g = () => { const inner = 1; }; }")
    shallow = [n.name for n in walk(script.program.body[0], into_functions=False) if isinstance(n, Declaration)]
    deep = [n.name for n in walk(script.program.body[0]) if isinstance(n, Declaration)]
    assert shallow == ["g"]
    assert deep == ["g", "inner"]


def test_node_visitor_dispatches_by_class_name():
    class Counter(NodeVisitor):
        def __init__(self):
            self.names = []

        def visit_Identifier(self, node):
            self.names.append(node.name)

    script = parse_script("a(b, c.d);")
    counter = Counter()
    counter.visit(script.program)
    assert counter.names == ["a", "b", "c"]


def test_locations_are_one_based():
    script = parse_script("\n  function processData(inputs) {}\n")
    assert script.program.body[0].loc == Location(2, 3)


# ---------------------------------------------------------------------------
# Masking
# ---------------------------------------------------------------------------


def test_masking_preserves_offsets_and_newlines():
    src = "const s = 'eval(x)'; // process.env\nconst t = 1;\n"
    script = parse_script(src)
    assert len(script.code_text) == len(src)
    assert len(script.source_text) == len(src)
    assert script.code_text.count("\n") == src.count("\n")


def test_code_text_blanks_strings_and_comments():
    script = parse_script("const s = 'eval(x)'; // process.env\n")
    assert "eval" not in script.code_text
    assert "process" not in script.code_text
    assert script.code_text.startswith("const s = '       ';")


def test_source_text_keeps_strings_but_blanks_comments():
    script = parse_script("const s = 'child_process'; /* fetch */\n")
    assert "child_process" in script.source_text
    assert "fetch" not in script.source_text


def test_location_at_maps_character_offsets():
    script = parse_script("a;\nbc;\n")
    assert script.location_at(0) == Location(1, 1)
    assert script.location_at(3) == Location(2, 1)
    assert script.location_at(4) == Location(2, 2)


# ---------------------------------------------------------------------------
# Errors and limits
# ---------------------------------------------------------------------------


def test_syntax_error_raises_with_location():
    with pytest.raises(ScriptSyntaxError) as exc_info:
        parse_script("function processData(inputs {\n}\n")
    assert exc_info.value.location is not None
    assert exc_info.value.message


def test_source_size_limit_counts_utf8_bytes():
    # 4 characters, 6 bytes
    with pytest.raises(ValidatorLimitError):
        parse_script("'éé'", ValidatorConfig(max_source_bytes=5))


def test_depth_limit():
    with pytest.raises(ValidatorLimitError):
        parse_script("x = " + "(" * 40 + "1" + ")" * 40 + ";", ValidatorConfig(max_tree_depth=30))


def test_unpaired_surrogate_is_a_syntax_error():
    with pytest.raises(ScriptSyntaxError) as exc_info:
        parse_script("const s = '\ud800';")
    assert exc_info.value.location == Location(1, 12)
    assert "U+D800" in exc_info.value.message


def test_jsx_is_rejected():
    with pytest.raises(ScriptSyntaxError) as exc_info:
        parse_script("function processData(inputs) {\n  return { total: <div/> };\n}\n")
    assert exc_info.value.message == "JSX is not supported in custom node scripts"
    assert exc_info.value.location == Location(2, 19)


@pytest.mark.parametrize(
    "source, location",
    [
        ("let a = 1; let a = 2;", Location(1, 16)),
        ("const { a } = x;\nconst [b, a] = y;", Location(2, 11)),
        ("function f() {\n  let a;\n  class a {}\n}", Location(3, 9)),
        ("switch (x) {\n  case 1: let a;\n  case 2: let a;\n}", Location(3, 15)),
    ],
)
def test_lexical_redeclaration_is_rejected(source, location):
    with pytest.raises(ScriptSyntaxError) as exc_info:
        parse_script(source)
    assert exc_info.value.message == "Identifier 'a' has already been declared"
    assert exc_info.value.location == location


def test_shadowing_in_a_nested_block_is_allowed():
    parse_script("let a = 1;\n{ let a = 2; }\nvar b; var b;")


def test_destructuring_records_local_bindings():
    script = parse_script("const { a, b: c, d = 1, ...rest } = inputs;")
    (decl,) = script.program.body[0].items
    assert decl.pattern.keys == ("a", "b", "d")
    assert decl.pattern.bindings == ("a", "c", "d", "rest")
    assert decl.bindings == ("a", "c", "d", "rest")


def test_for_of_and_catch_bindings_are_declarations():
    script = parse_script("for (const [i, v] of xs) {}\ntry {} catch ({ message }) {}")
    loop = script.program.body[0]
    assert isinstance(loop, Block) and loop.kind == "for_in_statement"
    head = loop.items[0]
    assert isinstance(head, Declaration)
    assert (head.keyword, head.bindings) == ("const", ("i", "v"))
    handler = script.program.body[1].handler
    assert isinstance(handler.items[0], Declaration)
    assert (handler.items[0].keyword, handler.items[0].bindings) == ("catch", ("message",))
