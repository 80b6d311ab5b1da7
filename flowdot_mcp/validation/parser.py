"""Parser adapter: JavaScript source → typed syntax tree, via tree-sitter.

tree-sitter never raises on bad input; it produces ERROR / MISSING nodes
instead.  We treat the first such node (document order) as the parse failure
and raise ScriptSyntaxError, so the pipeline can short-circuit with a single
syntax_error finding.  No error-recovery parsing is attempted.

Besides the tree, parse_script() returns two masked copies of the source for
the text-pattern rules:
  code_text    comments and string/regex contents blanked (quotes kept)
  source_text  comments blanked only
Masking replaces characters with spaces and keeps newlines, so character
offsets and line numbers are identical to the original source.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass

import tree_sitter_javascript
from tree_sitter import Language, Node as TSNode, Parser

from flowdot_mcp.validation.config import DEFAULT_CONFIG, ValidatorConfig
from flowdot_mcp.validation.findings import Location, ValidatorLimitError
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
    ObjectLiteral,
    ObjectPattern,
    Program,
    Property,
    Return,
    SpreadElement,
    StringLiteral,
    Try,
)

_DEFAULT_ENCODING = "utf-8"

JS_LANGUAGE = Language(tree_sitter_javascript.language())

# Extras that never become tree nodes.
_SKIPPED_TYPES = frozenset({"comment", "hash_bang_line", "html_comment"})

_FUNCTION_DECLARATION_TYPES = frozenset({"function_declaration", "generator_function_declaration"})
_FUNCTION_EXPRESSION_TYPES = frozenset(
    {"function_expression", "function", "generator_function", "arrow_function", "method_definition"}
)
_IDENTIFIER_TYPES = frozenset(
    {"identifier", "shorthand_property_identifier", "property_identifier", "this", "super"}
)
_LITERAL_TYPES = frozenset({"number", "true", "false", "null", "undefined", "regex"})

# Error snippets are cut to this many characters.
_SNIPPET_LIMIT = 30


class ScriptSyntaxError(Exception):
    """The script does not parse.  Converted to a syntax_error finding, never propagated."""

    def __init__(self, message: str, location: Location | None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location


@dataclass(frozen=True)
class ParsedScript:
    program: Program
    source: str
    code_text: str
    source_text: str
    line_starts: tuple[int, ...]

    def location_at(self, offset: int) -> Location:
        """Convert a character offset into a 1-based Location."""
        line = bisect.bisect_right(self.line_starts, offset)
        return Location(line=line, column=offset - self.line_starts[line - 1] + 1)


def _get_parser() -> Parser:
    # A fresh Parser per call keeps validate() reentrant across threads.
    parser = Parser()
    parser.language = JS_LANGUAGE
    return parser


def parse_script(source: str, config: ValidatorConfig = DEFAULT_CONFIG) -> ParsedScript:
    """Parse *source* into a ParsedScript.

    Raises:
        ValidatorLimitError: source size or tree depth exceeds *config*.
        ScriptSyntaxError: the source does not parse.
    """
    try:
        encoded = source.encode(_DEFAULT_ENCODING)
    except UnicodeEncodeError as e:
        raise _invalid_character(source, e.start) from e
    if len(encoded) > config.max_source_bytes:
        raise ValidatorLimitError(
            f"Script is {len(encoded)} bytes; the validator limit is {config.max_source_bytes} bytes"
        )

    tree = _get_parser().parse(encoded)
    root = tree.root_node
    _check_depth(root, config.max_tree_depth)

    index = _SourceIndex(source, encoded)
    if root.has_error:
        raise _syntax_error(root, index)
    unsupported = _unsupported_syntax(root, index)
    if unsupported is not None:
        raise unsupported

    program = _Lowerer(index).lower(root)
    assert isinstance(program, Program)
    code_text, source_text = _mask(root, index)
    return ParsedScript(
        program=program,
        source=source,
        code_text=code_text,
        source_text=source_text,
        line_starts=index.line_starts,
    )


# ---------------------------------------------------------------------------
# Offsets
# ---------------------------------------------------------------------------


class _SourceIndex:
    """Maps tree-sitter byte offsets to character offsets and Locations."""

    def __init__(self, source: str, encoded: bytes) -> None:
        self.source = source
        self.encoded = encoded
        self._byte_to_char: list[int] | None = None
        if len(encoded) != len(source):
            table: list[int] = []
            for i, ch in enumerate(source):
                table.extend([i] * len(ch.encode(_DEFAULT_ENCODING)))
            table.append(len(source))
            self._byte_to_char = table
        starts = [0]
        for i, ch in enumerate(source):
            if ch == "\n":
                starts.append(i + 1)
        self.line_starts: tuple[int, ...] = tuple(starts)

    def char_offset(self, byte_offset: int) -> int:
        if self._byte_to_char is None:
            return byte_offset
        return self._byte_to_char[byte_offset]

    def location(self, node: TSNode) -> Location:
        offset = self.char_offset(node.start_byte)
        line = bisect.bisect_right(self.line_starts, offset)
        return Location(line=line, column=offset - self.line_starts[line - 1] + 1)

    def text(self, node: TSNode) -> str:
        return self.encoded[node.start_byte : node.end_byte].decode(_DEFAULT_ENCODING)


def _check_depth(root: TSNode, limit: int) -> None:
    stack: list[tuple[TSNode, int]] = [(root, 1)]
    while stack:
        node, depth = stack.pop()
        if depth > limit:
            raise ValidatorLimitError(f"Script nesting exceeds the validator limit of {limit} levels")
        stack.extend((child, depth + 1) for child in node.children)


def _syntax_error(root: TSNode, index: _SourceIndex) -> ScriptSyntaxError:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_missing:
            return ScriptSyntaxError(f"Missing '{node.type}'", index.location(node))
        if node.is_error:
            snippet = index.text(node).strip().splitlines()
            if not snippet:
                return ScriptSyntaxError("Unexpected end of input", index.location(node))
            return ScriptSyntaxError(
                f"Unexpected token '{snippet[0][:_SNIPPET_LIMIT]}'", index.location(node),
            )
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return ScriptSyntaxError("Unknown syntax error", None)


def _invalid_character(source: str, offset: int) -> ScriptSyntaxError:
    line_start = source.rfind("\n", 0, offset) + 1
    loc = Location(line=source.count("\n", 0, offset) + 1, column=offset - line_start + 1)
    return ScriptSyntaxError(f"Invalid character U+{ord(source[offset]):04X} (unpaired surrogate)", loc)


# Scopes whose direct statements share one lexical environment.
_BLOCK_SCOPE_TYPES = frozenset({"program", "statement_block", "switch_body"})


def _binding_nodes(n: TSNode | None) -> list[TSNode]:
    """Identifier nodes bound by a declarator name, parameter or destructuring pattern."""
    found: list[TSNode] = []
    stack = [n] if n is not None else []
    while stack:
        node = stack.pop()
        t = node.type
        if t in ("identifier", "shorthand_property_identifier_pattern"):
            found.append(node)
        elif t in ("assignment_pattern", "object_assignment_pattern"):
            left = node.child_by_field_name("left")
            if left is not None:
                stack.append(left)
        elif t == "pair_pattern":
            value = node.child_by_field_name("value")
            if value is not None:
                stack.append(value)
        elif t in ("object_pattern", "array_pattern", "rest_pattern"):
            stack.extend(reversed(node.named_children))
    return found


def _redeclared(scope: TSNode, index: _SourceIndex) -> ScriptSyntaxError | None:
    statements = scope.named_children
    if scope.type == "switch_body":
        statements = [s for case in scope.named_children for s in case.named_children]
    seen: set[str] = set()
    for stmt in statements:
        if stmt.type == "lexical_declaration":
            targets = [d.child_by_field_name("name") for d in stmt.named_children if d.type == "variable_declarator"]
        elif stmt.type == "class_declaration":
            targets = [stmt.child_by_field_name("name")]
        else:
            continue
        for target in targets:
            for ident in _binding_nodes(target):
                name = index.text(ident)
                if name in seen:
                    return ScriptSyntaxError(f"Identifier '{name}' has already been declared", index.location(ident))
                seen.add(name)
    return None


def _unsupported_syntax(root: TSNode, index: _SourceIndex) -> ScriptSyntaxError | None:
    """Constructs the grammar accepts but a plain script engine rejects: JSX and let/const redeclaration."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type.startswith("jsx_"):
            return ScriptSyntaxError("JSX is not supported in custom node scripts", index.location(node))
        if node.type in _BLOCK_SCOPE_TYPES:
            error = _redeclared(node, index)
            if error is not None:
                return error
        stack.extend(reversed(node.children))
    return None


# ---------------------------------------------------------------------------
# Lowering: tree-sitter concrete tree → typed variant tree
# ---------------------------------------------------------------------------


class _Lowerer:
    def __init__(self, index: _SourceIndex) -> None:
        self._index = index

    def lower(self, n: TSNode | None) -> Node | None:
        if n is None or n.type in _SKIPPED_TYPES:
            return None
        t = n.type
        loc = self._index.location(n)

        if t == "program":
            return Program(loc, body=self._children(n))
        if t in _FUNCTION_DECLARATION_TYPES:
            return self._function(n, declaration=True)
        if t in _FUNCTION_EXPRESSION_TYPES:
            return self._function(n)
        if t in ("lexical_declaration", "variable_declaration"):
            keyword = n.children[0].type if n.children else "var"
            decls = tuple(
                self._declarator(d, keyword) for d in n.named_children if d.type == "variable_declarator"
            )
            return Block(loc, kind=t, items=decls)
        if t == "return_statement":
            return Return(loc, argument=self.lower(self._first_named(n)))
        if t in ("expression_statement", "parenthesized_expression"):
            inner = self._first_named(n)
            if inner is not None:
                return self.lower(inner)
            return Block(loc, kind=t)
        if t == "assignment_expression":
            return Assignment(
                loc,
                target=self.lower(n.child_by_field_name("left")),
                value=self.lower(n.child_by_field_name("right")),
            )
        if t == "augmented_assignment_expression":
            op = n.child_by_field_name("operator")
            return Assignment(
                loc,
                target=self.lower(n.child_by_field_name("left")),
                value=self.lower(n.child_by_field_name("right")),
                operator=self._index.text(op) if op is not None else "=",
            )
        if t == "call_expression":
            return Call(
                loc,
                callee=self.lower(n.child_by_field_name("function")),
                arguments=self._arguments(n.child_by_field_name("arguments")),
            )
        if t == "new_expression":
            return Call(
                loc,
                callee=self.lower(n.child_by_field_name("constructor")),
                arguments=self._arguments(n.child_by_field_name("arguments")),
                new=True,
            )
        if t == "member_expression":
            prop = n.child_by_field_name("property")
            return Member(
                loc,
                object=self.lower(n.child_by_field_name("object")),
                property=self._index.text(prop) if prop is not None else None,
            )
        if t == "subscript_expression":
            index = self.lower(n.child_by_field_name("index"))
            return Member(
                loc,
                object=self.lower(n.child_by_field_name("object")),
                property=index.value if isinstance(index, StringLiteral) else None,
                index=index,
            )
        if t in _IDENTIFIER_TYPES:
            return Identifier(loc, name=self._index.text(n))
        if t == "string":
            return StringLiteral(loc, value=self._index.text(n)[1:-1])
        if t == "template_string":
            subs = [c for c in n.named_children if c.type == "template_substitution"]
            if not subs:
                return StringLiteral(loc, value=self._index.text(n)[1:-1])
            return Block(loc, kind=t, items=tuple(x for x in map(self.lower, subs) if x is not None))
        if t in _LITERAL_TYPES:
            return Literal(loc, kind=t, text=self._index.text(n))
        if t == "object":
            return ObjectLiteral(loc, properties=self._object_properties(n))
        if t == "object_pattern":
            return self._object_pattern(n)
        if t == "ternary_expression":
            return Conditional(
                loc,
                test=self.lower(n.child_by_field_name("condition")),
                consequent=self.lower(n.child_by_field_name("consequence")),
                alternate=self.lower(n.child_by_field_name("alternative")),
            )
        if t == "for_in_statement" and n.child_by_field_name("kind") is not None:
            keyword = n.child_by_field_name("kind").type
            head = self._binding(n, keyword, n.child_by_field_name("left"))
            rest = (self.lower(n.child_by_field_name("right")), self.lower(n.child_by_field_name("body")))
            return Block(loc, kind=t, items=(head, *(x for x in rest if x is not None)))
        if t == "catch_clause":
            param = n.child_by_field_name("parameter")
            body = self.lower(n.child_by_field_name("body"))
            items = (self._binding(param, "catch", param),) if param is not None else ()
            return Block(loc, kind=t, items=items + ((body,) if body is not None else ()))
        if t == "try_statement":
            return Try(
                loc,
                block=self.lower(n.child_by_field_name("body")),
                handler=self.lower(n.child_by_field_name("handler")),
                finalizer=self.lower(n.child_by_field_name("finalizer")),
            )
        return Block(loc, kind=t, items=self._children(n))

    # -- helpers -------------------------------------------------------------

    def _children(self, n: TSNode) -> tuple[Node, ...]:
        return tuple(x for x in map(self.lower, n.named_children) if x is not None)

    @staticmethod
    def _first_named(n: TSNode) -> TSNode | None:
        for c in n.named_children:
            if c.type not in _SKIPPED_TYPES:
                return c
        return None

    def _arguments(self, n: TSNode | None) -> tuple[Node, ...]:
        if n is None:
            return ()
        if n.type == "arguments":
            return self._children(n)
        # Tagged template: fn`...`
        lowered = self.lower(n)
        return (lowered,) if lowered is not None else ()

    def _function(self, n: TSNode, declaration: bool = False) -> Function:
        name_node = n.child_by_field_name("name")
        params_node = n.child_by_field_name("parameters")
        if params_node is not None:
            params = tuple(
                x for x in (self._param(c) for c in params_node.named_children) if x is not None
            )
        else:
            single = self.lower(n.child_by_field_name("parameter"))
            params = (single,) if single is not None else ()

        body_node = n.child_by_field_name("body")
        if body_node is None:
            body: tuple[Node, ...] = ()
        elif body_node.type == "statement_block":
            body = self._children(body_node)
        else:
            expr = self.lower(body_node)
            body = (Return(self._index.location(body_node), argument=expr, implicit=True),)

        return Function(
            self._index.location(n),
            name=self._index.text(name_node) if name_node is not None else None,
            params=params,
            body=body,
            declaration=declaration,
        )

    def _param(self, n: TSNode) -> Node | None:
        if n.type == "assignment_pattern":
            return self.lower(n.child_by_field_name("left"))
        return self.lower(n)

    def _declarator(self, n: TSNode, keyword: str) -> Declaration:
        init = self.lower(n.child_by_field_name("value"))
        return self._binding(n, keyword, n.child_by_field_name("name"), init)

    def _binding(self, n: TSNode, keyword: str, target: TSNode | None, init: Node | None = None) -> Declaration:
        loc = self._index.location(n)
        names = tuple(self._index.text(b) for b in _binding_nodes(target))
        if target is not None and target.type == "identifier":
            return Declaration(loc, keyword=keyword, name=self._index.text(target), init=init, bindings=names)
        return Declaration(loc, keyword=keyword, pattern=self.lower(target), init=init, bindings=names)

    def _key(self, n: TSNode | None) -> str | None:
        if n is None or n.type == "computed_property_name":
            return None
        text = self._index.text(n)
        if n.type == "string":
            return text[1:-1]
        return text

    def _object_properties(self, n: TSNode) -> tuple[Node, ...]:
        props: list[Node] = []
        for c in n.named_children:
            loc = self._index.location(c)
            if c.type == "pair":
                props.append(Property(
                    loc,
                    key=self._key(c.child_by_field_name("key")),
                    value=self.lower(c.child_by_field_name("value")),
                ))
            elif c.type == "shorthand_property_identifier":
                name = self._index.text(c)
                props.append(Property(loc, key=name, value=Identifier(loc, name=name)))
            elif c.type == "method_definition":
                props.append(Property(
                    loc, key=self._key(c.child_by_field_name("name")), value=self._function(c),
                ))
            elif c.type == "spread_element":
                props.append(SpreadElement(loc, argument=self.lower(self._first_named(c))))
        return tuple(props)

    def _object_pattern(self, n: TSNode) -> ObjectPattern:
        keys: list[str] = []
        rest = False
        for c in n.named_children:
            if c.type == "shorthand_property_identifier_pattern":
                keys.append(self._index.text(c))
            elif c.type == "pair_pattern":
                key = self._key(c.child_by_field_name("key"))
                if key is not None:
                    keys.append(key)
            elif c.type == "object_assignment_pattern":
                left = c.child_by_field_name("left")
                if left is not None:
                    keys.append(self._index.text(left))
            elif c.type == "rest_pattern":
                rest = True
        bindings = tuple(self._index.text(b) for b in _binding_nodes(n))
        return ObjectPattern(self._index.location(n), keys=tuple(keys), rest=rest, bindings=bindings)


# ---------------------------------------------------------------------------
# Masking
# ---------------------------------------------------------------------------


def _mask(root: TSNode, index: _SourceIndex) -> tuple[str, str]:
    comment_spans: list[tuple[int, int]] = []
    literal_spans: list[tuple[int, int]] = []

    stack = [root]
    while stack:
        node = stack.pop()
        t = node.type
        if t in _SKIPPED_TYPES:
            comment_spans.append((node.start_byte, node.end_byte))
            continue
        if t == "string":
            literal_spans.append((node.start_byte + 1, node.end_byte - 1))
            continue
        if t == "template_string":
            # Blank the literal text between substitutions; keep scanning the substitutions.
            cursor = node.start_byte + 1
            for c in node.named_children:
                if c.type == "template_substitution":
                    literal_spans.append((cursor, c.start_byte))
                    cursor = c.end_byte
                    stack.append(c)
            literal_spans.append((cursor, node.end_byte - 1))
            continue
        if t == "regex_pattern":
            literal_spans.append((node.start_byte, node.end_byte))
            continue
        stack.extend(node.children)

    source_chars = list(index.source)
    _blank(source_chars, comment_spans, index)
    code_chars = list(source_chars)
    _blank(code_chars, literal_spans, index)
    return "".join(code_chars), "".join(source_chars)


def _blank(chars: list[str], spans: list[tuple[int, int]], index: _SourceIndex) -> None:
    for start_byte, end_byte in spans:
        if end_byte <= start_byte:
            continue
        for i in range(index.char_offset(start_byte), index.char_offset(end_byte)):
            if chars[i] != "\n":
                chars[i] = " "
