"""Typed syntax tree for custom-node scripts.

The tree-sitter concrete tree is lowered (see parser.py) into this closed set
of frozen node classes.  Checks only look at the handful of constructs they
care about (function shapes, returns, assignments, calls, member access,
object literals); everything else is a ``Block`` that records the grammar
kind and keeps its children in source order.

Traversal:
  walk(node)         iterative pre-order generator (safe on deep trees)
  NodeVisitor        ``visit_<ClassName>`` dispatch, like ast.NodeVisitor
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass

from flowdot_mcp.validation.findings import Location


@dataclass(frozen=True, eq=False)
class Node:
    loc: Location

    def children(self) -> tuple[Node, ...]:
        """Direct child nodes in source order (field declaration order)."""
        out: list[Node] = []
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Node):
                out.append(value)
            elif isinstance(value, tuple):
                out.extend(v for v in value if isinstance(v, Node))
        return tuple(out)


@dataclass(frozen=True, eq=False)
class Program(Node):
    body: tuple[Node, ...] = ()


@dataclass(frozen=True, eq=False)
class Function(Node):
    """Function declaration, function expression, arrow function or method.

    A concise arrow body (``x => ({a: x})``) is stored as a single implicit Return.
    """

    name: str | None = None
    params: tuple[Node, ...] = ()
    body: tuple[Node, ...] = ()
    declaration: bool = False


@dataclass(frozen=True, eq=False)
class Declaration(Node):
    """One binding of a const/let/var statement, a for-in/of head or a catch clause.

    ``bindings`` lists every local name the declaration introduces, including
    names inside a destructuring ``pattern``.
    """

    keyword: str = "var"
    name: str | None = None
    pattern: Node | None = None
    init: Node | None = None
    bindings: tuple[str, ...] = ()


@dataclass(frozen=True, eq=False)
class Return(Node):
    argument: Node | None = None
    implicit: bool = False


@dataclass(frozen=True, eq=False)
class Assignment(Node):
    target: Node | None = None
    value: Node | None = None
    operator: str = "="


@dataclass(frozen=True, eq=False)
class Call(Node):
    callee: Node | None = None
    arguments: tuple[Node, ...] = ()
    new: bool = False


@dataclass(frozen=True, eq=False)
class Member(Node):
    """``a.b`` (property="b"), ``a["b"]`` (property="b"), ``a[x]`` (property=None)."""

    object: Node | None = None
    property: str | None = None
    index: Node | None = None


@dataclass(frozen=True, eq=False)
class Identifier(Node):
    name: str = ""


@dataclass(frozen=True, eq=False)
class StringLiteral(Node):
    value: str = ""


@dataclass(frozen=True, eq=False)
class Literal(Node):
    """number / true / false / null / undefined / regex."""

    kind: str = ""
    text: str = ""


@dataclass(frozen=True, eq=False)
class Property(Node):
    """``key: value`` or shorthand ``key``; key is None when computed."""

    key: str | None = None
    value: Node | None = None


@dataclass(frozen=True, eq=False)
class SpreadElement(Node):
    argument: Node | None = None


@dataclass(frozen=True, eq=False)
class ObjectLiteral(Node):
    properties: tuple[Node, ...] = ()

    @property
    def keys(self) -> list[str]:
        return [p.key for p in self.properties if isinstance(p, Property) and p.key is not None]

    @property
    def has_spread(self) -> bool:
        return any(isinstance(p, SpreadElement) for p in self.properties)


@dataclass(frozen=True, eq=False)
class ObjectPattern(Node):
    """Destructuring pattern ``{ a, b: c, ...rest }``.

    ``keys`` are the source property names (a, b); ``bindings`` the local names (a, c, rest).
    """

    keys: tuple[str, ...] = ()
    rest: bool = False
    bindings: tuple[str, ...] = ()


@dataclass(frozen=True, eq=False)
class Conditional(Node):
    test: Node | None = None
    consequent: Node | None = None
    alternate: Node | None = None


@dataclass(frozen=True, eq=False)
class Try(Node):
    block: Node | None = None
    handler: Node | None = None
    finalizer: Node | None = None


@dataclass(frozen=True, eq=False)
class Block(Node):
    """Any other construct; ``kind`` is the tree-sitter grammar type."""

    kind: str = ""
    items: tuple[Node, ...] = ()


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def walk(node: Node, into_functions: bool = True) -> Iterator[Node]:
    """Yield *node* and its descendants in source (pre-)order.

    With ``into_functions=False`` nested Function nodes are yielded but not
    entered; the root itself is always entered.
    """
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        if current is not node and not into_functions and isinstance(current, Function):
            continue
        stack.extend(reversed(current.children()))


class NodeVisitor:
    """Dispatches ``visit(node)`` to ``visit_<ClassName>`` or ``generic_visit``."""

    def visit(self, node: Node) -> None:
        method = getattr(self, f"visit_{type(node).__name__}", self.generic_visit)
        method(node)

    def generic_visit(self, node: Node) -> None:
        for child in node.children():
            self.visit(child)
