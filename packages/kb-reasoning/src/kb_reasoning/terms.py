"""
kb_reasoning/terms.py - Statement AST for rules and goals

Node kinds (a closed set; every traversal below handles each one):
- Identifier: a constant name (Dog, mammal)
- Hole: a quantified variable (?x)
- Literal: a quoted value (42, "red")
- Reference: a pointer to a named statement (@cond)
- Compound: an inline parenthesized expression ((isA ?x Dog))
- Statement: a top-level statement, optionally named (@cond isA ?x Dog)

Rule conditions and conclusions flatten into condition parts:
- LeafPart: one statement to prove or match
- AndPart / OrPart: conjunction / disjunction of parts
- NotPart: negation as failure of one part
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

LOGICAL_OPERATORS = frozenset({"And", "Or", "Not", "Implies"})


# =============================================================================
# AST NODES
# =============================================================================


@dataclass(frozen=True)
class Identifier:
    """Constant name."""

    name: str

    def __repr__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Hole:
    """Quantified variable.

    Example:
        x = Hole("x")   # written ?x
    """

    name: str

    def __repr__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class Literal:
    """Quoted scalar value."""

    value: Any

    def __repr__(self) -> str:
        return json.dumps(self.value) if isinstance(self.value, str) else str(self.value)


@dataclass(frozen=True)
class Reference:
    """Reference to a named statement, resolved during rule extraction."""

    name: str

    def __repr__(self) -> str:
        return f"@{self.name}"


@dataclass(frozen=True)
class Compound:
    """Inline expression with an operator and arguments."""

    operator: str
    args: tuple[Node, ...] = field(default_factory=tuple)

    def __repr__(self) -> str:
        return expr_signature(self)


@dataclass(frozen=True)
class Statement:
    """Top-level statement; ``name`` is its @destination, if any."""

    operator: str
    args: tuple[Node, ...] = field(default_factory=tuple)
    name: str | None = None

    def __repr__(self) -> str:
        prefix = f"@{self.name} " if self.name else ""
        return prefix + expr_signature(self)


Node = Union[Identifier, Hole, Literal, Reference, Compound, Statement]


# =============================================================================
# CONDITION PARTS
# =============================================================================


@dataclass(frozen=True)
class LeafPart:
    ast: Statement | Compound


@dataclass(frozen=True)
class AndPart:
    parts: tuple[Part, ...]


@dataclass(frozen=True)
class OrPart:
    parts: tuple[Part, ...]


@dataclass(frozen=True)
class NotPart:
    part: Part


Part = Union[LeafPart, AndPart, OrPart, NotPart]


# =============================================================================
# CONSTRUCTION HELPERS
# =============================================================================


def as_node(value: Any) -> Node:
    """Coerce shorthand into a node.

    "?x" becomes a Hole, "@s" a Reference, other strings Identifiers and
    non-string scalars Literals. Nodes pass through unchanged.
    """
    if isinstance(value, (Identifier, Hole, Literal, Reference, Compound, Statement)):
        return value
    if isinstance(value, str):
        if value.startswith("?") and len(value) > 1:
            return Hole(value[1:])
        if value.startswith("@") and len(value) > 1:
            return Reference(value[1:])
        return Identifier(value)
    return Literal(value)


def statement(operator: str, *args: Any, name: str | None = None) -> Statement:
    """Build a Statement from shorthand arguments.

    Example:
        statement("isA", "?x", "Dog")          # isA ?x Dog
        statement("Implies", "@c", "@r")       # Implies @c @r
    """
    return Statement(operator, tuple(as_node(a) for a in args), name)


def compound(operator: str, *args: Any) -> Compound:
    return Compound(operator, tuple(as_node(a) for a in args))


# =============================================================================
# TRAVERSALS
# =============================================================================


def expr_signature(node: Node) -> str:
    """Canonical text of a node, used for rule ids and goal strings."""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Hole):
        return f"?{node.name}"
    if isinstance(node, Reference):
        return f"@{node.name}"
    if isinstance(node, Literal):
        return json.dumps(node.value) if isinstance(node.value, str) else str(node.value)
    if isinstance(node, Statement):
        return " ".join([node.operator, *(expr_signature(a) for a in node.args)])
    if isinstance(node, Compound):
        return "(" + " ".join([node.operator, *(expr_signature(a) for a in node.args)]) + ")"
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def extract_variables(node: Node) -> list[str]:
    """Hole names in first-occurrence order."""
    found: list[str] = []

    def walk(n: Node) -> None:
        if isinstance(n, Hole):
            if n.name not in found:
                found.append(n.name)
        elif isinstance(n, (Statement, Compound)):
            for arg in n.args:
                walk(arg)
        elif isinstance(n, (Identifier, Literal, Reference)):
            return
        else:
            raise TypeError(f"Unknown node type: {type(n).__name__}")

    walk(node)
    return found


def part_variables(part: Part) -> list[str]:
    """Hole names across every leaf of a part tree."""
    found: list[str] = []
    for leaf in iter_leaves(part, include_negated=True):
        for name in extract_variables(leaf):
            if name not in found:
                found.append(name)
    return found


def iter_leaves(part: Part, include_negated: bool = False) -> list[Statement | Compound]:
    """Leaf ASTs of a part tree.

    Negated leaves are skipped unless include_negated is set, because a
    negated literal is never a positive conclusion.
    """
    if isinstance(part, LeafPart):
        return [part.ast]
    if isinstance(part, (AndPart, OrPart)):
        return [leaf for p in part.parts for leaf in iter_leaves(p, include_negated)]
    if isinstance(part, NotPart):
        return iter_leaves(part.part, include_negated) if include_negated else []
    raise TypeError(f"Unknown part type: {type(part).__name__}")


def node_name(node: Node) -> str | None:
    """Ground name of an argument node; None for holes and nested expressions."""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Literal):
        return str(node.value)
    if isinstance(node, (Hole, Reference, Statement, Compound)):
        return None
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def instantiate_ast(node: Node, bindings: Mapping[str, str], nested: bool = False) -> str:
    """Render a node as a fact string with bound variables substituted.

    Unbound holes stay as ``?name`` so partial instantiations remain
    readable. The outermost expression is written without parentheses
    ("isA Rex Dog"); nested ones keep them.
    """
    if isinstance(node, Hole):
        value = bindings.get(node.name)
        return value if value is not None else f"?{node.name}"
    if isinstance(node, Literal):
        return str(node.value)
    if isinstance(node, (Identifier, Reference)):
        return expr_signature(node)
    if isinstance(node, (Statement, Compound)):
        text = " ".join([node.operator, *(instantiate_ast(a, bindings, True) for a in node.args)])
        return f"({text})" if nested else text
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def parse_instantiated_goal(text: str) -> Statement | None:
    """Parse a flat fact string ("isA Rex Dog") back into a goal.

    Returns None when there is no operator plus at least one argument.
    """
    parts = text.split()
    if len(parts) < 2:
        return None
    return statement(parts[0], *parts[1:])
