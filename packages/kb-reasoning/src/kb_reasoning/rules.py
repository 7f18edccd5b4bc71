"""
kb_reasoning/rules.py - Rule extraction from parsed statements

Rules arrive as ``Implies <condition> <conclusion>`` statements whose
arguments are inline compounds or references to other named statements.
References may point forward, so extraction runs in two passes:

    1. Build a name -> statement table from every named statement.
    2. For each Implies, resolve references through the table and flatten
       the condition and conclusion into And/Or/Not part trees.

A rule's id is the first 16 hex digits of the SHA-256 of its signature with
all references inlined, so it survives renaming and reloading.
"""
from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from hdc_core import HDCStrategy

from .errors import RuleExtractionError
from .terms import (
    AndPart,
    Compound,
    Hole,
    Identifier,
    LeafPart,
    Literal,
    Node,
    NotPart,
    OrPart,
    Part,
    Reference,
    Statement,
    expr_signature,
    part_variables,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    """An extracted, immutable rule."""

    id: str
    name: str
    condition_ast: Statement | Compound
    conclusion_ast: Statement | Compound
    condition_parts: Part
    conclusion_parts: Part
    condition_vars: tuple[str, ...]
    conclusion_vars: tuple[str, ...]
    vector: Any = field(default=None, compare=False, repr=False)

    @property
    def label(self) -> str:
        return self.name

    @property
    def signature(self) -> str:
        return rule_signature(self.condition_ast, self.conclusion_ast)

    def __repr__(self) -> str:
        return f"Rule({self.name}: {self.signature})"


def rule_signature(condition: Node, conclusion: Node) -> str:
    return f"Implies {expr_signature(condition)} {expr_signature(conclusion)}"


def rule_id(signature: str) -> str:
    """Content hash of a normalized rule signature."""
    return hashlib.sha256(signature.encode("utf-8")).hexdigest()[:16]


# =============================================================================
# REFERENCE RESOLUTION
# =============================================================================


def build_statement_table(statements: Iterable[Statement]) -> dict[str, Statement]:
    """First pass: named statements by destination name."""
    table: dict[str, Statement] = {}
    for stmt in statements:
        if stmt.name is None:
            continue
        if stmt.name in table:
            raise RuleExtractionError(f"Duplicate statement name @{stmt.name}")
        table[stmt.name] = stmt
    return table


def _lookup(ref: Reference, table: dict[str, Statement], visiting: frozenset[str]) -> Statement:
    if ref.name in visiting:
        raise RuleExtractionError(f"Cyclic reference through @{ref.name}")
    stmt = table.get(ref.name)
    if stmt is None:
        raise RuleExtractionError(f"Unknown statement @{ref.name}")
    return stmt


def inline_references(
    node: Node, table: dict[str, Statement], visiting: frozenset[str] = frozenset()
) -> Node:
    """Replace every Reference with a Compound copy of its statement."""
    if isinstance(node, Reference):
        stmt = _lookup(node, table, visiting)
        inner = visiting | {node.name}
        return Compound(stmt.operator, tuple(inline_references(a, table, inner) for a in stmt.args))
    if isinstance(node, Statement):
        return Statement(
            node.operator, tuple(inline_references(a, table, visiting) for a in node.args), node.name
        )
    if isinstance(node, Compound):
        return Compound(node.operator, tuple(inline_references(a, table, visiting) for a in node.args))
    if isinstance(node, (Identifier, Hole, Literal)):
        return node
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def build_parts(
    node: Node, table: dict[str, Statement], visiting: frozenset[str] = frozenset()
) -> Part:
    """Flatten an expression into And/Or/Not parts with leaf ASTs."""
    if isinstance(node, Reference):
        stmt = _lookup(node, table, visiting)
        return build_parts(stmt, table, visiting | {node.name})
    if isinstance(node, (Statement, Compound)):
        if node.operator == "And":
            return AndPart(tuple(build_parts(a, table, visiting) for a in node.args))
        if node.operator == "Or":
            return OrPart(tuple(build_parts(a, table, visiting) for a in node.args))
        if node.operator == "Not":
            if len(node.args) != 1:
                raise RuleExtractionError(f"Not takes one argument: {expr_signature(node)}")
            return NotPart(build_parts(node.args[0], table, visiting))
        leaf = inline_references(node, table, visiting)
        return LeafPart(leaf)
    if isinstance(node, (Identifier, Hole, Literal)):
        raise RuleExtractionError(f"Expected a statement, got {expr_signature(node)}")
    raise TypeError(f"Unknown node type: {type(node).__name__}")


# =============================================================================
# VECTOR ENCODING
# =============================================================================


def encode_expression(node: Node, strategy: HDCStrategy) -> Any:
    """Bind the operator with position-permuted argument encodings."""
    if isinstance(node, Identifier):
        return strategy.from_name(node.name)
    if isinstance(node, Hole):
        return strategy.from_name(f"?{node.name}")
    if isinstance(node, Literal):
        return strategy.from_name(expr_signature(node))
    if isinstance(node, Reference):
        return strategy.from_name(f"@{node.name}")
    if isinstance(node, (Statement, Compound)):
        parts = [strategy.from_name(node.operator)]
        for i, arg in enumerate(node.args):
            parts.append(strategy.permute(encode_expression(arg, strategy), strategy.position_permutation(i + 1)))
        return strategy.bind_all(*parts)
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def encode_rule(condition: Node, conclusion: Node, strategy: HDCStrategy) -> Any:
    return strategy.bind_all(
        strategy.from_name("Implies"),
        strategy.permute(encode_expression(condition, strategy), strategy.position_permutation(1)),
        strategy.permute(encode_expression(conclusion, strategy), strategy.position_permutation(2)),
    )


# =============================================================================
# EXTRACTION
# =============================================================================


def extract_rule(
    stmt: Statement, table: dict[str, Statement], strategy: HDCStrategy | None = None
) -> Rule:
    """Build one Rule from an Implies statement."""
    if stmt.operator != "Implies" or len(stmt.args) != 2:
        raise RuleExtractionError(f"Not a rule statement: {expr_signature(stmt)}")

    cond_node, concl_node = stmt.args
    condition = inline_references(cond_node, table)
    conclusion = inline_references(concl_node, table)
    if not isinstance(condition, (Statement, Compound)) or not isinstance(conclusion, (Statement, Compound)):
        raise RuleExtractionError(f"Rule sides must be statements: {expr_signature(stmt)}")

    condition_parts = build_parts(cond_node, table)
    conclusion_parts = build_parts(concl_node, table)
    rid = rule_id(rule_signature(condition, conclusion))

    return Rule(
        id=rid,
        name=stmt.name or f"rule_{rid}",
        condition_ast=condition,
        conclusion_ast=conclusion,
        condition_parts=condition_parts,
        conclusion_parts=conclusion_parts,
        condition_vars=tuple(part_variables(condition_parts)),
        conclusion_vars=tuple(part_variables(conclusion_parts)),
        vector=encode_rule(condition, conclusion, strategy) if strategy is not None else None,
    )


def extract_rules(
    statements: Iterable[Statement], strategy: HDCStrategy | None = None
) -> list[Rule]:
    """Extract every rule from a batch of parsed statements.

    Args:
        statements: Parsed statements, in source order
        strategy: When given, each rule also gets a vector encoding

    Returns:
        Rules in source order

    Raises:
        RuleExtractionError: Unknown, duplicate or cyclic statement names
    """
    statements = list(statements)
    table = build_statement_table(statements)
    rules = [extract_rule(s, table, strategy) for s in statements if s.operator == "Implies"]
    logger.debug(f"Extracted {len(rules)} rules from {len(statements)} statements")
    return rules
