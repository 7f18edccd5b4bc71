"""
kb_reasoning/unification.py - Goal/rule unification for backward chaining

Matches a ground goal such as ``isA Rex Animal`` against the leaf
conclusions of a rule, binds the rule's variables left to right, and hands
the instantiated condition to the condition prover.

This is one-way matching (rule pattern against ground goal), not full
first-order unification: there is no occurs check and goal arguments are
never variables.

Bindings:
    A Bindings map goes from variable name to ground argument name. Python
    dicts keep insertion order, so serialized bindings list variables in
    the order they were bound.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .levels import compute_max_premise_level
from .terms import (
    Compound,
    Hole,
    Identifier,
    Literal,
    Node,
    Statement,
    expr_signature,
    instantiate_ast,
    iter_leaves,
    parse_instantiated_goal,
)

if TYPE_CHECKING:
    from .prover import ProofEngine
    from .rules import Rule

logger = logging.getLogger(__name__)

Bindings = dict[str, str]

__all__ = [
    "Bindings",
    "ProofResult",
    "UnificationOptions",
    "UnificationEngine",
    "instantiate_ast",
    "parse_instantiated_goal",
    "match_arguments",
]


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class ProofResult:
    """Outcome of a proof attempt. Falsy when not valid."""

    valid: bool
    method: str | None = None
    confidence: float = 0.0
    bindings: Bindings = field(default_factory=dict)
    steps: list[dict[str, Any]] = field(default_factory=list)
    rule: str | None = None
    goal: str | None = None
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"valid": self.valid}
        if not self.valid:
            if self.reason:
                result["reason"] = self.reason
            return result
        result.update(
            method=self.method,
            confidence=self.confidence,
            bindings=dict(self.bindings),
            steps=list(self.steps),
        )
        if self.rule is not None:
            result["rule"] = self.rule
        if self.goal is not None:
            result["goal"] = self.goal
        return result


@dataclass(frozen=True)
class UnificationOptions:
    """Per-call switches for level-based pruning."""

    use_level_optimization: bool = False
    strict_level_pruning: bool = False
    goal_level: int | None = None


# =============================================================================
# MATCHING
# =============================================================================


def match_arguments(rule_args: tuple[Node, ...], goal_args: list[str]) -> Bindings | None:
    """Bind rule arguments against ground goal arguments, left to right.

    Returns:
        Bindings, or None when a constant differs (case-sensitive) or a
        repeated variable would take two different values
    """
    bindings: Bindings = {}
    for rule_arg, goal_arg in zip(rule_args, goal_args):
        if isinstance(rule_arg, Hole):
            bound = bindings.get(rule_arg.name)
            if bound is None:
                bindings[rule_arg.name] = goal_arg
            elif bound != goal_arg:
                return None
        elif isinstance(rule_arg, Identifier):
            if rule_arg.name != goal_arg:
                return None
        elif isinstance(rule_arg, Literal):
            if str(rule_arg.value) != goal_arg:
                return None
        else:
            # nested expressions never match a flat goal argument
            return None
    return bindings


# =============================================================================
# UNIFICATION ENGINE
# =============================================================================


class UnificationEngine:
    """Unifies goals with rule conclusions for a proof engine.

    The proof engine supplies goal decomposition (extract_operator_name,
    extract_arg_name), the condition prover, the level manager and the
    thresholds.
    """

    def __init__(self, engine: ProofEngine):
        self.engine = engine

    def try_unification(
        self,
        goal: Statement | Compound,
        rule: Rule,
        depth: int,
        options: UnificationOptions | None = None,
    ) -> ProofResult:
        """Try to prove goal through one rule.

        Args:
            goal: Ground goal statement
            rule: Candidate rule
            depth: Current proof depth; the condition is proven at depth + 1
            options: Level pruning switches

        Returns:
            Valid ProofResult with bindings and steps, or ProofResult(valid=False)
        """
        options = options or UnificationOptions()
        operator = self.engine.extract_operator_name(goal)
        args = [self.engine.extract_arg_name(a) for a in getattr(goal, "args", ())]
        if not operator or not args or any(a is None for a in args):
            return ProofResult(False, reason="unresolvable_goal")

        goal_text = expr_signature(goal)
        for candidate in iter_leaves(rule.conclusion_parts):
            if candidate.operator != operator or len(candidate.args) != len(args):
                continue

            bindings = match_arguments(candidate.args, args)
            if bindings is None:
                continue

            if (
                options.use_level_optimization
                and options.strict_level_pruning
                and options.goal_level is not None
            ):
                premise_level = compute_max_premise_level(
                    rule, bindings, self.engine.level_manager.concept_levels
                )
                if premise_level > options.goal_level:
                    logger.debug(
                        f"Pruned {rule.name} for {goal_text}: premise level "
                        f"{premise_level} > goal level {options.goal_level}"
                    )
                    continue

            logger.debug(f"Unified {goal_text} with {rule.name} {bindings}")
            condition = self.engine.conditions.prove_instantiated_condition(rule, bindings, depth + 1)
            if not condition.valid:
                continue

            merged: Bindings = dict(bindings)
            for name, value in condition.bindings.items():
                merged.setdefault(name, value)

            return ProofResult(
                valid=True,
                method="backward_chain_unified",
                confidence=condition.confidence * self.engine.thresholds.confidence_decay,
                bindings=merged,
                steps=[
                    {
                        "operation": "unification_match",
                        "rule": rule.name,
                        "ruleId": rule.id,
                        "bindings": dict(bindings),
                    },
                    *condition.steps,
                ],
                rule=rule.name,
                goal=goal_text,
            )

        return ProofResult(False, reason="no_unification")

    @staticmethod
    def instantiate(node: Node, bindings: Bindings) -> str:
        return instantiate_ast(node, bindings)

    @staticmethod
    def parse(text: str) -> Statement | None:
        return parse_instantiated_goal(text)
