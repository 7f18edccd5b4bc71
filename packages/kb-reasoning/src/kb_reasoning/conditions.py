"""
kb_reasoning/conditions.py - Proving instantiated rule conditions

A condition is a part tree (see terms.py). Solving walks it with a set of
bindings and yields every consistent extension:

    LeafPart  ground leaves are proven recursively through the engine;
              leaves with free variables enumerate matching store facts
    AndPart   left to right, backtracking into earlier parts on failure
    OrPart    each alternative in order
    NotPart   negation as failure: holds when the inner part has no solution
              and its search was not cut off by the depth limit

A solution carries the weakest confidence along its path.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from .terms import (
    AndPart,
    Compound,
    Hole,
    Identifier,
    LeafPart,
    NotPart,
    OrPart,
    Part,
    Statement,
    instantiate_ast,
    node_name,
)
from .unification import Bindings, ProofResult

if TYPE_CHECKING:
    from .prover import ProofEngine
    from .rules import Rule

logger = logging.getLogger(__name__)

Solution = tuple[Bindings, float, list[dict[str, Any]]]


class ConditionProver:
    """Proves rule conditions on behalf of a proof engine."""

    def __init__(self, engine: ProofEngine):
        self.engine = engine

    def prove_instantiated_condition(self, rule: Rule, bindings: Bindings, depth: int) -> ProofResult:
        """Prove rule's condition under bindings.

        Returns:
            First solution as a valid ProofResult (bindings include any
            variables the condition bound), or an invalid result with reason
            "depth_limit" or "condition_failed"
        """
        if depth > self.engine.max_depth:
            self.engine.depth_cutoffs += 1
            return ProofResult(False, reason="depth_limit")

        for solved, confidence, steps in self.solve(rule.condition_parts, dict(bindings), depth):
            return ProofResult(
                valid=True,
                method="condition",
                confidence=confidence,
                bindings=solved,
                steps=steps,
                rule=rule.name,
            )
        return ProofResult(False, reason="condition_failed")

    def solve(self, part: Part, bindings: Bindings, depth: int) -> Iterator[Solution]:
        if isinstance(part, LeafPart):
            yield from self._solve_leaf(part.ast, bindings, depth)
        elif isinstance(part, AndPart):
            yield from self._solve_all(part.parts, 0, bindings, 1.0, [], depth)
        elif isinstance(part, OrPart):
            for alternative in part.parts:
                yield from self.solve(alternative, bindings, depth)
        elif isinstance(part, NotPart):
            cutoffs = self.engine.depth_cutoffs
            if next(iter(self.solve(part.part, dict(bindings), depth)), None) is None:
                if self.engine.depth_cutoffs > cutoffs:
                    logger.debug(f"Not({self._describe(part.part, bindings)}) undecided: depth limit reached")
                    return
                yield (
                    bindings,
                    self.engine.thresholds.condition_confidence,
                    [{"operation": "negation_as_failure", "condition": self._describe(part.part, bindings)}],
                )
        else:
            raise TypeError(f"Unknown part type: {type(part).__name__}")

    def _solve_all(
        self,
        parts: tuple[Part, ...],
        index: int,
        bindings: Bindings,
        confidence: float,
        steps: list[dict[str, Any]],
        depth: int,
    ) -> Iterator[Solution]:
        if index == len(parts):
            yield bindings, confidence, steps
            return
        for solved, conf, sub_steps in self.solve(parts[index], dict(bindings), depth):
            yield from self._solve_all(
                parts, index + 1, solved, min(confidence, conf), steps + sub_steps, depth
            )

    def _solve_leaf(self, leaf: Statement | Compound, bindings: Bindings, depth: int) -> Iterator[Solution]:
        values: list[str | None] = []
        for arg in leaf.args:
            if isinstance(arg, Hole):
                values.append(bindings.get(arg.name))
            else:
                values.append(node_name(arg))

        if all(v is not None for v in values):
            goal = Statement(leaf.operator, tuple(Identifier(v) for v in values))
            result = self.engine.prove_goal(goal, depth)
            if result.valid:
                yield bindings, result.confidence, result.steps
            return

        # Free variables: enumerate facts for binary relations only
        if len(leaf.args) != 2:
            return
        subject, obj = values
        facts = self.engine.store.query(
            subject=subject,
            relation=leaf.operator,
            obj=obj,
            min_existence=self.engine.config.min_existence,
        )
        for fact in facts:
            extended = dict(bindings)
            if not self._bind(leaf.args[0], fact.subject, extended):
                continue
            if not self._bind(leaf.args[1], fact.object, extended):
                continue
            yield (
                extended,
                self.engine.thresholds.direct_match,
                [{"operation": "fact_match", "fact": f"{fact.subject} {fact.relation} {fact.object}", "factId": fact.id}],
            )

    @staticmethod
    def _bind(arg: Any, value: str, bindings: Bindings) -> bool:
        if not isinstance(arg, Hole):
            return node_name(arg) == value
        bound = bindings.get(arg.name)
        if bound is None:
            bindings[arg.name] = value
            return True
        return bound == value

    @staticmethod
    def _describe(part: Part, bindings: Bindings) -> str:
        if isinstance(part, LeafPart):
            return instantiate_ast(part.ast, bindings)
        if isinstance(part, AndPart):
            return "And(" + ", ".join(ConditionProver._describe(p, bindings) for p in part.parts) + ")"
        if isinstance(part, OrPart):
            return "Or(" + ", ".join(ConditionProver._describe(p, bindings) for p in part.parts) + ")"
        if isinstance(part, NotPart):
            return "Not(" + ConditionProver._describe(part.part, bindings) + ")"
        raise TypeError(f"Unknown part type: {type(part).__name__}")
