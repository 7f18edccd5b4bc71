"""
kb_reasoning/prover.py - Backward-chaining proof engine

Proves ground goals against a ConceptStore and a set of extracted rules:

    1. Direct lookup: a stored fact (relation subject object) at or above
       the configured minimum existence proves the goal.
    2. Rules: each rule with a matching conclusion operator is tried through
       the unification engine, which recurses into the condition prover.

Every recursion is bounded by max_depth, and a goal already on the current
proof path is not retried (cycle guard). Exhaustion is reported as an
invalid result with a reason, never raised; a failed proof whose search
was cut off by max_depth reports "depth_limit" rather than "no_proof".
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from hdc_core import get_strategy

from .conditions import ConditionProver
from .config import EngineConfig
from .knowledge_base import ConceptStore
from .levels import LevelManager, compute_goal_level
from .rules import Rule, extract_rules
from .terms import Compound, Node, Statement, expr_signature, iter_leaves, node_name, parse_instantiated_goal
from .unification import ProofResult, UnificationEngine, UnificationOptions

logger = logging.getLogger(__name__)


class ProofEngine:
    """Backward chaining over facts and rules.

    Example:
        engine = ProofEngine(store)
        engine.add_statements([
            statement("isA", "?x", "Dog", name="c"),
            statement("isA", "?x", "Animal", name="r"),
            statement("Implies", "@c", "@r", name="dogs_are_animals"),
        ])
        engine.prove("isA Rex Animal").valid
    """

    def __init__(
        self,
        store: ConceptStore,
        config: EngineConfig | None = None,
        level_manager: LevelManager | None = None,
    ):
        self.store = store
        self.config = config if config is not None else EngineConfig()
        self.thresholds = self.config.thresholds
        self.level_manager = level_manager if level_manager is not None else LevelManager()
        self.max_depth = self.config.max_depth
        self.strategy = get_strategy(self.config.vector)

        self.rules: list[Rule] = []
        self._rules_by_operator: dict[str, list[Rule]] = {}
        self._active: set[str] = set()
        # depth-limit hits during the current prove() call
        self.depth_cutoffs = 0

        self.unification = UnificationEngine(self)
        self.conditions = ConditionProver(self)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def add_rule(self, rule: Rule) -> None:
        if any(r.id == rule.id for r in self.rules):
            logger.debug(f"Rule {rule.name} already registered")
            return
        self.rules.append(rule)
        for operator in {leaf.operator for leaf in iter_leaves(rule.conclusion_parts)}:
            self._rules_by_operator.setdefault(operator, []).append(rule)
        self.level_manager.add_rule(rule)
        logger.info(f"Registered rule {rule.name} ({rule.id})")

    def add_rules(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            self.add_rule(rule)

    def add_statements(self, statements: Iterable[Statement]) -> list[Rule]:
        """Extract rules from parsed statements and register them."""
        rules = extract_rules(statements, strategy=self.strategy)
        self.add_rules(rules)
        return rules

    def rules_for(self, operator: str) -> list[Rule]:
        return list(self._rules_by_operator.get(operator, []))

    # -------------------------------------------------------------------------
    # Goal decomposition
    # -------------------------------------------------------------------------

    @staticmethod
    def extract_operator_name(goal: Statement | Compound | str) -> str | None:
        if isinstance(goal, str):
            parsed = parse_instantiated_goal(goal)
            return parsed.operator if parsed else None
        return goal.operator or None

    @staticmethod
    def extract_arg_name(arg: Node) -> str | None:
        return node_name(arg)

    # -------------------------------------------------------------------------
    # Proof
    # -------------------------------------------------------------------------

    def prove(self, goal: Statement | Compound | str, max_depth: int | None = None) -> ProofResult:
        """Prove a ground goal.

        Args:
            goal: Statement or flat fact string ("isA Rex Animal")
            max_depth: Override of the configured depth bound

        Returns:
            ProofResult; invalid with reason "unparseable_goal", "depth_limit"
            or "no_proof" when the goal cannot be established
        """
        if isinstance(goal, str):
            parsed = parse_instantiated_goal(goal)
            if parsed is None:
                return ProofResult(False, reason="unparseable_goal")
            goal = parsed

        previous_depth = self.max_depth
        if max_depth is not None:
            self.max_depth = max_depth
        if self.config.use_level_optimization:
            self.level_manager.index_store(self.store)
        self._active.clear()
        self.depth_cutoffs = 0
        try:
            result = self.prove_goal(goal, 0)
        finally:
            self.max_depth = previous_depth
            self._active.clear()

        if not result.valid and result.reason == "no_proof" and self.depth_cutoffs:
            result = ProofResult(False, reason="depth_limit", goal=result.goal)

        if result.valid:
            for arg in goal.args:
                name = node_name(arg)
                if name is not None:
                    self.store.record_inference(name)
        return result

    def prove_goal(self, goal: Statement | Compound, depth: int) -> ProofResult:
        """One proof step: direct lookup, then rules (used recursively)."""
        if depth > self.max_depth:
            self.depth_cutoffs += 1
            return ProofResult(False, reason="depth_limit")

        goal_text = expr_signature(goal)
        operator = self.extract_operator_name(goal)
        args = [self.extract_arg_name(a) for a in goal.args]

        if operator and len(args) == 2 and None not in args:
            fact = self.store.get_best_existence_fact(args[0], operator, args[1])
            if fact is not None and fact.existence >= self.config.min_existence:
                return ProofResult(
                    valid=True,
                    method="direct",
                    confidence=self.thresholds.direct_match,
                    steps=[
                        {
                            "operation": "fact_lookup",
                            "fact": f"{fact.subject} {fact.relation} {fact.object}",
                            "factId": fact.id,
                            "existence": fact.existence,
                        }
                    ],
                    goal=goal_text,
                )

        if goal_text in self._active:
            return ProofResult(False, reason="cycle")

        options = UnificationOptions(
            use_level_optimization=self.config.use_level_optimization,
            strict_level_pruning=self.config.strict_level_pruning,
            goal_level=(
                compute_goal_level(goal_text, self.level_manager.concept_levels)
                if self.config.use_level_optimization
                else None
            ),
        )

        self._active.add(goal_text)
        try:
            for rule in self._rules_by_operator.get(operator or "", []):
                result = self.unification.try_unification(goal, rule, depth, options)
                if result.valid:
                    logger.debug(f"Proved {goal_text} via {rule.name} at depth {depth}")
                    return result
        finally:
            self._active.discard(goal_text)

        return ProofResult(False, reason="no_proof", goal=goal_text)
