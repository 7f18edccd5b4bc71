"""
kb_reasoning/levels.py - Constructivist levels

A level is a monotone estimate of how much has to be built before a
statement can be derived. Primitives (logical operators and core
relations) sit at level 0; a concept first introduced by a fact sits one
above the most complex thing that fact mentions; a goal sits one above its
most complex token.

The proof engine uses levels to skip rules whose premises are more complex
than the goal they would prove. Unbound ``?var`` tokens are ignored, so an
unknown binding can only lower an estimate, never cause a false prune.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from .terms import Compound, Statement, expr_signature, instantiate_ast, iter_leaves

if TYPE_CHECKING:
    from .knowledge_base import ConceptStore
    from .rules import Rule

logger = logging.getLogger(__name__)

PRIMITIVES = frozenset(
    {
        # logical
        "Implies", "And", "Or", "Not", "ForAll", "Exists",
        # core relations
        "isA", "IS_A", "partOf", "PART_OF", "hasPart", "HAS_PART",
        "causes", "CAUSES", "hasProperty", "HAS_PROPERTY", "can", "CAN",
        "equals", "EQUALS",
    }
)


def goal_tokens(goal: str | Statement | Compound) -> list[str]:
    text = goal if isinstance(goal, str) else expr_signature(goal)
    return text.replace("(", " ").replace(")", " ").split()


def compute_goal_level(goal: str | Statement | Compound, concept_levels: Mapping[str, int]) -> int:
    """1 + the highest level among the goal's ground tokens."""
    level = 0
    for token in goal_tokens(goal):
        if token.startswith("?"):
            continue
        level = max(level, concept_levels.get(token, 0))
    return level + 1


def compute_max_premise_level(
    rule: Rule, bindings: Mapping[str, str], concept_levels: Mapping[str, int]
) -> int:
    """Highest goal level among the rule's premises after substitution."""
    levels = [
        compute_goal_level(instantiate_ast(leaf, bindings), concept_levels)
        for leaf in iter_leaves(rule.condition_parts, include_negated=True)
    ]
    return max(levels, default=0)


def compute_rule_levels(rules: Iterable[Rule], concept_levels: Mapping[str, int]) -> dict[str, int]:
    """Rule id -> level of its hardest premise with no bindings."""
    return {rule.id: compute_max_premise_level(rule, {}, concept_levels) for rule in rules}


class LevelManager:
    """Tracks concept, fact and rule levels for one engine."""

    def __init__(self, primitives: Iterable[str] = PRIMITIVES):
        self.primitives = frozenset(primitives)
        self.concept_levels: dict[str, int] = {p: 0 for p in self.primitives}
        self.fact_levels: dict[str, int] = {}
        self.rule_levels: dict[str, int] = {}
        self._rules: dict[str, Rule] = {}

    def register_concept(self, name: str, level: int) -> int:
        """Set a concept's level; primitives stay at 0."""
        if name in self.primitives:
            return 0
        self.concept_levels[name] = level
        return level

    def concept_level(self, name: str) -> int:
        return self.concept_levels.get(name, 0)

    def add_fact(self, operator: str, args: Iterable[str]) -> int:
        """Record a fact; concepts it introduces get the fact's level."""
        args = list(args)
        text = " ".join([operator, *args])
        level = compute_goal_level(text, self.concept_levels)
        for name in [operator, *args]:
            if name not in self.concept_levels:
                self.concept_levels[name] = level
        self.fact_levels[text] = level
        return level

    def index_store(self, store: ConceptStore) -> int:
        """Record every fact of a store as (relation, subject, object)."""
        count = 0
        for fact in store.get_facts():
            if " ".join([fact.relation, fact.subject, fact.object]) not in self.fact_levels:
                self.add_fact(fact.relation, [fact.subject, fact.object])
                count += 1
        return count

    def add_rule(self, rule: Rule) -> int:
        level = compute_max_premise_level(rule, {}, self.concept_levels)
        self.rule_levels[rule.id] = level
        self._rules[rule.id] = rule
        logger.debug(f"Rule {rule.name} registered at level {level}")
        return level

    def get_rules_for_goal_level(self, goal_level: int) -> list[Rule]:
        """Rules whose unbound premises are no harder than the goal."""
        return [r for rid, r in self._rules.items() if self.rule_levels[rid] <= goal_level]

    def get_stats(self) -> dict[str, int]:
        return {
            "concepts": len(self.concept_levels) - len(self.primitives),
            "facts": len(self.fact_levels),
            "rules": len(self.rule_levels),
            "max_level": max(self.concept_levels.values(), default=0),
        }
