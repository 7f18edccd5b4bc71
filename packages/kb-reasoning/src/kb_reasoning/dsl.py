"""
kb_reasoning/dsl.py - Fluent Python API over the reasoning core

Wires one ConceptStore to an InferenceEngine, a ProofEngine and a Reasoner
that share a single EngineConfig.

Example:
    from kb_reasoning.dsl import ReasoningDSL

    r = ReasoningDSL()

    # Facts and relation properties
    r.fact("Dog", "IS_A", "mammal")
    r.fact("mammal", "IS_A", "animal")
    r.relation("MARRIED_TO", symmetric=True)

    # Rules
    r.rule("dogs_bark") \\
        .when("IS_A", "?x", "Dog") \\
        .and_("HAS_PROPERTY", "?x", "vocal") \\
        .then("CAN", "?x", "bark")

    # Queries
    r.query("Dog", "IS_A", "animal").method   # "transitive"
    r.prove("CAN", "Rex", "bark").valid
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import torch
from hdc_core import RelationPermuter

from .config import EngineConfig
from .existence import Existence
from .inference import InferenceEngine, InferenceResult, Triple
from .knowledge_base import Concept, ConceptStore
from .prover import ProofEngine
from .reasoner import AbductionResult, AnalogyResult, Reasoner
from .rules import Rule
from .terms import Compound, Statement, compound, statement
from .unification import ProofResult

logger = logging.getLogger(__name__)


class RuleBuilder:
    """Fluent builder for Implies rules; then() registers the rule."""

    def __init__(self, dsl: ReasoningDSL, name: str):
        self.dsl = dsl
        self.name = name
        self.conditions: list[Compound] = []

    def when(self, operator: str, *args: Any) -> RuleBuilder:
        """Add the first condition."""
        self.conditions.append(compound(operator, *args))
        return self

    def and_(self, operator: str, *args: Any) -> RuleBuilder:
        """Add another condition (AND)."""
        self.conditions.append(compound(operator, *args))
        return self

    def unless(self, operator: str, *args: Any) -> RuleBuilder:
        """Add a negated condition (negation as failure)."""
        self.conditions.append(Compound("Not", (compound(operator, *args),)))
        return self

    def then(self, operator: str, *args: Any) -> Rule:
        """Set the conclusion and register the rule."""
        if not self.conditions:
            raise ValueError(f"Rule {self.name} needs at least one condition")
        condition = self.conditions[0] if len(self.conditions) == 1 else Compound("And", tuple(self.conditions))
        rule_stmt = Statement("Implies", (condition, compound(operator, *args)), self.name)
        return self.dsl.add_statements([rule_stmt])[0]


class ReasoningDSL:
    """Programmatic front end for one theory.

    Args:
        config: Engine configuration (defaults: dense-binary, geometry 2048)
        store: Existing store to reason over (created if None)
    """

    def __init__(self, config: EngineConfig | None = None, store: ConceptStore | None = None):
        self.config = config if config is not None else EngineConfig()
        self.store = store if store is not None else ConceptStore(geometry=self.config.geometry)
        if self.store.geometry != self.config.geometry:
            raise ValueError(
                f"Store geometry {self.store.geometry} does not match config geometry {self.config.geometry}"
            )
        self.permuter = RelationPermuter(self.config.geometry)
        self.inference = InferenceEngine(self.config)
        self.prover = ProofEngine(self.store, self.config)
        self.reasoner = Reasoner(self.store, self.permuter, config=self.config)

    # -------------------------------------------------------------------------
    # Knowledge
    # -------------------------------------------------------------------------

    def fact(self, subject: str, relation: str, obj: str, existence: int | None = None, **metadata: Any) -> int:
        """Add a fact; returns its id (or the id of the dominating copy)."""
        return self.store.add_fact((subject, relation, obj), existence=existence, metadata=metadata or None)

    def facts(self, triples: Iterable[tuple[str, str, str]]) -> list[int]:
        return [self.fact(*t) for t in triples]

    def concept(self, label: str, *vectors: torch.Tensor) -> Concept:
        """Ensure a concept exists and widen its diamond with each vector."""
        concept = self.store.ensure_concept(label)
        for v in vectors:
            self.store.add_observation(label, v)
        return concept

    def relation(
        self,
        name: str,
        transitive: bool | None = None,
        symmetric: bool | None = None,
        inverse: str | None = None,
    ) -> None:
        """Declare relation properties and give the relation a permutation."""
        props = {k: v for k, v in (("transitive", transitive), ("symmetric", symmetric)) if v is not None}
        if props:
            self.inference.set_relation_properties(name, **props)
        if inverse is not None:
            self.inference.register_inverse(name, inverse)
        if not self.permuter.has(name):
            self.permuter.register(name)

    def default(
        self, name: str, typical_type: str, property: str, value: str, exceptions: Iterable[str] = ()
    ) -> None:
        self.inference.register_default(name, typical_type, property, value, exceptions)

    def composition(self, name: str, head: tuple[str, str, str], *body: tuple[str, str, str]) -> None:
        self.inference.register_rule(name, head, body)

    def rule(self, name: str) -> RuleBuilder:
        """Start building a rule.

        Example:
            r.rule("mortal").when("IS_A", "?x", "Human").then("IS_A", "?x", "Mortal")
        """
        return RuleBuilder(self, name)

    def add_statements(self, statements: Iterable[Statement]) -> list[Rule]:
        return self.prover.add_statements(statements)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _fact_list(self) -> list[Triple]:
        return [
            Triple(f.subject, f.relation, f.object)
            for f in self.store.get_facts_by_existence(self.config.min_existence)
        ]

    def query(self, subject: str, relation: str, obj: str) -> InferenceResult:
        """Infer a triple from the store's facts."""
        for label in (subject, obj):
            self.store.record_query(label)
        return self.inference.infer(subject, relation, obj, self._fact_list())

    def prove(self, goal: str | Statement, *args: str) -> ProofResult:
        """Backward-chain a goal.

        Accepts a goal string ("IS_A Rex Animal"), a Statement, or an
        operator followed by its arguments.
        """
        if args:
            goal = statement(goal, *args)
        return self.prover.prove(goal)

    def derive_all(self, max_iterations: int | None = None) -> list[Triple]:
        """Forward-chain the store and add the derived facts to it."""
        derived = self.inference.forward_chain(self._fact_list(), max_iterations)
        for fact in derived:
            self.store.add_fact(
                fact.key,
                existence=int(Existence.DEMONSTRATED),
                metadata={"derived_by": fact.derived_by},
            )
        logger.info(f"Forward chaining added {len(derived)} facts")
        return derived

    def causes(self, effect: str | torch.Tensor, relation: str = "CAUSES", k: int = 5) -> AbductionResult:
        """Abduce the most likely cause of an effect concept or vector."""
        if isinstance(effect, str):
            concept = self.store.get_concept(effect)
            if concept is None or concept.diamonds[0].is_empty:
                return AbductionResult()
            effect = concept.diamonds[0].center_vector()
        return self.reasoner.abductive(effect, relation, k=k)

    def analogy(self, a: str | torch.Tensor, b: str | torch.Tensor, c: str | torch.Tensor) -> AnalogyResult:
        return self.reasoner.analogical(a, b, c)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def snapshot(self) -> list[dict[str, Any]]:
        return self.store.snapshot_facts()

    def restore(self, records: Iterable[dict[str, Any]]) -> int:
        return self.store.restore_facts(records)
