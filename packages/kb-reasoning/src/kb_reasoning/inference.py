"""
kb_reasoning/inference.py - Relation-aware inference over fact lists

Independent derivation strategies, each answering "does subject relation
object hold?" against a list of facts:

    direct        exact triple (case-insensitive names)
    transitive    BFS over a transitive relation, with the witnessing chain
    symmetric     the reversed fact of a symmetric relation
    inverse       the swapped fact of a registered inverse relation
    inheritance   HAS_PROPERTY / CAN / HAS_ABILITY facts of a superclass
    composition   user rules whose body is a list of triple patterns
    default       typical-case rules with named exceptions (non-monotonic)

infer() tries them in exactly that order and returns the first decisive
result (TRUE_CERTAIN, TRUE_DEFAULT or FALSE). A default's exception also
blocks the matching inherited property, so "Pete CAN fly" is FALSE rather
than inherited from bird.

FORWARD CHAINING:
    forward_chain() saturates symmetric, transitive, inverse and composition
    expansion and returns only the new facts. Running it again on its own
    output adds nothing.

Relation properties, defaults and composition rules live in a
RelationRegistry owned by the engine instance.
"""
from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from .config import EngineConfig
from .errors import MalformedTripleError
from .knowledge_base import Fact

logger = logging.getLogger(__name__)

INHERITABLE_RELATIONS = ("HAS_PROPERTY", "CAN", "HAS_ABILITY")
TYPE_RELATION = "IS_A"

METHOD_ORDER = (
    "direct",
    "transitive",
    "symmetric",
    "inverse",
    "inheritance",
    "composition",
    "default",
)


class Truth(str, Enum):
    """Qualitative truth value of an inference."""

    TRUE_CERTAIN = "TRUE_CERTAIN"
    TRUE_DEFAULT = "TRUE_DEFAULT"
    PLAUSIBLE = "PLAUSIBLE"
    FALSE = "FALSE"
    UNKNOWN = "UNKNOWN"


DECISIVE = frozenset({Truth.TRUE_CERTAIN, Truth.TRUE_DEFAULT, Truth.FALSE})


# =============================================================================
# DATA
# =============================================================================


@dataclass(frozen=True)
class Triple:
    """A plain fact; derived_by names the expansion that produced it."""

    subject: str
    relation: str
    object: str
    derived_by: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.subject, self.relation, self.object)

    def to_dict(self) -> dict[str, Any]:
        data = {"subject": self.subject, "relation": self.relation, "object": self.object}
        if self.derived_by is not None:
            data["derived_by"] = self.derived_by
        return data

    def __str__(self) -> str:
        return f"{self.subject} {self.relation} {self.object}"


def as_triple(fact: Any) -> Triple:
    """Coerce a Fact, mapping or 3-tuple into a Triple.

    Raises:
        MalformedTripleError: Missing or empty parts
    """
    if isinstance(fact, Triple):
        return fact
    if isinstance(fact, Fact):
        return Triple(fact.subject, fact.relation, fact.object)
    if isinstance(fact, Mapping):
        parts = (fact.get("subject"), fact.get("relation"), fact.get("object"))
        derived_by = fact.get("derived_by")
    elif isinstance(fact, (tuple, list)) and len(fact) == 3:
        parts = tuple(fact)
        derived_by = None
    else:
        raise MalformedTripleError(f"Cannot read a fact from {fact!r}")
    if not all(isinstance(p, str) and p.strip() for p in parts):
        raise MalformedTripleError(f"Fact needs non-empty subject, relation and object: {fact!r}")
    return Triple(parts[0], parts[1], parts[2], derived_by)


def _norm(name: str) -> str:
    return str(name).strip().lower()


def _is_var(token: str) -> bool:
    return token.startswith("?")


@dataclass
class InferenceResult:
    """Outcome of one strategy (or of infer)."""

    truth: Truth
    method: str
    confidence: float = 0.0
    proof: dict[str, Any] | None = None
    reason: str | None = None
    inherited_from: str | None = None
    exception: str | None = None
    rule: str | None = None
    inverse_relation: str | None = None
    assumptions: list[str] = field(default_factory=list)

    @property
    def is_decisive(self) -> bool:
        return self.truth in DECISIVE

    @property
    def is_true(self) -> bool:
        return self.truth in (Truth.TRUE_CERTAIN, Truth.TRUE_DEFAULT)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict without empty fields; facts become dicts."""
        result: dict[str, Any] = {"truth": self.truth.value, "method": self.method}
        for f in fields(self):
            if f.name in ("truth", "method"):
                continue
            value = getattr(self, f.name)
            if value is None or value == []:
                continue
            result[f.name] = _plain(value)
        return result


def _plain(value: Any) -> Any:
    if isinstance(value, Triple):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _unknown(method: str, reason: str | None = None) -> InferenceResult:
    return InferenceResult(Truth.UNKNOWN, method, reason=reason)


def _goal(subject: str, relation: str, obj: str) -> dict[str, str]:
    return {"subject": subject, "relation": relation, "object": obj}


# =============================================================================
# RELATION REGISTRY
# =============================================================================


@dataclass(frozen=True)
class RelationProperties:
    transitive: bool = False
    symmetric: bool = False
    inverse: str | None = None


DEFAULT_RELATION_PROPERTIES: dict[str, RelationProperties] = {
    "IS_A": RelationProperties(transitive=True),
    "LOCATED_IN": RelationProperties(transitive=True),
    "PART_OF": RelationProperties(transitive=True),
    "DISJOINT_WITH": RelationProperties(symmetric=True),
}


@dataclass(frozen=True)
class DefaultRule:
    """Typical-case rule: instances of typical_type have property value.

    Example:
        DefaultRule("birds_fly", "bird", "CAN", "fly", exceptions=("Penguin",))
    """

    name: str
    typical_type: str
    property: str
    value: str
    exceptions: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompositionRule:
    """Head triple derived when every body pattern holds.

    Example:
        CompositionRule.from_patterns(
            "grandparent",
            ("?x", "GRANDPARENT_OF", "?z"),
            [("?x", "PARENT_OF", "?y"), ("?y", "PARENT_OF", "?z")],
        )
    """

    name: str
    head: Triple
    body: tuple[Triple, ...]

    @classmethod
    def from_patterns(
        cls, name: str, head: Any, body: Iterable[Any]
    ) -> CompositionRule:
        body = tuple(as_triple(p) for p in body)
        if not body:
            raise ValueError(f"Rule {name} has an empty body")
        return cls(name, as_triple(head), body)


class RelationRegistry:
    """Relation properties, defaults and composition rules for one engine."""

    def __init__(self, properties: Mapping[str, RelationProperties] | None = None):
        source = DEFAULT_RELATION_PROPERTIES if properties is None else properties
        self.properties: dict[str, RelationProperties] = dict(source)
        self.defaults: list[DefaultRule] = []
        self.rules: list[CompositionRule] = []

    def get(self, relation: str) -> RelationProperties:
        return self.properties.get(relation, RelationProperties())

    def set_relation_properties(self, relation: str, **properties: Any) -> RelationProperties:
        """Merge properties into those already set for relation.

        Raises:
            ValueError: Unknown property name
        """
        known = {f.name for f in fields(RelationProperties)}
        unknown = set(properties) - known
        if unknown:
            raise ValueError(f"Unknown relation properties: {sorted(unknown)}")
        merged = replace(self.get(relation), **properties)
        self.properties[relation] = merged
        return merged

    def register_inverse(self, relation: str, inverse: str) -> None:
        """Register relation and inverse as inverses of each other."""
        self.set_relation_properties(relation, inverse=inverse)
        self.set_relation_properties(inverse, inverse=relation)

    def register_default(self, rule: DefaultRule) -> None:
        self.defaults.append(rule)

    def register_rule(self, rule: CompositionRule) -> None:
        self.rules.append(rule)

    def relations_with(self, prop: str) -> list[str]:
        return [r for r, p in self.properties.items() if getattr(p, prop)]


# =============================================================================
# INFERENCE ENGINE
# =============================================================================


class InferenceEngine:
    """Derivation strategies plus forward chaining.

    Example:
        engine = InferenceEngine()
        facts = [("Dog", "IS_A", "mammal"), ("mammal", "IS_A", "animal")]
        result = engine.infer("Dog", "IS_A", "animal", facts)
        result.method  # "transitive"
    """

    def __init__(self, config: EngineConfig | None = None, registry: RelationRegistry | None = None):
        self.config = config if config is not None else EngineConfig()
        self.thresholds = self.config.thresholds
        self.registry = registry if registry is not None else RelationRegistry()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def set_relation_properties(self, relation: str, **properties: Any) -> RelationProperties:
        return self.registry.set_relation_properties(relation, **properties)

    def register_inverse(self, relation: str, inverse: str) -> None:
        self.registry.register_inverse(relation, inverse)

    def register_default(
        self,
        name: str,
        typical_type: str,
        property: str,
        value: str,
        exceptions: Iterable[str] = (),
    ) -> DefaultRule:
        rule = DefaultRule(name, typical_type, property, value, tuple(exceptions))
        self.registry.register_default(rule)
        logger.info(f"Registered default {name}: {typical_type} {property} {value}")
        return rule

    def register_rule(self, name: str, head: Any, body: Iterable[Any]) -> CompositionRule:
        rule = CompositionRule.from_patterns(name, head, body)
        self.registry.register_rule(rule)
        logger.info(f"Registered composition rule {name}")
        return rule

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def infer(
        self,
        subject: str,
        relation: str,
        obj: str,
        facts: Iterable[Any],
        methods: Iterable[str] | None = None,
        max_depth: int | None = None,
    ) -> InferenceResult:
        """Try each strategy in order; return the first decisive result.

        Args:
            subject: Subject name
            relation: Relation name
            obj: Object name
            facts: Facts as Fact, Triple, mapping or 3-tuple
            methods: Subset of METHOD_ORDER to try, in the given order
            max_depth: Bound for chain walks (default: config.max_depth)

        Returns:
            First decisive result, else UNKNOWN with method "exhausted"
        """
        triples = [as_triple(f) for f in facts]
        depth = max_depth if max_depth is not None else self.config.max_depth
        strategies = {
            "direct": lambda: self.infer_direct(subject, relation, obj, triples),
            "transitive": lambda: self.infer_transitive(subject, relation, obj, triples, depth),
            "symmetric": lambda: self.infer_symmetric(subject, relation, obj, triples),
            "inverse": lambda: self.infer_inverse(subject, relation, obj, triples),
            "inheritance": lambda: self.infer_inheritance(subject, relation, obj, triples, depth),
            "composition": lambda: self.infer_composition(subject, relation, obj, triples, depth),
            "default": lambda: self.infer_default(subject, relation, obj, triples, depth),
        }

        for method in methods or METHOD_ORDER:
            if method not in strategies:
                raise ValueError(f"Unknown inference method {method!r}")
            result = strategies[method]()
            logger.debug(f"{method}: {subject} {relation} {obj} -> {result.truth.value}")
            if result.is_decisive:
                return result

        return InferenceResult(Truth.UNKNOWN, "exhausted", confidence=0.0)

    def prove(self, subject: str, relation: str, obj: str, facts: Iterable[Any]) -> dict[str, Any] | None:
        """Proof of the first decisive result, if any."""
        return self.infer(subject, relation, obj, facts).proof

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def infer_direct(self, subject: str, relation: str, obj: str, facts: Iterable[Any]) -> InferenceResult:
        found = self._find(subject, relation, obj, facts)
        if found is None:
            return _unknown("direct")
        return InferenceResult(
            Truth.TRUE_CERTAIN,
            "direct",
            confidence=1.0,
            proof={
                "goal": _goal(subject, relation, obj),
                "steps": [{"fact": found, "justification": "direct_match"}],
                "valid": True,
            },
        )

    def infer_transitive(
        self,
        subject: str,
        relation: str,
        obj: str,
        facts: Iterable[Any],
        max_depth: int | None = None,
    ) -> InferenceResult:
        """Shortest chain subject -> ... -> obj over a transitive relation.

        Confidence is transitive_decay ** chain length.
        """
        if not self.registry.get(relation).transitive:
            return _unknown("transitive", "not_transitive")

        max_depth = max_depth if max_depth is not None else self.config.max_depth
        edges: dict[str, list[Triple]] = {}
        for f in (as_triple(f) for f in facts):
            if f.relation == relation:
                edges.setdefault(_norm(f.subject), []).append(f)

        target = _norm(obj)
        visited: set[str] = set()
        queue: deque[tuple[str, list[dict[str, Any]]]] = deque([(_norm(subject), [])])
        while queue:
            node, path = queue.popleft()
            if node in visited or len(path) >= max_depth:
                continue
            visited.add(node)
            for edge in edges.get(node, []):
                step_to = _norm(edge.object)
                chain = [*path, {"from": node, "to": step_to, "fact": edge}]
                if step_to == target:
                    return InferenceResult(
                        Truth.TRUE_CERTAIN,
                        "transitive",
                        confidence=self.thresholds.transitive_decay ** len(chain),
                        proof={"goal": _goal(subject, relation, obj), "steps": chain, "valid": True},
                    )
                queue.append((step_to, chain))

        return _unknown("transitive", "no_path")

    def infer_symmetric(self, subject: str, relation: str, obj: str, facts: Iterable[Any]) -> InferenceResult:
        if not self.registry.get(relation).symmetric:
            return _unknown("symmetric", "not_symmetric")
        found = self._find(obj, relation, subject, facts)
        if found is None:
            return _unknown("symmetric")
        return InferenceResult(
            Truth.TRUE_CERTAIN,
            "symmetric",
            confidence=1.0,
            proof={
                "goal": _goal(subject, relation, obj),
                "steps": [
                    {"fact": found, "justification": "symmetric_match"},
                    {"rule": f"{relation} is symmetric", "justification": "symmetry"},
                ],
                "valid": True,
            },
        )

    def infer_inverse(self, subject: str, relation: str, obj: str, facts: Iterable[Any]) -> InferenceResult:
        inverse = self.registry.get(relation).inverse
        if not inverse:
            return _unknown("inverse", "no_inverse")
        found = self._find(obj, inverse, subject, facts)
        if found is None:
            return _unknown("inverse")
        return InferenceResult(
            Truth.TRUE_CERTAIN,
            "inverse",
            confidence=1.0,
            inverse_relation=inverse,
            proof={
                "goal": _goal(subject, relation, obj),
                "steps": [
                    {"fact": found, "justification": "inverse_match"},
                    {"rule": f"{relation} inverse of {inverse}", "justification": "inverse_relation"},
                ],
                "valid": True,
            },
        )

    def infer_inheritance(
        self,
        subject: str,
        relation: str,
        obj: str,
        facts: Iterable[Any],
        max_depth: int | None = None,
    ) -> InferenceResult:
        """Property of any class along subject's IS_A chain.

        A registered default for (relation, obj) whose exception applies to
        subject blocks the inherited property.
        """
        if relation not in INHERITABLE_RELATIONS:
            return _unknown("inheritance", "not_inheritable")

        triples = [as_triple(f) for f in facts]
        max_depth = max_depth if max_depth is not None else self.config.max_depth
        for type_name in self.get_all_types(subject, triples, max_depth):
            found = self._find(type_name, relation, obj, triples)
            if found is None:
                continue

            blocker = self._blocking_exception(subject, relation, obj, triples, max_depth)
            if blocker is not None:
                return InferenceResult(
                    Truth.UNKNOWN,
                    "inheritance",
                    reason="exception_blocks_inheritance",
                    exception=blocker,
                    inherited_from=type_name,
                )
            return InferenceResult(
                Truth.TRUE_CERTAIN,
                "inheritance",
                confidence=self.thresholds.inheritance_confidence,
                inherited_from=type_name,
                proof={
                    "goal": _goal(subject, relation, obj),
                    "steps": [
                        {"fact": f"{subject} {TYPE_RELATION} {type_name}", "justification": "type_membership"},
                        {"fact": found, "justification": "property_of_type"},
                    ],
                    "valid": True,
                },
            )

        return _unknown("inheritance")

    def infer_composition(
        self,
        subject: str,
        relation: str,
        obj: str,
        facts: Iterable[Any],
        max_depth: int | None = None,
    ) -> InferenceResult:
        triples = [as_triple(f) for f in facts]
        max_depth = max_depth if max_depth is not None else self.config.max_depth
        result = self._prove_composed(subject, relation, obj, triples, max_depth, frozenset())
        return result or _unknown("composition", "no_rule_matched")

    def infer_default(
        self,
        subject: str,
        relation: str,
        obj: str,
        facts: Iterable[Any],
        max_depth: int | None = None,
    ) -> InferenceResult:
        """Apply the first default whose typical type covers subject.

        Returns:
            FALSE with reason "exception_applies" when subject (or a class on
            its IS_A chain) is an exception, else TRUE_DEFAULT
        """
        triples = [as_triple(f) for f in facts]
        max_depth = max_depth if max_depth is not None else self.config.max_depth
        for rule in self.registry.defaults:
            if rule.property != relation or _norm(rule.value) != _norm(obj):
                continue
            if not self._is_a(subject, rule.typical_type, triples, max_depth):
                continue

            exception = self._exception_for(subject, rule, triples, max_depth)
            if exception is not None:
                return InferenceResult(
                    Truth.FALSE,
                    "default",
                    confidence=self.thresholds.default_confidence,
                    reason="exception_applies",
                    exception=exception,
                    rule=rule.name,
                    proof={
                        "goal": _goal(subject, relation, obj),
                        "steps": [{"exception": exception, "justification": "blocked_by_exception"}],
                        "defeasible": True,
                    },
                )

            return InferenceResult(
                Truth.TRUE_DEFAULT,
                "default",
                confidence=self.thresholds.default_confidence,
                rule=rule.name,
                assumptions=[f"{subject} is a typical {rule.typical_type}"],
                proof={
                    "goal": _goal(subject, relation, obj),
                    "steps": [
                        {"rule": rule.name, "justification": "default_rule"},
                        {
                            "assumption": f"{subject} {TYPE_RELATION} {rule.typical_type}",
                            "justification": "type_check",
                        },
                    ],
                    "defeasible": True,
                },
            )

        return _unknown("default")

    # -------------------------------------------------------------------------
    # Forward chaining
    # -------------------------------------------------------------------------

    def forward_chain(self, facts: Iterable[Any], max_iterations: int | None = None) -> list[Triple]:
        """Saturate the fact list and return only the new facts.

        Each round applies composition rules, then transitive, symmetric and
        inverse expansion. Stops at a fixed point or after max_iterations
        rounds, whichever comes first.
        """
        max_iterations = max_iterations if max_iterations is not None else self.config.max_iterations
        derived = [as_triple(f) for f in facts]
        original = len(derived)
        seen = {f.key for f in derived}

        iteration = 0
        while iteration < max_iterations:
            iteration += 1
            candidates: list[Triple] = []
            for rule in self.registry.rules:
                candidates.extend(self._apply_rule(rule, derived))
            for relation in self.registry.relations_with("transitive"):
                candidates.extend(self._expand_transitive(relation, derived))
            for relation in self.registry.relations_with("symmetric"):
                candidates.extend(self._expand_symmetric(relation, derived))
            candidates.extend(self._expand_inverse(derived))

            added = 0
            for fact in candidates:
                if fact.key not in seen:
                    seen.add(fact.key)
                    derived.append(fact)
                    added += 1
            logger.debug(f"Forward chaining round {iteration}: {added} new facts")
            if not added:
                break
        else:
            logger.warning(f"Forward chaining stopped after {max_iterations} iterations")

        return derived[original:]

    def _apply_rule(self, rule: CompositionRule, facts: list[Triple]) -> list[Triple]:
        conclusions = []
        for bindings, _ in self._solve_body(list(rule.body), {}, facts, 0, frozenset()):
            head = self._instantiate(rule.head, bindings)
            if not (_is_var(head.subject) or _is_var(head.object)):
                conclusions.append(replace(head, derived_by=rule.name))
        return conclusions

    @staticmethod
    def _expand_transitive(relation: str, facts: list[Triple]) -> list[Triple]:
        by_subject: dict[str, list[Triple]] = {}
        rel_facts = [f for f in facts if f.relation == relation]
        for f in rel_facts:
            by_subject.setdefault(f.subject, []).append(f)
        return [
            Triple(f1.subject, relation, f2.object, "transitive_closure")
            for f1 in rel_facts
            for f2 in by_subject.get(f1.object, [])
            if f1.subject != f2.object
        ]

    @staticmethod
    def _expand_symmetric(relation: str, facts: list[Triple]) -> list[Triple]:
        return [
            Triple(f.object, relation, f.subject, "symmetric_closure")
            for f in facts
            if f.relation == relation and f.subject != f.object
        ]

    def _expand_inverse(self, facts: list[Triple]) -> list[Triple]:
        expanded = []
        for f in facts:
            inverse = self.registry.get(f.relation).inverse
            if inverse:
                expanded.append(Triple(f.object, inverse, f.subject, "inverse_relation"))
        return expanded

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _find(subject: str, relation: str, obj: str, facts: Iterable[Any]) -> Triple | None:
        s, o = _norm(subject), _norm(obj)
        for f in facts:
            f = as_triple(f)
            if f.relation == relation and _norm(f.subject) == s and _norm(f.object) == o:
                return f
        return None

    @staticmethod
    def get_all_types(subject: str, facts: Iterable[Any], max_depth: int = 10) -> list[str]:
        """Every class on subject's IS_A chain, nearest first."""
        triples = [as_triple(f) for f in facts]
        types: list[str] = []
        seen: set[str] = set()
        frontier = [subject]
        for _ in range(max_depth):
            next_frontier = []
            for current in frontier:
                for f in triples:
                    if f.relation != TYPE_RELATION or _norm(f.subject) != _norm(current):
                        continue
                    if _norm(f.object) not in seen:
                        seen.add(_norm(f.object))
                        types.append(f.object)
                        next_frontier.append(f.object)
            if not next_frontier:
                break
            frontier = next_frontier
        return types

    def _is_a(self, subject: str, type_name: str, facts: list[Triple], max_depth: int) -> bool:
        if _norm(subject) == _norm(type_name):
            return True
        return any(_norm(t) == _norm(type_name) for t in self.get_all_types(subject, facts, max_depth))

    def _exception_for(
        self, subject: str, rule: DefaultRule, facts: list[Triple], max_depth: int
    ) -> str | None:
        for exception in rule.exceptions:
            if self._is_a(subject, exception, facts, max_depth):
                return exception
        return None

    def _blocking_exception(
        self, subject: str, relation: str, obj: str, facts: list[Triple], max_depth: int
    ) -> str | None:
        for rule in self.registry.defaults:
            if rule.property == relation and _norm(rule.value) == _norm(obj):
                exception = self._exception_for(subject, rule, facts, max_depth)
                if exception is not None:
                    return exception
        return None

    @staticmethod
    def _instantiate(pattern: Triple, bindings: Mapping[str, str]) -> Triple:
        return Triple(
            bindings.get(pattern.subject, pattern.subject),
            pattern.relation,
            bindings.get(pattern.object, pattern.object),
        )

    @staticmethod
    def _bind_head(head: Triple, subject: str, obj: str) -> dict[str, str] | None:
        bindings: dict[str, str] = {}
        for pattern, value in ((head.subject, subject), (head.object, obj)):
            if _is_var(pattern):
                if bindings.setdefault(pattern, value) != value:
                    return None
            elif pattern != value:
                return None
        return bindings

    def _prove_composed(
        self,
        subject: str,
        relation: str,
        obj: str,
        facts: list[Triple],
        depth: int,
        visited: frozenset[str],
    ) -> InferenceResult | None:
        for rule in self.registry.rules:
            if rule.head.relation != relation:
                continue
            bindings = self._bind_head(rule.head, subject, obj)
            if bindings is None:
                continue
            for _, steps in self._solve_body(list(rule.body), bindings, facts, depth, visited):
                return InferenceResult(
                    Truth.TRUE_CERTAIN,
                    "composition",
                    confidence=self.thresholds.composition_confidence,
                    rule=rule.name,
                    proof={
                        "goal": _goal(subject, relation, obj),
                        "steps": steps,
                        "rule": rule.name,
                        "valid": True,
                    },
                )
        return None

    def _solve_body(
        self,
        body: list[Triple],
        bindings: dict[str, str],
        facts: list[Triple],
        depth: int,
        visited: frozenset[str],
    ) -> Iterator[tuple[dict[str, str], list[dict[str, Any]]]]:
        """Consistent assignments for every pattern in body.

        Ground patterns match a fact or, while depth remains, recurse through
        composition rules; patterns with variables enumerate matching facts.
        """
        if not body:
            yield bindings, []
            return

        first, rest = body[0], body[1:]
        pattern = self._instantiate(first, bindings)

        if not (_is_var(pattern.subject) or _is_var(pattern.object)):
            match = self._find(pattern.subject, pattern.relation, pattern.object, facts)
            proof = None
            if match is None and depth > 1:
                key = str(pattern)
                if key in visited:
                    return
                sub = self._prove_composed(
                    pattern.subject, pattern.relation, pattern.object, facts, depth - 1, visited | {key}
                )
                if sub is None:
                    return
                proof = sub.proof
            elif match is None:
                return
            for solved, steps in self._solve_body(rest, bindings, facts, depth, visited):
                step: dict[str, Any] = {"pattern": first, "match": match or pattern}
                if proof is not None:
                    step["proof"] = proof
                yield solved, [step, *steps]
            return

        for fact in facts:
            if fact.relation != pattern.relation:
                continue
            extended = dict(bindings)
            ok = True
            for slot, value in ((pattern.subject, fact.subject), (pattern.object, fact.object)):
                if _is_var(slot):
                    if extended.setdefault(slot, value) != value:
                        ok = False
                elif slot != value:
                    ok = False
            if not ok:
                continue
            for solved, steps in self._solve_body(rest, extended, facts, depth, visited):
                yield solved, [{"pattern": first, "match": fact}, *steps]
