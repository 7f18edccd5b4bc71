"""
kb_reasoning/knowledge_base.py - Concept and Fact Store

The store keeps facts (subject, relation, object, existence) and concepts
(label plus one or more bounded diamonds) for one theory.

Indices:
    - facts by subject, then relation (bucket lookup)
    - facts by (subject, relation, object), existence descending
    - facts by object (cascade on forgetting)

Version unification:
    Adding a triple whose existence is not above an existing copy is a
    no-op that returns the existing id. A strictly higher level is stored
    alongside the lower copy; upgrade_existence is the only way to raise a
    stored level and it never lowers one.

Snapshots:
    snapshot_facts() returns plain records
    {subject, relation, object, _existence, _id, ...metadata}.
    restore_facts() validates every record before it touches the store and
    then rebuilds all fact indices from scratch.
"""
from __future__ import annotations

import fnmatch
import logging
import math
import re
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import torch
from hdc_core import BoundedDiamond

from .errors import MalformedTripleError, SnapshotError
from .existence import Existence, is_valid_level, normalize_is_a

logger = logging.getLogger(__name__)

RESERVED_KEYS = frozenset({"subject", "relation", "object", "_existence", "_id"})

# Usage scoring
RECENCY_WINDOW_DAYS = 30.0
RECENCY_WEIGHT = 0.4
FREQUENCY_WEIGHT = 0.6

_DURATION_UNITS = {"d": 86400.0, "h": 3600.0, "m": 60.0}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([dhm])\s*$")

Triple = tuple[str, str, str]


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class Fact:
    """A stored triple with its existence level."""

    subject: str
    relation: str
    object: str
    id: int
    existence: int = int(Existence.CERTAIN)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Triple:
        return (self.subject, self.relation, self.object)

    def to_record(self) -> dict[str, Any]:
        """Snapshot record; metadata keys sit beside the triple."""
        record = dict(self.metadata)
        record.update(
            subject=self.subject,
            relation=self.relation,
            object=self.object,
            _existence=self.existence,
            _id=self.id,
        )
        return record

    def __repr__(self) -> str:
        return f"Fact#{self.id}({self.subject} {self.relation} {self.object} @{self.existence})"


@dataclass
class UsageMetrics:
    """Per-concept counters that drive forgetting and ranking."""

    created_at: float
    last_used_at: float
    usage_count: int = 0
    assert_count: int = 0
    query_count: int = 0
    inference_count: int = 0

    def recency(self, now: float) -> float:
        days = max(0.0, now - self.last_used_at) / 86400.0
        return max(0.0, 1.0 - days / RECENCY_WINDOW_DAYS)

    @property
    def frequency(self) -> float:
        return min(1.0, math.log10(self.usage_count + 1) / 3.0)

    def priority(self, now: float) -> float:
        return RECENCY_WEIGHT * self.recency(now) + FREQUENCY_WEIGHT * self.frequency

    def to_dict(self, now: float) -> dict[str, Any]:
        return {
            "usage_count": self.usage_count,
            "assert_count": self.assert_count,
            "query_count": self.query_count,
            "inference_count": self.inference_count,
            "created_at": self.created_at,
            "last_used_at": self.last_used_at,
            "recency": self.recency(now),
            "frequency": self.frequency,
            "priority": self.priority(now),
        }


@dataclass
class Concept:
    """A labelled concept and its diamonds (one per sense)."""

    label: str
    id: int
    diamonds: list[BoundedDiamond]
    usage: UsageMetrics


@dataclass
class ForgetResult:
    """Outcome of ConceptStore.forget."""

    removed: list[str] = field(default_factory=list)
    would_remove: list[str] = field(default_factory=list)
    protected: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    facts_removed: int = 0
    dry_run: bool = False

    @property
    def count(self) -> int:
        return len(self.would_remove) if self.dry_run else len(self.removed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "removed": list(self.removed),
            "wouldRemove": list(self.would_remove),
            "count": self.count,
            "protected": list(self.protected),
            "skipped": list(self.skipped),
            "factsRemoved": self.facts_removed,
        }


def parse_duration(text: str) -> float:
    """Parse "7d", "12h" or "30m" into seconds.

    Raises:
        ValueError: For any other format
    """
    match = _DURATION_RE.match(text)
    if not match:
        raise ValueError(f"Invalid duration {text!r}; expected e.g. 7d, 12h, 30m")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def _require_label(value: Any, role: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedTripleError(f"Fact {role} must be a non-empty string, got {value!r}")
    return value


# =============================================================================
# CONCEPT / FACT STORE
# =============================================================================


class ConceptStore:
    """Indexed in-memory store of concepts and facts.

    Example:
        store = ConceptStore(geometry=1024)
        fid = store.add_fact(("Dog", "IS_A", "mammal"))
        store.add_fact(("Dog", "IS_A", "mammal"), existence=Existence.POSSIBLE)  # -> fid
        store.get_best_existence_fact("Dog", "IS_A", "mammal").existence  # 127

    The store has a single logical owner and does no locking; fork or roll
    back with snapshot_facts()/restore_facts().
    """

    def __init__(
        self,
        geometry: int = 2048,
        audit_log: Callable[[str, dict[str, Any]], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.geometry = geometry
        self._audit_log = audit_log
        self._clock = clock

        self._concepts: dict[str, Concept] = {}
        self._protected: set[str] = set()

        self._facts: dict[int, Fact] = {}
        self._by_subject: dict[str, dict[str, list[int]]] = {}
        self._by_key: dict[Triple, list[int]] = {}
        self._by_object: dict[str, set[int]] = {}

        self._next_fact_id = 1
        self._next_concept_id = 1

        self._stats = {
            "facts_added": 0,
            "facts_unified": 0,
            "facts_removed": 0,
            "upgrades": 0,
            "concepts_forgotten": 0,
        }

    # =========================================================================
    # CONCEPTS
    # =========================================================================

    def ensure_concept(self, label: str) -> Concept:
        """Return the concept for label, creating it (with an empty diamond) if needed."""
        concept = self._concepts.get(label)
        if concept is not None:
            return concept

        _require_label(label, "label")
        now = self._clock()
        concept_id = self._next_concept_id
        self._next_concept_id += 1
        concept = Concept(
            label=label,
            id=concept_id,
            diamonds=[BoundedDiamond(concept_id, label, self.geometry)],
            usage=UsageMetrics(created_at=now, last_used_at=now),
        )
        self._concepts[label] = concept
        self._audit("ensure_concept", {"label": label, "id": concept_id})
        return concept

    def get_concept(self, label: str) -> Concept | None:
        return self._concepts.get(label)

    def has_concept(self, label: str) -> bool:
        return label in self._concepts

    def list_concepts(self) -> list[str]:
        return list(self._concepts)

    def concepts(self) -> list[Concept]:
        return list(self._concepts.values())

    def upsert_concept(self, label: str, diamonds: Iterable[BoundedDiamond]) -> Concept:
        """Replace a concept's diamonds (creating the concept if needed)."""
        concept = self.ensure_concept(label)
        diamonds = list(diamonds)
        for d in diamonds:
            if d.geometry != self.geometry:
                raise ValueError(
                    f"Diamond geometry {d.geometry} does not match store geometry {self.geometry}"
                )
        concept.diamonds = diamonds or [BoundedDiamond(concept.id, label, self.geometry)]
        return concept

    def add_observation(self, label: str, vector: torch.Tensor) -> BoundedDiamond:
        """Widen the concept's primary diamond with one example vector."""
        concept = self.ensure_concept(label)
        diamond = concept.diamonds[0]
        diamond.expand(vector)
        self._touch(label, "usage")
        return diamond

    # =========================================================================
    # FACTS: INSERTION
    # =========================================================================

    def _parse_triple(self, triple: Any) -> tuple[str, str, str, int | None, dict[str, Any]]:
        if isinstance(triple, Fact):
            return triple.subject, triple.relation, triple.object, triple.existence, dict(triple.metadata)
        if isinstance(triple, Mapping):
            extra = {k: v for k, v in triple.items() if k not in RESERVED_KEYS}
            return (
                _require_label(triple.get("subject"), "subject"),
                _require_label(triple.get("relation"), "relation"),
                _require_label(triple.get("object"), "object"),
                triple.get("_existence"),
                extra,
            )
        if isinstance(triple, (tuple, list)) and len(triple) == 3:
            s, r, o = triple
            return (
                _require_label(s, "subject"),
                _require_label(r, "relation"),
                _require_label(o, "object"),
                None,
                {},
            )
        raise MalformedTripleError(f"Cannot interpret {triple!r} as a fact triple")

    def add_fact(
        self,
        triple: Fact | Mapping[str, Any] | tuple[str, str, str],
        existence: int | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> int:
        """Insert a fact with version unification.

        Args:
            triple: (subject, relation, object), a record mapping or a Fact
            existence: Existence level (default CERTAIN, or the IS_A_* variant level)
            metadata: Extra data stored with the fact

        Returns:
            Id of the new fact, or of the existing fact that dominates it

        Raises:
            MalformedTripleError: Missing or empty subject/relation/object,
                or an existence level outside the scale
        """
        subject, relation, obj, record_level, extra = self._parse_triple(triple)
        relation, level = normalize_is_a(relation, existence if existence is not None else record_level)
        if level is None:
            level = int(Existence.CERTAIN)
        if not is_valid_level(level):
            raise MalformedTripleError(f"Invalid existence level {level!r}")
        level = int(level)

        key = (subject, relation, obj)
        existing = self._by_key.get(key)
        if existing:
            best = self._facts[existing[0]]
            if level <= best.existence:
                self._stats["facts_unified"] += 1
                logger.debug(f"Unified {key} @{level} into fact #{best.id} @{best.existence}")
                return best.id

        if metadata:
            extra.update(metadata)
        fact = Fact(subject, relation, obj, self._next_fact_id, level, extra)
        self._next_fact_id += 1
        self._index_fact(fact)

        self.ensure_concept(subject)
        self.ensure_concept(obj)
        self._touch(subject, "assert")
        self._touch(obj, "assert")

        self._stats["facts_added"] += 1
        self._audit("add_fact", {"id": fact.id, "triple": key, "existence": level})
        return fact.id

    def _index_fact(self, fact: Fact) -> None:
        self._facts[fact.id] = fact
        self._by_subject.setdefault(fact.subject, {}).setdefault(fact.relation, []).append(fact.id)
        self._insert_sorted(self._by_key.setdefault(fact.key, []), fact)
        self._by_object.setdefault(fact.object, set()).add(fact.id)

    def _insert_sorted(self, ids: list[int], fact: Fact) -> None:
        """Insert keeping existence descending; equal levels stay in insertion order."""
        position = len(ids)
        for i, other_id in enumerate(ids):
            if self._facts[other_id].existence < fact.existence:
                position = i
                break
        ids.insert(position, fact.id)

    # =========================================================================
    # FACTS: LOOKUP
    # =========================================================================

    def get_fact(self, fact_id: int) -> Fact | None:
        return self._facts.get(fact_id)

    def get_facts(self) -> list[Fact]:
        """All live facts in insertion order."""
        return [self._facts[i] for i in sorted(self._facts)]

    def get_facts_by_subject(self, subject: str) -> list[Fact]:
        buckets = self._by_subject.get(subject)
        if not buckets:
            return []
        ids = sorted(i for bucket in buckets.values() for i in bucket)
        return [self._facts[i] for i in ids]

    def get_facts_by_subject_and_relation(
        self, subject: str, relation: str, min_existence: int | None = None
    ) -> list[Fact]:
        ids = self._by_subject.get(subject, {}).get(relation, [])
        facts = [self._facts[i] for i in ids]
        if min_existence is not None:
            facts = [f for f in facts if f.existence >= min_existence]
        return facts

    def get_facts_by_relation(self, relation: str) -> list[Fact]:
        return [f for f in self.get_facts() if f.relation == relation]

    def get_best_existence_fact(
        self, subject: str, relation: str, obj: str | None = None
    ) -> Fact | None:
        """Highest-existence match; ties go to the earliest inserted fact."""
        if obj is not None:
            ids = self._by_key.get((subject, relation, obj))
            return self._facts[ids[0]] if ids else None

        facts = self.get_facts_by_subject_and_relation(subject, relation)
        if not facts:
            return None
        # max() keeps the first of equal keys, and buckets are in insertion order
        return max(facts, key=lambda f: f.existence)

    def get_facts_by_existence(self, min_level: int) -> list[Fact]:
        return [f for f in self.get_facts() if f.existence >= min_level]

    def get_facts_with_existence(self, subject: str) -> list[Fact]:
        """All facts for subject, existence descending, stable for equal levels."""
        return sorted(self.get_facts_by_subject(subject), key=lambda f: -f.existence)

    def query(
        self,
        subject: str | None = None,
        relation: str | None = None,
        obj: str | None = None,
        min_existence: int | None = None,
    ) -> list[Fact]:
        """Facts matching every given field (None matches anything)."""
        if subject is not None and relation is not None and obj is not None:
            candidates = [self._facts[i] for i in self._by_key.get((subject, relation, obj), [])]
            candidates.sort(key=lambda f: f.id)
        elif subject is not None and relation is not None:
            candidates = self.get_facts_by_subject_and_relation(subject, relation)
        elif subject is not None:
            candidates = self.get_facts_by_subject(subject)
        elif obj is not None:
            candidates = [self._facts[i] for i in sorted(self._by_object.get(obj, ()))]
        else:
            candidates = self.get_facts()

        return [
            f
            for f in candidates
            if (relation is None or f.relation == relation)
            and (obj is None or f.object == obj)
            and (min_existence is None or f.existence >= min_existence)
        ]

    def __len__(self) -> int:
        return len(self._facts)

    # =========================================================================
    # FACTS: MUTATION
    # =========================================================================

    def upgrade_existence(self, fact_id: int, new_level: int) -> bool:
        """Raise a fact's existence level.

        Returns:
            True if the level was raised; False for unknown ids and for any
            level that is not strictly higher (state is left unchanged)

        Raises:
            ValueError: If new_level is outside the existence scale
        """
        if not is_valid_level(new_level):
            raise ValueError(f"Invalid existence level {new_level!r}")
        fact = self._facts.get(fact_id)
        if fact is None:
            return False
        if new_level <= fact.existence:
            if new_level < fact.existence:
                logger.warning(
                    f"Rejected downgrade of fact #{fact_id} from {fact.existence} to {new_level}"
                )
            return False

        old_level = fact.existence
        fact.existence = int(new_level)
        ids = self._by_key[fact.key]
        ids.remove(fact_id)
        self._insert_sorted(ids, fact)

        self._stats["upgrades"] += 1
        self._audit("upgrade_existence", {"id": fact_id, "from": old_level, "to": fact.existence})
        return True

    def remove_fact(self, fact_id: int) -> bool:
        """Delete a fact from every index. Unknown ids are a no-op (False)."""
        fact = self._facts.pop(fact_id, None)
        if fact is None:
            return False

        relations = self._by_subject[fact.subject]
        relations[fact.relation].remove(fact_id)
        if not relations[fact.relation]:
            del relations[fact.relation]
        if not relations:
            del self._by_subject[fact.subject]

        ids = self._by_key[fact.key]
        ids.remove(fact_id)
        if not ids:
            del self._by_key[fact.key]

        holders = self._by_object[fact.object]
        holders.discard(fact_id)
        if not holders:
            del self._by_object[fact.object]

        self._stats["facts_removed"] += 1
        self._audit("remove_fact", {"id": fact_id, "triple": fact.key})
        return True

    # =========================================================================
    # PROTECTION & FORGETTING
    # =========================================================================

    def protect(self, label: str) -> None:
        self._protected.add(label)
        self._audit("protect", {"label": label})

    def unprotect(self, label: str) -> bool:
        """Clear protection; returns whether the label was protected."""
        if label not in self._protected:
            return False
        self._protected.discard(label)
        self._audit("unprotect", {"label": label})
        return True

    def is_protected(self, label: str) -> bool:
        return label in self._protected

    def list_protected(self) -> list[str]:
        return sorted(self._protected)

    def forget(
        self,
        concept: str | None = None,
        pattern: str | None = None,
        threshold: int | None = None,
        older_than: str | None = None,
        dry_run: bool = False,
    ) -> ForgetResult:
        """Remove concepts (and every fact that mentions them).

        Given criteria narrow each other. Protected concepts are never
        removed; they are reported in ``protected`` instead.

        Args:
            concept: Exact label
            pattern: Glob over labels ("*" matches any run of characters)
            threshold: Select concepts used fewer than this many times
            older_than: Select concepts idle for longer than e.g. "7d"
            dry_run: Report without mutating

        Raises:
            ValueError: If no criterion is given or older_than is malformed
        """
        if concept is None and pattern is None and threshold is None and older_than is None:
            raise ValueError("forget requires concept, pattern, threshold or older_than")

        result = ForgetResult(dry_run=dry_run)
        if concept is not None:
            if concept not in self._concepts:
                result.skipped.append(concept)
            labels = [concept] if concept in self._concepts else []
        else:
            labels = list(self._concepts)

        if pattern is not None:
            labels = [label for label in labels if fnmatch.fnmatchcase(label, pattern)]
        if threshold is not None:
            labels = [label for label in labels if self._concepts[label].usage.usage_count < threshold]
        if older_than is not None:
            cutoff = self._clock() - parse_duration(older_than)
            labels = [label for label in labels if self._concepts[label].usage.last_used_at < cutoff]

        for label in labels:
            if label in self._protected:
                result.protected.append(label)
            elif dry_run:
                result.would_remove.append(label)
            else:
                result.facts_removed += self._remove_concept(label)
                result.removed.append(label)

        if result.removed:
            self._stats["concepts_forgotten"] += len(result.removed)
            logger.info(
                f"Forgot {len(result.removed)} concepts and {result.facts_removed} facts"
                f" ({len(result.protected)} protected)"
            )
        return result

    def _remove_concept(self, label: str) -> int:
        fact_ids = {i for ids in self._by_subject.get(label, {}).values() for i in ids}
        fact_ids |= self._by_object.get(label, set())
        for fact_id in sorted(fact_ids):
            self.remove_fact(fact_id)
        del self._concepts[label]
        self._audit("forget_concept", {"label": label, "facts": len(fact_ids)})
        return len(fact_ids)

    # =========================================================================
    # USAGE TRACKING
    # =========================================================================

    def _touch(self, label: str, kind: str, amount: int = 1) -> None:
        concept = self._concepts.get(label)
        if concept is None:
            return
        usage = concept.usage
        usage.usage_count += amount
        if kind == "assert":
            usage.assert_count += amount
        elif kind == "query":
            usage.query_count += amount
        elif kind == "inference":
            usage.inference_count += amount
        usage.last_used_at = self._clock()

    def record_query(self, label: str) -> None:
        self._touch(label, "query")

    def record_inference(self, label: str) -> None:
        self._touch(label, "inference")

    def boost_usage(self, label: str, amount: int = 10) -> bool:
        """Bump a concept's usage so it survives threshold forgetting."""
        if label not in self._concepts:
            return False
        self._touch(label, "usage", amount)
        return True

    def get_usage_stats(self, label: str) -> dict[str, Any] | None:
        concept = self._concepts.get(label)
        if concept is None:
            return None
        return concept.usage.to_dict(self._clock())

    def get_concepts_by_usage(self, limit: int | None = None) -> list[tuple[str, float]]:
        """Labels ranked by usage priority, highest first."""
        now = self._clock()
        ranked = sorted(
            ((label, c.usage.priority(now)) for label, c in self._concepts.items()),
            key=lambda item: -item[1],
        )
        return ranked if limit is None else ranked[:limit]

    # =========================================================================
    # SNAPSHOT / RESTORE
    # =========================================================================

    def snapshot_facts(self) -> list[dict[str, Any]]:
        """Every fact as a plain record, in insertion order."""
        return [f.to_record() for f in self.get_facts()]

    @staticmethod
    def _validate_record(index: int, record: Any) -> None:
        if not isinstance(record, Mapping):
            raise SnapshotError(index, f"expected a mapping, got {type(record).__name__}")
        for key in ("subject", "relation", "object"):
            value = record.get(key)
            if not isinstance(value, str) or not value.strip():
                raise SnapshotError(index, f"missing or empty {key!r}")
        if "_existence" not in record:
            raise SnapshotError(index, "missing '_existence'")
        if not is_valid_level(record["_existence"]):
            raise SnapshotError(index, f"invalid _existence {record['_existence']!r}")

    def restore_facts(self, snapshot: Iterable[Mapping[str, Any]]) -> int:
        """Replace all facts with the snapshot's.

        The whole snapshot is validated first; a bad record raises
        SnapshotError and leaves the store untouched.

        Returns:
            Number of facts restored
        """
        records = list(snapshot)
        for index, record in enumerate(records):
            self._validate_record(index, record)

        self._facts = {}
        self._by_subject = {}
        self._by_key = {}
        self._by_object = {}

        # Keep snapshot ids where usable; duplicates and non-integers get fresh ids
        used_ids = {
            r["_id"] for r in records if isinstance(r.get("_id"), int) and not isinstance(r.get("_id"), bool)
        }
        next_id = max(used_ids, default=0) + 1
        seen: set[int] = set()
        for record in records:
            fact_id = record.get("_id")
            if isinstance(fact_id, int) and fact_id in used_ids and fact_id not in seen:
                seen.add(fact_id)
            else:
                fact_id = next_id
                next_id += 1
            metadata = {k: v for k, v in record.items() if k not in RESERVED_KEYS}
            fact = Fact(
                record["subject"],
                record["relation"],
                record["object"],
                fact_id,
                int(record["_existence"]),
                metadata,
            )
            self._index_fact(fact)
            self.ensure_concept(fact.subject)
            self.ensure_concept(fact.object)

        self._next_fact_id = next_id
        logger.info(f"Restored {len(records)} facts from snapshot")
        self._audit("restore_facts", {"count": len(records)})
        return len(records)

    def snapshot_concept(self, label: str) -> dict[str, Any] | None:
        """Diamonds, usage and facts of one concept."""
        concept = self._concepts.get(label)
        if concept is None:
            return None
        facts = {f.id: f for f in self.get_facts_by_subject(label)}
        facts.update((f.id, f) for f in self.query(obj=label))
        return {
            "label": label,
            "id": concept.id,
            "protected": label in self._protected,
            "diamonds": [d.to_dict() for d in concept.diamonds],
            "usage": concept.usage.to_dict(self._clock()),
            "facts": [facts[i].to_record() for i in sorted(facts)],
        }

    # =========================================================================
    # STATISTICS & AUDIT
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "facts": len(self._facts),
            "concepts": len(self._concepts),
            "protected": len(self._protected),
            "subjects": len(self._by_subject),
        }

    def _audit(self, event: str, payload: dict[str, Any]) -> None:
        logger.debug(f"{event}: {payload}")
        if self._audit_log is not None:
            self._audit_log(event, payload)
