"""
kb_reasoning/reasoner.py - Geometric abduction and analogy over diamonds

Both operations work on signed points in [-127, 127]^G (see
hdc_core.diamond.to_point) and on the concept diamonds of a ConceptStore.

ABDUCTION:
    An effect vector is modelled as the cause vector permuted by the
    relation's permutation. Un-permuting the observation estimates the
    cause; known concepts are ranked by

        combined = geometric_weight * (1 - d / max_d) + priority_weight * priority

    where d is the L1 distance to the concept's center and priority is the
    concept's usage priority (0.5 when unknown).

ANALOGY:
    a : b :: c : ?  is answered by predicted = clamp(c + clamp(b - a)) and
    snapping to the nearest diamond center.

Acceptance bands (adversarial_check):
    radius 0                      TRUE_CERTAIN only at distance 0
    d <= sceptic_factor * r       TRUE_CERTAIN
    d <= optimist_factor * r      PLAUSIBLE
    otherwise                     FALSE
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

import torch
from hdc_core import COMPONENT_MAX, COMPONENT_MIN, BoundedDiamond, RelationPermuter, to_point, unpermute
from hdc_core.diamond import lsh_fingerprint

from .config import EngineConfig, ReasoningThresholds
from .inference import Truth
from .knowledge_base import ConceptStore

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 0.5


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class BandCheck:
    """Acceptance band of a point against one diamond."""

    truth: Truth
    distance: float
    sceptic_radius: float = 0.0
    optimist_radius: float = 0.0

    @property
    def band(self) -> Truth:
        return self.truth


@dataclass
class Candidate:
    label: str
    distance: int
    diamond: BoundedDiamond


@dataclass
class Hypothesis:
    """One ranked abductive candidate."""

    concept: str
    distance: int
    band: Truth
    geometric_score: float
    priority_score: float
    combined_score: float


@dataclass
class AbductionResult:
    concept: str | None = None
    distance: int | None = None
    band: Truth = Truth.FALSE
    hypotheses: list[Hypothesis] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.concept is not None


@dataclass
class AnalogyResult:
    concept: str | None = None
    distance: int | None = None
    band: Truth = Truth.FALSE
    predicted: torch.Tensor | None = field(default=None, repr=False)

    def __bool__(self) -> bool:
        return self.concept is not None


# =============================================================================
# BANDS
# =============================================================================


def adversarial_check(
    vector: torch.Tensor,
    diamond: BoundedDiamond | None,
    thresholds: ReasoningThresholds | None = None,
    mask: torch.Tensor | None = None,
) -> BandCheck:
    """Classify vector against diamond with sceptic/optimist radii."""
    if diamond is None or diamond.is_empty:
        return BandCheck(Truth.FALSE, math.inf)

    thresholds = thresholds or ReasoningThresholds()
    distance = diamond.l1_distance(vector, mask)
    radius = diamond.l1_radius
    if radius == 0:
        return BandCheck(Truth.TRUE_CERTAIN if distance == 0 else Truth.FALSE, distance)

    sceptic = radius * thresholds.sceptic_factor
    optimist = radius * thresholds.optimist_factor
    if distance <= sceptic:
        truth = Truth.TRUE_CERTAIN
    elif distance <= optimist:
        truth = Truth.PLAUSIBLE
    else:
        truth = Truth.FALSE
    return BandCheck(truth, distance, sceptic, optimist)


# =============================================================================
# RETRIEVAL
# =============================================================================


class DiamondRetriever:
    """Nearest-center search over every non-empty diamond of a store."""

    def __init__(self, store: ConceptStore):
        self.store = store

    def nearest(
        self,
        vector: torch.Tensor,
        k: int = 1,
        max_fingerprint_distance: int | None = None,
    ) -> list[Candidate]:
        """k closest diamonds by L1 distance to their centers.

        Args:
            vector: Query vector or point
            k: Number of candidates
            max_fingerprint_distance: When set, only diamonds whose LSH
                fingerprint is within this Hamming distance of the query's
                are scored; falls back to a full scan if none are

        Returns:
            Candidates, nearest first (ties keep concept insertion order)
        """
        diamonds = [
            (concept.label, d)
            for concept in self.store.concepts()
            for d in concept.diamonds
            if not d.is_empty
        ]
        if max_fingerprint_distance is not None and diamonds:
            query_fp = lsh_fingerprint(to_point(vector, self.store.geometry), diamonds[0][1].config)
            bucket = [(label, d) for label, d in diamonds if d.fingerprint_distance(query_fp) <= max_fingerprint_distance]
            if bucket:
                diamonds = bucket
            else:
                logger.debug("Fingerprint prefilter matched nothing; scanning all diamonds")

        scored = [Candidate(label, d.l1_distance(vector), d) for label, d in diamonds]
        scored.sort(key=lambda c: c.distance)
        return scored[:k]


# =============================================================================
# REASONER
# =============================================================================


class Reasoner:
    """Abductive and analogical reasoning over a store's diamonds.

    Example:
        permuter = RelationPermuter(store.geometry)
        permuter.register("CAUSES")
        reasoner = Reasoner(store, permuter)
        reasoner.abductive(smoke_vector, "CAUSES").concept  # "Fire"
    """

    def __init__(
        self,
        store: ConceptStore,
        permuter: RelationPermuter | None = None,
        retriever: DiamondRetriever | None = None,
        config: EngineConfig | None = None,
    ):
        self.store = store
        self.permuter = permuter
        self.retriever = retriever if retriever is not None else DiamondRetriever(store)
        self.config = config if config is not None else EngineConfig()
        self.thresholds = self.config.thresholds

    def _point(self, value: str | torch.Tensor) -> torch.Tensor | None:
        """Signed point for a concept label (its first diamond center) or a vector."""
        if isinstance(value, str):
            concept = self.store.get_concept(value)
            if concept is None:
                return None
            for diamond in concept.diamonds:
                if not diamond.is_empty:
                    return diamond.center_vector()
            return None
        return to_point(value, self.store.geometry)

    def adversarial_check(
        self, vector: torch.Tensor, diamond: BoundedDiamond | None, mask: torch.Tensor | None = None
    ) -> BandCheck:
        return adversarial_check(vector, diamond, self.thresholds, mask)

    def answer(self, vector: torch.Tensor, label: str) -> BandCheck:
        """Band of vector against the primary diamond of concept label."""
        concept = self.store.get_concept(label)
        if concept is None:
            return BandCheck(Truth.FALSE, math.inf)
        self.store.record_query(label)
        return self.adversarial_check(vector, concept.diamonds[0])

    def analogical(
        self,
        a: str | torch.Tensor,
        b: str | torch.Tensor,
        c: str | torch.Tensor,
    ) -> AnalogyResult:
        """Complete a : b :: c : ? with the nearest concept to c + (b - a).

        Returns:
            AnalogyResult; empty when an input concept is unknown or the store
            holds no populated diamonds
        """
        points = [self._point(x) for x in (a, b, c)]
        if any(p is None for p in points):
            logger.debug("Analogy input has no populated diamond")
            return AnalogyResult()

        pa, pb, pc = points
        delta = (pb - pa).clamp(COMPONENT_MIN, COMPONENT_MAX)
        predicted = (pc + delta).clamp(COMPONENT_MIN, COMPONENT_MAX)

        candidates = self.retriever.nearest(predicted, k=1)
        if not candidates:
            return AnalogyResult(predicted=predicted)

        best = candidates[0]
        check = self.adversarial_check(predicted, best.diamond)
        return AnalogyResult(best.label, best.distance, check.band, predicted)

    def abductive(
        self,
        observation: torch.Tensor,
        relation: str,
        k: int = 5,
        geometric_weight: float = 0.7,
        priority_weight: float = 0.3,
    ) -> AbductionResult:
        """Rank likely causes of observation under relation.

        Args:
            observation: Effect vector or point
            relation: Relation whose permutation links cause to effect
            k: Number of hypotheses to keep
            geometric_weight: Weight of the distance score
            priority_weight: Weight of the usage priority

        Returns:
            AbductionResult; concept is the best-ranked hypothesis whose band
            is not FALSE, and the result is empty for unregistered relations
        """
        if self.permuter is None:
            return AbductionResult()
        try:
            permutation = self.permuter.get(relation)
        except KeyError:
            logger.debug(f"No permutation registered for {relation}")
            return AbductionResult()

        estimate = unpermute(to_point(observation, self.store.geometry), permutation)
        candidates = self.retriever.nearest(estimate, k=max(k * 2, 10))
        if not candidates:
            return AbductionResult()

        max_distance = max(max(c.distance for c in candidates), 1)
        ranked = []
        for candidate in candidates:
            geometric = 1.0 - candidate.distance / max_distance
            stats: dict[str, Any] | None = self.store.get_usage_stats(candidate.label)
            priority = stats["priority"] if stats else DEFAULT_PRIORITY
            ranked.append(
                Hypothesis(
                    concept=candidate.label,
                    distance=candidate.distance,
                    band=self.adversarial_check(estimate, candidate.diamond).band,
                    geometric_score=geometric,
                    priority_score=priority,
                    combined_score=geometric * geometric_weight + priority * priority_weight,
                )
            )
        ranked.sort(key=lambda h: -h.combined_score)
        hypotheses = ranked[:k]

        best = next((h for h in hypotheses if h.band != Truth.FALSE), None)
        if best is None:
            return AbductionResult(hypotheses=hypotheses)
        return AbductionResult(best.concept, best.distance, best.band, hypotheses)
