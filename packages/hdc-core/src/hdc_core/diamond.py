"""
hdc_core/diamond.py - Bounded Diamonds (concept regions)

A diamond summarizes where a concept's examples live in vector space:

    min_values[G], max_values[G]   componentwise envelope of the examples
    center[G]                      per-component midpoint (truncated)
    l1_radius                      Σ (max - min)
    relevance_mask[G]              axes that discriminate the concept
    lsh_fingerprint                sign-of-random-projection hash of center

Components are signed integers in [-127, 127]. Binary vectors map onto
that range as True -> 127 and False -> -127; integer tensors are clamped.

A freshly created diamond is empty; its first example is adopted as-is
(min = max = center), later examples widen the envelope.
"""
from __future__ import annotations

import functools
from collections.abc import Iterable
from typing import Any

import torch

from .errors import GeometryMismatch
from .types import COMPONENT_MAX, COMPONENT_MIN, DiamondConfig

_DEFAULT_CONFIG = DiamondConfig()


# =============================================================================
# HELPERS
# =============================================================================


def to_point(v: torch.Tensor, geometry: int) -> torch.Tensor:
    """Convert a vector to a signed int32 point in [-127, 127].

    Raises:
        GeometryMismatch: If v does not have length geometry
    """
    if v.dim() != 1 or v.shape[0] != geometry:
        raise GeometryMismatch(geometry, int(v.shape[-1]))
    if v.dtype == torch.bool:
        return v.to(torch.int32) * (COMPONENT_MAX - COMPONENT_MIN) + COMPONENT_MIN
    return v.to(torch.int32).clamp(COMPONENT_MIN, COMPONENT_MAX)


@functools.lru_cache(maxsize=16)
def _lsh_planes(geometry: int, bits: int, seed: int) -> torch.Tensor:
    generator = torch.Generator()
    generator.manual_seed(seed)
    return torch.randn(bits, geometry, generator=generator)


def lsh_fingerprint(center: torch.Tensor, config: DiamondConfig = _DEFAULT_CONFIG) -> int:
    """Sign-random-projection hash: bit i is set when plane_i · center >= 0."""
    planes = _lsh_planes(int(center.shape[0]), config.lsh_bits, config.lsh_seed)
    signs = (planes @ center.to(torch.float32)) >= 0
    fingerprint = 0
    for i, bit in enumerate(signs.tolist()):
        if bit:
            fingerprint |= 1 << i
    return fingerprint


# =============================================================================
# BOUNDED DIAMOND
# =============================================================================


class BoundedDiamond:
    """Geometric extent of one concept sense."""

    def __init__(
        self,
        concept_id: int | str,
        label: str,
        geometry: int,
        config: DiamondConfig = _DEFAULT_CONFIG,
    ):
        self.concept_id = concept_id
        self.label = label
        self.geometry = geometry
        self.config = config

        self.min_values = torch.zeros(geometry, dtype=torch.int8)
        self.max_values = torch.zeros(geometry, dtype=torch.int8)
        self.center = torch.zeros(geometry, dtype=torch.int8)
        self.l1_radius = 0
        self.relevance_mask = torch.zeros(geometry, dtype=torch.bool)
        self.lsh_fingerprint = lsh_fingerprint(self.center, config)
        self.sample_count = 0

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_examples(
        cls,
        concept_id: int | str,
        label: str,
        examples: Iterable[torch.Tensor],
        geometry: int | None = None,
    ) -> BoundedDiamond:
        examples = list(examples)
        if geometry is None:
            if not examples:
                raise ValueError("geometry is required when no examples are given")
            geometry = int(examples[0].shape[-1])
        diamond = cls(concept_id, label, geometry)
        diamond.update_from_examples(examples)
        return diamond

    @property
    def is_empty(self) -> bool:
        return self.sample_count == 0

    def initialise_from_vector(self, v: torch.Tensor) -> None:
        """Collapse the diamond onto a single point."""
        point = to_point(v, self.geometry)
        self.min_values = point.to(torch.int8)
        self.max_values = point.to(torch.int8)
        self.center = point.to(torch.int8)
        self.l1_radius = 0
        self.relevance_mask = point != 0
        self.lsh_fingerprint = lsh_fingerprint(self.center, self.config)
        self.sample_count = 1

    def update_from_examples(self, examples: Iterable[torch.Tensor]) -> None:
        """Widen the envelope with each example and refresh derived fields."""
        examples = list(examples)
        if not examples:
            return

        start = 0
        if self.is_empty:
            self.initialise_from_vector(examples[0])
            start = 1

        lo = self.min_values.to(torch.int32)
        hi = self.max_values.to(torch.int32)
        for v in examples[start:]:
            point = to_point(v, self.geometry)
            lo = torch.minimum(lo, point)
            hi = torch.maximum(hi, point)
            self.sample_count += 1

        self._refresh(lo, hi)

    def expand(self, v: torch.Tensor) -> None:
        """Add one example."""
        self.update_from_examples([v])

    def _refresh(self, lo: torch.Tensor, hi: torch.Tensor) -> None:
        center = torch.div(lo + hi, 2, rounding_mode="trunc")
        self.min_values = lo.to(torch.int8)
        self.max_values = hi.to(torch.int8)
        self.center = center.to(torch.int8)
        self.l1_radius = int((hi - lo).sum())
        self.relevance_mask = (hi != lo) | (center != 0)
        self.lsh_fingerprint = lsh_fingerprint(self.center, self.config)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def l1_distance(self, v: torch.Tensor, mask: torch.Tensor | None = None) -> int:
        """L1 distance from v to the center, optionally restricted to mask axes."""
        diff = (to_point(v, self.geometry) - self.center.to(torch.int32)).abs()
        if mask is not None:
            if mask.shape != (self.geometry,):
                raise GeometryMismatch(self.geometry, int(mask.shape[-1]))
            diff = diff[mask]
        return int(diff.sum())

    def contains(self, v: torch.Tensor) -> bool:
        """True when v lies inside the min/max envelope.

        Every point of the envelope is within l1_radius of the center, so a
        larger L1 distance rejects without the per-axis check.
        """
        if self.is_empty:
            return False
        if self.l1_distance(v) > self.l1_radius:
            return False
        point = to_point(v, self.geometry)
        return bool(
            ((point >= self.min_values.to(torch.int32)) & (point <= self.max_values.to(torch.int32))).all()
        )

    def fingerprint_distance(self, other: BoundedDiamond | int) -> int:
        """Hamming distance between LSH fingerprints."""
        fp = other.lsh_fingerprint if isinstance(other, BoundedDiamond) else other
        return bin(self.lsh_fingerprint ^ fp).count("1")

    def center_vector(self) -> torch.Tensor:
        """Center as an int32 point (safe for arithmetic)."""
        return self.center.to(torch.int32)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def copy(self) -> BoundedDiamond:
        clone = BoundedDiamond(self.concept_id, self.label, self.geometry, self.config)
        clone.min_values = self.min_values.clone()
        clone.max_values = self.max_values.clone()
        clone.center = self.center.clone()
        clone.l1_radius = self.l1_radius
        clone.relevance_mask = self.relevance_mask.clone()
        clone.lsh_fingerprint = self.lsh_fingerprint
        clone.sample_count = self.sample_count
        return clone

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept_id": self.concept_id,
            "label": self.label,
            "geometry": self.geometry,
            "min_values": self.min_values.tolist(),
            "max_values": self.max_values.tolist(),
            "l1_radius": self.l1_radius,
            "lsh_fingerprint": self.lsh_fingerprint,
            "sample_count": self.sample_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BoundedDiamond:
        diamond = cls(data["concept_id"], data["label"], data["geometry"])
        if data.get("sample_count", 0) > 0:
            lo = torch.tensor(data["min_values"], dtype=torch.int32)
            hi = torch.tensor(data["max_values"], dtype=torch.int32)
            if lo.shape != (diamond.geometry,) or hi.shape != (diamond.geometry,):
                raise GeometryMismatch(diamond.geometry, int(lo.shape[-1]))
            diamond._refresh(lo, hi)
            diamond.sample_count = data["sample_count"]
        return diamond

    def __repr__(self) -> str:
        return (
            f"BoundedDiamond({self.label!r}, geometry={self.geometry}, "
            f"radius={self.l1_radius}, samples={self.sample_count})"
        )
