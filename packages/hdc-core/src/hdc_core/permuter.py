"""
hdc_core/permuter.py - Named per-relation permutations

A relation such as CAUSES is encoded by permuting the effect side before
combining it with the cause. The abductive reasoner needs the same
permutation back to undo it, so permutations live in a registry keyed by
relation name.
"""
from __future__ import annotations

import hashlib
import logging

import torch

from .operators import random_permutation

logger = logging.getLogger(__name__)


def relation_seed(relation: str) -> int:
    """Stable 63-bit seed derived from a relation name."""
    digest = hashlib.sha256(f"relation:{relation}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & 0x7FFF_FFFF_FFFF_FFFF


class RelationPermuter:
    """Registry of relation name -> permutation index tensor.

    Example:
        permuter = RelationPermuter(geometry=2048)
        permuter.register("CAUSES")
        effect_side = permute(cause_vector, permuter.get("CAUSES"))
    """

    def __init__(self, geometry: int):
        self.geometry = geometry
        self._table: dict[str, torch.Tensor] = {}

    def register(self, relation: str, permutation: torch.Tensor | None = None) -> torch.Tensor:
        """Register a relation's permutation.

        Args:
            relation: Relation name
            permutation: Explicit index tensor; derived from the name when omitted

        Returns:
            The registered permutation
        """
        if permutation is None:
            permutation = random_permutation(self.geometry, relation_seed(relation))
        elif permutation.shape != (self.geometry,):
            raise ValueError(
                f"Permutation for {relation} has shape {tuple(permutation.shape)}, "
                f"expected ({self.geometry},)"
            )
        elif not torch.equal(torch.sort(permutation).values, torch.arange(self.geometry)):
            raise ValueError(f"Permutation for {relation} is not a bijection")

        self._table[relation] = permutation
        logger.debug(f"Registered permutation for relation {relation}")
        return permutation

    def get(self, relation: str) -> torch.Tensor:
        """Return the registered permutation.

        Raises:
            KeyError: If the relation was never registered
        """
        return self._table[relation]

    def has(self, relation: str) -> bool:
        return relation in self._table

    def relations(self) -> list[str]:
        return list(self._table)

    def __len__(self) -> int:
        return len(self._table)
