"""
hdc_core/operators.py - Algebraic Operations on Dense Binary Vectors

BINDING (⊗):
    Component-wise XOR.
    bind(a, b)[i] = a[i] XOR b[i]

    Properties:
    - Commutative: a ⊗ b = b ⊗ a
    - Associative: (a ⊗ b) ⊗ c = a ⊗ (b ⊗ c)
    - Self-inverse: (a ⊗ b) ⊗ b = a, exactly
    - Similarity-preserving: sim(a ⊗ c, b ⊗ c) = sim(a, b)

BUNDLING (⊕):
    Per-component majority vote. Ties resolve to 1.

    Properties:
    - Commutative
    - Result is similar (> 0.5) to every input when inputs are dissimilar

PERMUTATION (π):
    Reordering of components by an index tensor.
    permute(v, p)[i] = v[p[i]]

    Properties:
    - Invertible: unpermute(permute(v, p), p) = v
    - Used to mark roles, e.g. the effect side of "X CAUSES Y"
"""
from __future__ import annotations

from collections.abc import Sequence

import torch

from .errors import EmptyOperandsError, GeometryMismatch
from .vectors import check_geometry, geometry_of, similarity

# =============================================================================
# BINDING OPERATIONS
# =============================================================================


def bind(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Bind two vectors via component-wise XOR.

    Args:
        a: First vector
        b: Second vector

    Returns:
        New vector; neither input is modified
    """
    check_geometry(a, b)
    return torch.logical_xor(a, b)


def unbind(bound: torch.Tensor, key: torch.Tensor) -> torch.Tensor:
    """Recover the partner of key from a bound pair. XOR is its own inverse."""
    return bind(bound, key)


def bind_all(*vectors: torch.Tensor) -> torch.Tensor:
    """Left-fold of bind over the arguments.

    A single argument yields an independent copy, never an alias.

    Raises:
        EmptyOperandsError: If called with no vectors
    """
    if not vectors:
        raise EmptyOperandsError("bind_all")
    check_geometry(*vectors)
    result = vectors[0].clone()
    for v in vectors[1:]:
        result = torch.logical_xor(result, v)
    return result


# =============================================================================
# BUNDLING OPERATIONS
# =============================================================================


def bundle(vectors: Sequence[torch.Tensor]) -> torch.Tensor:
    """Majority-vote superposition.

    Args:
        vectors: Vectors to bundle

    Returns:
        Component i is 1 when at least half of the inputs are 1 there

    Raises:
        EmptyOperandsError: If vectors is empty
    """
    if len(vectors) == 0:
        raise EmptyOperandsError("bundle")
    check_geometry(*vectors)
    if len(vectors) == 1:
        return vectors[0].clone()

    counts = torch.stack(list(vectors)).sum(dim=0)
    return counts * 2 >= len(vectors)


def weighted_bundle(vectors: Sequence[torch.Tensor], weights: Sequence[float]) -> torch.Tensor:
    """Majority vote where each vector contributes its weight.

    Ties resolve to 1 like bundle().
    """
    if len(vectors) == 0:
        raise EmptyOperandsError("weighted_bundle")
    if len(vectors) != len(weights):
        raise ValueError("Number of vectors must match number of weights")
    check_geometry(*vectors)

    stacked = torch.stack(list(vectors)).to(torch.float32)
    w = torch.tensor(list(weights), dtype=torch.float32).unsqueeze(1)
    votes = (stacked * w).sum(dim=0)
    return votes * 2 >= w.sum()


# =============================================================================
# PERMUTATION OPERATIONS
# =============================================================================


def _check_permutation(v: torch.Tensor, perm: torch.Tensor) -> None:
    if perm.dim() != 1 or perm.shape[0] != geometry_of(v):
        raise GeometryMismatch(geometry_of(v), int(perm.shape[-1]))


def permute(v: torch.Tensor, perm: torch.Tensor) -> torch.Tensor:
    """Reorder components: result[i] = v[perm[i]].

    Works for binary vectors and for the signed integer points that
    diamonds store.
    """
    _check_permutation(v, perm)
    return v[perm]


def unpermute(v: torch.Tensor, perm: torch.Tensor) -> torch.Tensor:
    """Inverse of permute for the same index tensor."""
    _check_permutation(v, perm)
    result = torch.empty_like(v)
    result[perm] = v
    return result


def shift_permutation(geometry: int, shift: int = 1) -> torch.Tensor:
    """Cyclic shift as an index tensor (positional role marker)."""
    return torch.roll(torch.arange(geometry), shifts=shift)


def random_permutation(geometry: int, seed: int) -> torch.Tensor:
    """Deterministic pseudo-random permutation."""
    generator = torch.Generator()
    generator.manual_seed(seed)
    return torch.randperm(geometry, generator=generator)


def invert_permutation(perm: torch.Tensor) -> torch.Tensor:
    """Index tensor q such that permute(permute(v, perm), q) = v."""
    return torch.argsort(perm)


# =============================================================================
# STRUCTURED ENCODING
# =============================================================================


def sequence_encode(vectors: Sequence[torch.Tensor]) -> torch.Tensor:
    """Encode an ordered sequence: bundle of position-shifted items.

    Position i is marked with a cyclic shift of i + 1.
    """
    if len(vectors) == 0:
        raise EmptyOperandsError("sequence_encode")
    geometry = check_geometry(*vectors)
    shifted = [permute(v, shift_permutation(geometry, i + 1)) for i, v in enumerate(vectors)]
    return bundle(shifted)


def solve_analogy(a: torch.Tensor, b: torch.Tensor, c: torch.Tensor) -> torch.Tensor:
    """Solve a : b :: c : ? with a bind-based offset.

    The offset a ⊗ b is applied to c, so the answer is a ⊗ b ⊗ c.
    """
    return bind_all(a, b, c)


def orthogonality_check(vectors: Sequence[torch.Tensor]) -> dict[str, float]:
    """Pairwise similarity statistics for a set of vectors.

    Random binary vectors sit near 0.5; values far from it suggest
    a bad seed or correlated names.
    """
    n = len(vectors)
    if n < 2:
        return {"mean": 0.5, "min": 0.5, "max": 0.5}

    sims = [similarity(vectors[i], vectors[j]) for i in range(n) for j in range(i + 1, n)]
    return {
        "mean": sum(sims) / len(sims),
        "min": min(sims),
        "max": max(sims),
    }
