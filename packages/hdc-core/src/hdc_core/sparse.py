"""
hdc_core/sparse.py - Sparse "fractal-semantic" vectors

Representation:
    A vector is a set of 64-bit exponents, stored as a sorted, duplicate-free
    ``torch.int64`` tensor. ``max_size`` (the strategy geometry) caps the set
    size; base vectors hold ``max_size // 2`` exponents.

Operations:
    bind(a, b)   = (a XOR fold(b)) ∪ (b XOR fold(a)), then sparsify
    bundle(vs)   = union of all sets, then sparsify
    similarity   = Jaccard index (two empty sets are identical)
    permute      = XOR of every exponent with a key derived from the index tensor

    fold(v) is the XOR of all exponents in v. Sparsification keeps the
    max_size exponents with the smallest SplitMix64 hash, so it is
    deterministic and independent of insertion order.

Self-inverse fidelity:
    Binding is commutative but not bit-exact self-inverse. For two base
    vectors (even size, no sparsification loss), bind(bind(a, b), b) contains
    every exponent of a plus |b| unrelated exponents, so its Jaccard
    similarity to a is at least 0.5. Vectors that were bundled or
    sparsified before binding recover less.
"""
from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import numpy as np
import torch

from .errors import EmptyOperandsError, GeometryMismatch
from .vectors import expand_hash

# Documented lower bound for Jaccard(bind(bind(a, b), b), a) on base vectors
SELF_INVERSE_FLOOR = 0.5

_GOLDEN = np.uint64(0x9E3779B97F4A7C15)
_MIX_1 = np.uint64(0xBF58476D1CE4E5B9)
_MIX_2 = np.uint64(0x94D049BB133111EB)


@dataclass(frozen=True)
class SparseVector:
    """Immutable exponent set with a capacity."""

    exponents: torch.Tensor
    max_size: int

    def __len__(self) -> int:
        return int(self.exponents.numel())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseVector):
            return NotImplemented
        return self.max_size == other.max_size and torch.equal(self.exponents, other.exponents)

    def __hash__(self) -> int:
        return hash((self.max_size, self.exponents.numpy().tobytes()))

    def to_set(self) -> set[int]:
        return set(self.exponents.tolist())

    def clone(self) -> SparseVector:
        return SparseVector(self.exponents.clone(), self.max_size)


# =============================================================================
# INTERNAL HELPERS
# =============================================================================


def _splitmix64(values: np.ndarray) -> np.ndarray:
    """SplitMix64 finalizer over a uint64 array (wrapping arithmetic)."""
    z = values + _GOLDEN
    z = (z ^ (z >> np.uint64(30))) * _MIX_1
    z = (z ^ (z >> np.uint64(27))) * _MIX_2
    return z ^ (z >> np.uint64(31))


def _as_uint64(v: SparseVector) -> np.ndarray:
    return v.exponents.numpy().view(np.uint64)


def _make(values: np.ndarray, max_size: int) -> SparseVector:
    """Deduplicate, sparsify and wrap a uint64 array."""
    unique = np.unique(values.astype(np.uint64))
    if unique.shape[0] > max_size:
        hashes = _splitmix64(unique)
        # lexsort keys are minor-first: hash decides, value breaks ties
        order = np.lexsort((unique, hashes))
        unique = unique[order[:max_size]]
    signed = np.sort(unique.view(np.int64))
    return SparseVector(torch.from_numpy(signed.copy()), max_size)


def _check(*vectors: SparseVector) -> int:
    expected = vectors[0].max_size
    for v in vectors[1:]:
        if v.max_size != expected:
            raise GeometryMismatch(expected, v.max_size)
    return expected


def xor_fold(v: SparseVector) -> np.uint64:
    """XOR of every exponent (0 for the empty vector)."""
    values = _as_uint64(v)
    if values.shape[0] == 0:
        return np.uint64(0)
    return np.bitwise_xor.reduce(values)


def _permutation_key(perm: torch.Tensor) -> np.uint64:
    digest = hashlib.sha256(perm.to(torch.int64).numpy().tobytes()).digest()
    return np.frombuffer(digest[:8], dtype=np.uint64)[0]


# =============================================================================
# VECTOR GENERATION
# =============================================================================


def sparse_empty(max_size: int) -> SparseVector:
    return SparseVector(torch.zeros(0, dtype=torch.int64), max_size)


def sparse_random(max_size: int, seed: int | None = None) -> SparseVector:
    """Random base vector with max_size // 2 exponents."""
    rng = np.random.default_rng(seed)
    count = max_size // 2
    values = np.frombuffer(rng.bytes(8 * count), dtype=np.uint64)
    return _make(values, max_size)


def sparse_from_name(max_size: int, name: str, theory: str = "default") -> SparseVector:
    """Deterministic base vector for (name, theory)."""
    count = max_size // 2
    raw = expand_hash(f"sparse:{theory}:{name}", 8 * count)
    return _make(np.frombuffer(raw, dtype=np.uint64), max_size)


# =============================================================================
# ALGEBRA
# =============================================================================


def sparse_bind(a: SparseVector, b: SparseVector) -> SparseVector:
    """Commutative fold-keyed bind (see module docstring)."""
    max_size = _check(a, b)
    left = _as_uint64(a) ^ xor_fold(b)
    right = _as_uint64(b) ^ xor_fold(a)
    return _make(np.concatenate([left, right]), max_size)


def sparse_bind_all(*vectors: SparseVector) -> SparseVector:
    if not vectors:
        raise EmptyOperandsError("bind_all")
    _check(*vectors)
    result = vectors[0].clone()
    for v in vectors[1:]:
        result = sparse_bind(result, v)
    return result


def sparse_bundle(vectors: Sequence[SparseVector]) -> SparseVector:
    """Union of all inputs, sparsified to capacity."""
    if len(vectors) == 0:
        raise EmptyOperandsError("bundle")
    max_size = _check(*vectors)
    if len(vectors) == 1:
        return vectors[0].clone()
    return _make(np.concatenate([_as_uint64(v) for v in vectors]), max_size)


def sparse_permute(v: SparseVector, perm: torch.Tensor) -> SparseVector:
    """Role marker: XOR every exponent with a key derived from perm.

    XOR with a fixed key is its own inverse, so sparse_unpermute is the
    same operation.
    """
    if perm.dim() != 1 or perm.shape[0] != v.max_size:
        raise GeometryMismatch(v.max_size, int(perm.shape[-1]))
    return _make(_as_uint64(v) ^ _permutation_key(perm), v.max_size)


sparse_unpermute = sparse_permute


# =============================================================================
# SIMILARITY
# =============================================================================


def sparse_similarity(a: SparseVector, b: SparseVector) -> float:
    """Jaccard index of the two exponent sets."""
    _check(a, b)
    if len(a) == 0 and len(b) == 0:
        return 1.0
    shared = int(np.intersect1d(a.exponents.numpy(), b.exponents.numpy()).shape[0])
    return shared / (len(a) + len(b) - shared)


def sparse_top_k_similar(
    query: SparseVector,
    vocabulary: Mapping[str, SparseVector] | Iterable[tuple[str, SparseVector]],
    k: int = 10,
) -> list[tuple[str, float]]:
    """Top-k by Jaccard similarity; ties keep input order."""
    items = vocabulary.items() if isinstance(vocabulary, Mapping) else vocabulary
    scored = sorted(
        ((label, sparse_similarity(query, vec)) for label, vec in items),
        key=lambda item: -item[1],
    )
    return scored[: max(k, 0)]
