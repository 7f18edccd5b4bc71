"""
hdc_core/vectors.py - Dense Binary Hypervectors

Representation:
    A vector is a 1-D ``torch.bool`` tensor of length G (the geometry).
    Every operation in this package requires equal geometry on all operands
    and raises GeometryMismatch otherwise; nothing is truncated or padded.

Key Properties:
    - Random vectors are quasi-orthogonal: expected similarity 0.5
    - Similarity is 1 - normalized Hamming distance, in [0, 1]
    - Named vectors are deterministic in (name, theory)
"""
from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import numpy as np
import torch

from .errors import GeometryMismatch

# Bits in the ASCII stamp that seeds every named vector
STAMP_BITS = 256

# =============================================================================
# VALIDATION
# =============================================================================


def geometry_of(v: torch.Tensor) -> int:
    """Return the geometry (last dimension) of a vector or codebook."""
    return int(v.shape[-1])


def check_geometry(*vectors: torch.Tensor, geometry: int | None = None) -> int:
    """Ensure all vectors share one geometry.

    Args:
        *vectors: Vectors to compare
        geometry: Expected geometry (default: geometry of the first vector)

    Returns:
        The shared geometry

    Raises:
        GeometryMismatch: If any vector differs
    """
    expected = geometry
    for v in vectors:
        actual = geometry_of(v)
        if expected is None:
            expected = actual
        elif actual != expected:
            raise GeometryMismatch(expected, actual)
    return expected if expected is not None else 0


# =============================================================================
# VECTOR GENERATION
# =============================================================================


def random_vector(geometry: int, seed: int | None = None) -> torch.Tensor:
    """Generate a uniform random binary vector.

    Args:
        geometry: Vector length
        seed: Optional seed; identical seeds yield identical vectors

    Returns:
        Bool tensor of shape (geometry,)
    """
    generator = torch.Generator()
    if seed is None:
        generator.seed()
    else:
        generator.manual_seed(seed)
    return torch.rand(geometry, generator=generator) < 0.5


def zero_vector(geometry: int) -> torch.Tensor:
    """All-zero vector (identity element for bind)."""
    return torch.zeros(geometry, dtype=torch.bool)


def expand_hash(seed: str, n_bytes: int) -> bytes:
    """SHA-256 block expansion of a seed string to n_bytes."""
    hash_bytes = b""
    block_idx = 0
    while len(hash_bytes) < n_bytes:
        hash_bytes += hashlib.sha256(f"{seed}:{block_idx}".encode("utf-8")).digest()
        block_idx += 1
    return hash_bytes[:n_bytes]


def _ascii_stamp(name: str) -> np.ndarray:
    """Repeat the UTF-8 bytes of name into a STAMP_BITS bit pattern."""
    raw = name.encode("utf-8") or b"\x00"
    n_bytes = STAMP_BITS // 8
    stamp = bytes(raw[i % len(raw)] for i in range(n_bytes))
    return np.unpackbits(np.frombuffer(stamp, dtype=np.uint8))


def from_name(geometry: int, name: str, theory: str = "default") -> torch.Tensor:
    """Generate the deterministic stamped vector for a name.

    The ASCII stamp of ``name`` is tiled across the vector, then each
    stamp-sized block is XORed with a SHA-256 variation keyed by
    ``theory:name`` and the block index. The variation dominates, so the
    same name under two theories is quasi-orthogonal.

    Args:
        geometry: Vector length (multiple of 8)
        name: Symbol name
        theory: Namespace for the symbol

    Returns:
        Bool tensor of shape (geometry,)

    Raises:
        ValueError: If geometry is not a positive multiple of 8
    """
    if geometry <= 0 or geometry % 8 != 0:
        raise ValueError(f"geometry must be a positive multiple of 8, got {geometry}")
    stamp = np.resize(_ascii_stamp(name), geometry)
    variation = np.unpackbits(
        np.frombuffer(expand_hash(f"{theory}:{name}", geometry // 8), dtype=np.uint8)
    )
    bits = np.bitwise_xor(stamp, variation[:geometry])
    return torch.from_numpy(bits.astype(np.bool_))


def batch_from_name(
    geometry: int, names: Sequence[str], theory: str = "default"
) -> torch.Tensor:
    """Stack named vectors into a (n, geometry) codebook."""
    if not names:
        return torch.zeros((0, geometry), dtype=torch.bool)
    return torch.stack([from_name(geometry, n, theory) for n in names])


# =============================================================================
# SIMILARITY
# =============================================================================


def similarity(a: torch.Tensor, b: torch.Tensor) -> float:
    """Compute normalized Hamming similarity.

    Returns:
        1.0 for identical vectors, ~0.5 for random pairs, 0.0 for complements
    """
    geometry = check_geometry(a, b)
    differing = int(torch.count_nonzero(torch.logical_xor(a, b)))
    return 1.0 - differing / geometry


def distance(a: torch.Tensor, b: torch.Tensor) -> float:
    """1 - similarity."""
    return 1.0 - similarity(a, b)


def batch_similarity(query: torch.Tensor, codebook: torch.Tensor) -> torch.Tensor:
    """Similarity of query against every row of a (n, G) codebook."""
    geometry = check_geometry(query, codebook)
    differing = torch.logical_xor(codebook, query.unsqueeze(0)).sum(dim=-1)
    return 1.0 - differing.to(torch.float32) / geometry


def top_k_similar(
    query: torch.Tensor,
    vocabulary: Mapping[str, torch.Tensor] | Iterable[tuple[str, torch.Tensor]],
    k: int = 10,
) -> list[tuple[str, float]]:
    """Find the k vocabulary entries most similar to query.

    Ties keep the vocabulary's input order. ``k`` larger than the vocabulary
    returns every entry.

    Args:
        query: Query vector
        vocabulary: Mapping or iterable of (label, vector)
        k: Number of results

    Returns:
        List of (label, similarity), most similar first
    """
    items = vocabulary.items() if isinstance(vocabulary, Mapping) else vocabulary
    scored = [(label, similarity(query, vec)) for label, vec in items]
    # sorted() is stable, so equal scores keep input order
    scored = sorted(scored, key=lambda item: -item[1])
    return scored[: max(k, 0)]


def is_orthogonal(a: torch.Tensor, b: torch.Tensor, band: float = 0.55) -> bool:
    """True when similarity lies strictly inside (1 - band, band)."""
    sim = similarity(a, b)
    return 1.0 - band < sim < band


# =============================================================================
# VECTOR INFO & DEBUGGING
# =============================================================================


def vector_info(v: torch.Tensor) -> dict[str, Any]:
    """Get diagnostic information about a binary vector."""
    ones = int(torch.count_nonzero(v))
    return {
        "shape": tuple(v.shape),
        "dtype": str(v.dtype),
        "ones": ones,
        "density": ones / max(geometry_of(v), 1),
    }


def to_bytes(v: torch.Tensor) -> bytes:
    """Pack a binary vector into bytes (geometry must be a multiple of 8)."""
    return np.packbits(v.numpy().astype(np.uint8)).tobytes()


def from_bytes(data: bytes, geometry: int) -> torch.Tensor:
    """Inverse of to_bytes."""
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))[:geometry]
    if bits.shape[0] != geometry:
        raise GeometryMismatch(geometry, int(bits.shape[0]))
    return torch.from_numpy(bits.astype(np.bool_))
