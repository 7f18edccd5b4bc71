"""
hdc_core/strategies.py - One interface over both HDC strategies

Callers that must work under either strategy (rule encoding, concept
vocabularies) go through an HDCStrategy instead of importing the dense or
sparse functions directly. Each instance is bound to one geometry.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import torch

from . import operators, sparse, vectors
from .errors import GeometryMismatch
from .types import VectorConfig


class HDCStrategy(ABC):
    """Abstract vector algebra with a fixed geometry."""

    name: str = ""

    def __init__(self, config: VectorConfig):
        self.config = config
        self.geometry = config.geometry

    # Construction
    @abstractmethod
    def random(self, seed: int | None = None) -> Any: ...

    @abstractmethod
    def from_name(self, name: str, theory: str = "default") -> Any: ...

    @abstractmethod
    def zero(self) -> Any: ...

    # Algebra
    @abstractmethod
    def bind(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def bind_all(self, *vs: Any) -> Any: ...

    @abstractmethod
    def bundle(self, vs: Sequence[Any]) -> Any: ...

    @abstractmethod
    def permute(self, v: Any, perm: torch.Tensor) -> Any: ...

    @abstractmethod
    def unpermute(self, v: Any, perm: torch.Tensor) -> Any: ...

    # Similarity
    @abstractmethod
    def similarity(self, a: Any, b: Any) -> float: ...

    @abstractmethod
    def is_orthogonal(self, a: Any, b: Any) -> bool: ...

    @abstractmethod
    def top_k_similar(
        self, query: Any, vocabulary: Mapping[str, Any] | Iterable[tuple[str, Any]], k: int = 10
    ) -> list[tuple[str, float]]: ...

    def distance(self, a: Any, b: Any) -> float:
        return 1.0 - self.similarity(a, b)

    def position_permutation(self, position: int) -> torch.Tensor:
        """Cyclic shift marking argument position (1-based)."""
        return operators.shift_permutation(self.geometry, position)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(geometry={self.geometry})"


class DenseBinaryStrategy(HDCStrategy):
    """XOR bind, majority bundle, Hamming similarity."""

    name = "dense-binary"

    def _own(self, *vs: torch.Tensor) -> None:
        vectors.check_geometry(*vs, geometry=self.geometry)

    def random(self, seed: int | None = None) -> torch.Tensor:
        return vectors.random_vector(self.geometry, seed)

    def from_name(self, name: str, theory: str = "default") -> torch.Tensor:
        return vectors.from_name(self.geometry, name, theory)

    def zero(self) -> torch.Tensor:
        return vectors.zero_vector(self.geometry)

    def bind(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self._own(a, b)
        return operators.bind(a, b)

    def bind_all(self, *vs: torch.Tensor) -> torch.Tensor:
        self._own(*vs)
        return operators.bind_all(*vs)

    def bundle(self, vs: Sequence[torch.Tensor]) -> torch.Tensor:
        self._own(*vs)
        return operators.bundle(vs)

    def permute(self, v: torch.Tensor, perm: torch.Tensor) -> torch.Tensor:
        self._own(v)
        return operators.permute(v, perm)

    def unpermute(self, v: torch.Tensor, perm: torch.Tensor) -> torch.Tensor:
        self._own(v)
        return operators.unpermute(v, perm)

    def similarity(self, a: torch.Tensor, b: torch.Tensor) -> float:
        self._own(a, b)
        return vectors.similarity(a, b)

    def is_orthogonal(self, a: torch.Tensor, b: torch.Tensor) -> bool:
        self._own(a, b)
        return vectors.is_orthogonal(a, b, self.config.orthogonal_band)

    def top_k_similar(self, query, vocabulary, k: int = 10) -> list[tuple[str, float]]:
        return vectors.top_k_similar(query, vocabulary, k)


class FractalSemanticStrategy(HDCStrategy):
    """Sparse exponent sets; see hdc_core.sparse for fidelity notes."""

    name = "fractal-semantic"

    # Jaccard of unrelated sparse vectors sits near 0, not 0.5
    orthogonal_threshold = 0.05

    def _own(self, *vs: sparse.SparseVector) -> None:
        for v in vs:
            if v.max_size != self.geometry:
                raise GeometryMismatch(self.geometry, v.max_size)

    def random(self, seed: int | None = None) -> sparse.SparseVector:
        return sparse.sparse_random(self.geometry, seed)

    def from_name(self, name: str, theory: str = "default") -> sparse.SparseVector:
        return sparse.sparse_from_name(self.geometry, name, theory)

    def zero(self) -> sparse.SparseVector:
        return sparse.sparse_empty(self.geometry)

    def bind(self, a, b):
        self._own(a, b)
        return sparse.sparse_bind(a, b)

    def bind_all(self, *vs):
        self._own(*vs)
        return sparse.sparse_bind_all(*vs)

    def bundle(self, vs):
        self._own(*vs)
        return sparse.sparse_bundle(vs)

    def permute(self, v, perm):
        self._own(v)
        return sparse.sparse_permute(v, perm)

    def unpermute(self, v, perm):
        self._own(v)
        return sparse.sparse_unpermute(v, perm)

    def similarity(self, a, b) -> float:
        self._own(a, b)
        return sparse.sparse_similarity(a, b)

    def is_orthogonal(self, a, b) -> bool:
        return self.similarity(a, b) < self.orthogonal_threshold

    def top_k_similar(self, query, vocabulary, k: int = 10) -> list[tuple[str, float]]:
        return sparse.sparse_top_k_similar(query, vocabulary, k)


_STRATEGIES: dict[str, type[HDCStrategy]] = {
    DenseBinaryStrategy.name: DenseBinaryStrategy,
    FractalSemanticStrategy.name: FractalSemanticStrategy,
}


def get_strategy(config: VectorConfig | str | None = None, geometry: int | None = None) -> HDCStrategy:
    """Build a strategy from a config or a strategy identifier.

    Args:
        config: VectorConfig, strategy name, or None for the default config
        geometry: Geometry override when config is a name

    Returns:
        Strategy instance bound to the configured geometry
    """
    if config is None:
        config = VectorConfig() if geometry is None else VectorConfig(geometry=geometry)
    elif isinstance(config, str):
        kwargs: dict[str, Any] = {"strategy": config}
        if geometry is not None:
            kwargs["geometry"] = geometry
        config = VectorConfig(**kwargs)
    return _STRATEGIES[config.strategy](config)
