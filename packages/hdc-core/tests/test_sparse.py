"""
tests/test_sparse.py - Sparse (fractal-semantic) strategy tests

The sparse strategy keeps determinism, commutativity and reflexive,
symmetric similarity, but only guarantees SELF_INVERSE_FLOOR when
recovering an operand from a bound pair.
"""

import pytest
import torch

from hdc_core import EmptyOperandsError, GeometryMismatch
from hdc_core.operators import random_permutation
from hdc_core.sparse import (
    SELF_INVERSE_FLOOR,
    sparse_bind,
    sparse_bind_all,
    sparse_bundle,
    sparse_empty,
    sparse_from_name,
    sparse_permute,
    sparse_random,
    sparse_similarity,
    sparse_top_k_similar,
    sparse_unpermute,
)

MAX_SIZE = 256


@pytest.fixture
def vec_a():
    return sparse_from_name(MAX_SIZE, "alpha")


@pytest.fixture
def vec_b():
    return sparse_from_name(MAX_SIZE, "beta")


class TestConstruction:
    """Base vectors."""

    def test_half_capacity(self, vec_a):
        assert len(vec_a) == MAX_SIZE // 2

    def test_deterministic(self):
        assert sparse_from_name(MAX_SIZE, "x") == sparse_from_name(MAX_SIZE, "x")

    def test_theory_separates(self):
        a = sparse_from_name(MAX_SIZE, "x", theory="t1")
        b = sparse_from_name(MAX_SIZE, "x", theory="t2")
        assert sparse_similarity(a, b) < 0.05

    def test_random_seeded(self):
        assert sparse_random(MAX_SIZE, seed=1) == sparse_random(MAX_SIZE, seed=1)

    def test_exponents_sorted(self, vec_a):
        values = vec_a.exponents.tolist()
        assert values == sorted(values)


class TestBinding:
    """Bind properties under the sparse strategy."""

    def test_commutative(self, vec_a, vec_b):
        assert sparse_bind(vec_a, vec_b) == sparse_bind(vec_b, vec_a)

    def test_capacity_respected(self, vec_a, vec_b):
        c = sparse_from_name(MAX_SIZE, "gamma")
        bound = sparse_bind_all(vec_a, vec_b, c)
        assert len(bound) <= MAX_SIZE

    def test_self_inverse_floor(self, vec_a, vec_b):
        """Recovered vector holds all of a and meets the documented floor."""
        recovered = sparse_bind(sparse_bind(vec_a, vec_b), vec_b)
        assert vec_a.to_set() <= recovered.to_set()
        assert sparse_similarity(recovered, vec_a) >= SELF_INVERSE_FLOOR

    def test_bind_all_single_is_copy(self, vec_a):
        result = sparse_bind_all(vec_a)
        assert result == vec_a
        assert result.exponents.data_ptr() != vec_a.exponents.data_ptr()

    def test_bind_all_empty_raises(self):
        with pytest.raises(EmptyOperandsError):
            sparse_bind_all()

    def test_capacity_mismatch(self, vec_a):
        with pytest.raises(GeometryMismatch):
            sparse_bind(vec_a, sparse_from_name(64, "beta"))


class TestBundling:
    """Union-based bundling."""

    def test_bundle_retains_members(self, vec_a, vec_b):
        bundled = sparse_bundle([vec_a, vec_b])
        assert sparse_similarity(bundled, vec_a) == pytest.approx(0.5)
        assert sparse_similarity(bundled, vec_b) == pytest.approx(0.5)

    def test_bundle_sparsifies(self):
        vectors = [sparse_from_name(MAX_SIZE, f"v{i}") for i in range(5)]
        assert len(sparse_bundle(vectors)) == MAX_SIZE

    def test_bundle_order_independent(self, vec_a, vec_b):
        c = sparse_from_name(MAX_SIZE, "gamma")
        assert sparse_bundle([vec_a, vec_b, c]) == sparse_bundle([c, vec_b, vec_a])

    def test_bundle_empty_raises(self):
        with pytest.raises(EmptyOperandsError):
            sparse_bundle([])


class TestSimilarity:
    """Jaccard similarity."""

    def test_reflexive(self, vec_a):
        assert sparse_similarity(vec_a, vec_a) == 1.0

    def test_symmetric(self, vec_a, vec_b):
        assert sparse_similarity(vec_a, vec_b) == sparse_similarity(vec_b, vec_a)

    def test_empty_vectors_identical(self):
        assert sparse_similarity(sparse_empty(MAX_SIZE), sparse_empty(MAX_SIZE)) == 1.0

    def test_top_k(self, vec_a, vec_b):
        results = sparse_top_k_similar(vec_a, {"b": vec_b, "a": vec_a}, k=1)
        assert results == [("a", 1.0)]


class TestPermutation:
    """Key-based role marking."""

    def test_invertible(self, vec_a):
        perm = random_permutation(MAX_SIZE, seed=3)
        assert sparse_unpermute(sparse_permute(vec_a, perm), perm) == vec_a

    def test_changes_vector(self, vec_a):
        perm = random_permutation(MAX_SIZE, seed=3)
        assert sparse_similarity(sparse_permute(vec_a, perm), vec_a) < 0.05

    def test_wrong_length(self, vec_a):
        with pytest.raises(GeometryMismatch):
            sparse_permute(vec_a, torch.arange(8))
