"""
tests/test_operators.py - Algebraic Invariant Tests

These tests verify the algebraic properties the reasoning layer relies on.

Key Properties Tested:
    - Binding: commutative, associative, exactly self-inverse
    - Bundling: majority vote, ties toward 1, retrievability
    - Permutation: invertible, geometry-checked
    - Empty operand lists are rejected
"""

import pytest
import torch

from hdc_core import EmptyOperandsError, GeometryMismatch, from_name, random_vector, similarity
from hdc_core.operators import (
    bind,
    bind_all,
    bundle,
    invert_permutation,
    orthogonality_check,
    permute,
    random_permutation,
    sequence_encode,
    shift_permutation,
    solve_analogy,
    unbind,
    unpermute,
    weighted_bundle,
)

GEOMETRY = 4096

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def vec_a():
    return from_name(GEOMETRY, "test_vector_a")


@pytest.fixture
def vec_b():
    return from_name(GEOMETRY, "test_vector_b")


@pytest.fixture
def vec_c():
    return from_name(GEOMETRY, "test_vector_c")


# =============================================================================
# BINDING TESTS
# =============================================================================


class TestBinding:
    """Tests for binding operation algebraic properties."""

    def test_bind_commutativity(self, vec_a, vec_b):
        """bind(a, b) = bind(b, a)"""
        assert torch.equal(bind(vec_a, vec_b), bind(vec_b, vec_a))

    def test_bind_associativity(self, vec_a, vec_b, vec_c):
        """(a ⊗ b) ⊗ c = a ⊗ (b ⊗ c)"""
        assert torch.equal(bind(bind(vec_a, vec_b), vec_c), bind(vec_a, bind(vec_b, vec_c)))

    def test_bind_self_inverse(self, vec_a, vec_b):
        """(a ⊗ b) ⊗ b = a exactly"""
        assert torch.equal(bind(bind(vec_a, vec_b), vec_b), vec_a)

    def test_unbind_recovers_partner(self, vec_a, vec_b):
        """unbind(a ⊗ b, a) = b"""
        assert torch.equal(unbind(bind(vec_a, vec_b), vec_a), vec_b)

    def test_bind_preserves_geometry(self, vec_a, vec_b):
        assert bind(vec_a, vec_b).shape == (GEOMETRY,)

    def test_bind_does_not_mutate_inputs(self, vec_a, vec_b):
        before = vec_a.clone()
        bind(vec_a, vec_b)
        assert torch.equal(vec_a, before)

    def test_bind_result_dissimilar_to_inputs(self, vec_a, vec_b):
        """Bound pair should be quasi-orthogonal to each component."""
        ab = bind(vec_a, vec_b)
        assert abs(similarity(ab, vec_a) - 0.5) < 0.05
        assert abs(similarity(ab, vec_b) - 0.5) < 0.05

    def test_bind_similarity_preservation(self, vec_a, vec_b, vec_c):
        """sim(a ⊗ c, b ⊗ c) = sim(a, b)"""
        assert similarity(bind(vec_a, vec_c), bind(vec_b, vec_c)) == pytest.approx(
            similarity(vec_a, vec_b)
        )

    def test_bind_geometry_mismatch(self, vec_a):
        with pytest.raises(GeometryMismatch):
            bind(vec_a, from_name(1024, "short"))


class TestBindAll:
    """Tests for bind_all fold."""

    def test_bind_all_matches_fold(self, vec_a, vec_b, vec_c):
        assert torch.equal(bind_all(vec_a, vec_b, vec_c), bind(bind(vec_a, vec_b), vec_c))

    def test_bind_all_single_is_copy(self, vec_a):
        """One operand returns an independent copy, not an alias."""
        result = bind_all(vec_a)
        assert torch.equal(result, vec_a)
        result[0] = ~result[0]
        assert not torch.equal(result, vec_a)

    def test_bind_all_empty_raises(self):
        with pytest.raises(EmptyOperandsError):
            bind_all()

    def test_empty_operands_is_value_error(self):
        with pytest.raises(ValueError):
            bind_all()


# =============================================================================
# BUNDLING TESTS
# =============================================================================


class TestBundling:
    """Tests for bundling operation."""

    def test_bundle_commutativity(self, vec_a, vec_b, vec_c):
        assert torch.equal(bundle([vec_a, vec_b, vec_c]), bundle([vec_c, vec_a, vec_b]))

    def test_bundle_similar_to_components(self, vec_a, vec_b, vec_c):
        """Bundle of three should stay above 0.5 to each input."""
        bundled = bundle([vec_a, vec_b, vec_c])
        for v in (vec_a, vec_b, vec_c):
            sim = similarity(bundled, v)
            assert sim > 0.6, f"Bundle should be similar to components, got {sim}"

    def test_bundle_ties_toward_one(self):
        a = torch.tensor([True, False, True, False])
        b = torch.tensor([False, True, True, False])
        assert bundle([a, b]).tolist() == [True, True, True, False]

    def test_bundle_single_is_copy(self, vec_a):
        result = bundle([vec_a])
        assert torch.equal(result, vec_a)
        assert result.data_ptr() != vec_a.data_ptr()

    def test_bundle_empty_raises(self):
        with pytest.raises(EmptyOperandsError):
            bundle([])

    def test_bundle_geometry_mismatch(self, vec_a):
        with pytest.raises(GeometryMismatch):
            bundle([vec_a, from_name(512, "x")])

    def test_weighted_bundle_favors_heavy_input(self, vec_a, vec_b, vec_c):
        result = weighted_bundle([vec_a, vec_b, vec_c], [5.0, 1.0, 1.0])
        assert torch.equal(result, vec_a)

    def test_weighted_bundle_length_mismatch(self, vec_a, vec_b):
        with pytest.raises(ValueError):
            weighted_bundle([vec_a, vec_b], [1.0])


# =============================================================================
# PERMUTATION TESTS
# =============================================================================


class TestPermutation:
    """Tests for permutation operations."""

    def test_permute_invertible(self, vec_a):
        perm = random_permutation(GEOMETRY, seed=7)
        assert torch.equal(unpermute(permute(vec_a, perm), perm), vec_a)

    def test_invert_permutation(self, vec_a):
        perm = random_permutation(GEOMETRY, seed=11)
        assert torch.equal(permute(permute(vec_a, perm), invert_permutation(perm)), vec_a)

    def test_permute_changes_vector(self, vec_a):
        permuted = permute(vec_a, random_permutation(GEOMETRY, seed=3))
        assert abs(similarity(permuted, vec_a) - 0.5) < 0.05

    def test_shift_permutation_rolls(self):
        v = torch.tensor([True, False, False, False, False, False, False, False])
        shifted = permute(v, shift_permutation(8, 1))
        assert shifted.tolist() == [False, True, False, False, False, False, False, False]

    def test_permute_works_on_integer_points(self):
        point = torch.arange(8, dtype=torch.int32)
        perm = random_permutation(8, seed=1)
        assert torch.equal(unpermute(permute(point, perm), perm), point)

    def test_permutation_geometry_mismatch(self, vec_a):
        with pytest.raises(GeometryMismatch):
            permute(vec_a, random_permutation(128, seed=1))


# =============================================================================
# STRUCTURED ENCODING TESTS
# =============================================================================


class TestStructuredEncoding:
    """Tests for sequences and analogies."""

    def test_sequence_order_matters(self, vec_a, vec_b):
        assert not torch.equal(sequence_encode([vec_a, vec_b]), sequence_encode([vec_b, vec_a]))

    def test_solve_analogy_exact(self):
        """king - man + woman = queen when queen is built from the same offset."""
        man = from_name(GEOMETRY, "man")
        woman = from_name(GEOMETRY, "woman")
        king = from_name(GEOMETRY, "king")
        queen = bind(king, bind(man, woman))
        assert torch.equal(solve_analogy(man, woman, king), queen)

    def test_orthogonality_check_random(self):
        vectors = [random_vector(GEOMETRY, seed=i) for i in range(6)]
        stats = orthogonality_check(vectors)
        assert 0.45 < stats["mean"] < 0.55
