"""
tests/test_diamond.py - Bounded diamond construction and queries
"""

import pytest
import torch

from hdc_core import BoundedDiamond, GeometryMismatch, from_name
from hdc_core.diamond import to_point

GEOMETRY = 8


def point(*values):
    padded = list(values) + [0] * (GEOMETRY - len(values))
    return torch.tensor(padded, dtype=torch.int32)


@pytest.fixture
def diamond():
    return BoundedDiamond("c1", "Theft", GEOMETRY)


class TestInitialise:
    """Single-point diamonds."""

    def test_new_diamond_is_empty(self, diamond):
        assert diamond.is_empty
        assert diamond.l1_radius == 0
        assert not diamond.relevance_mask.any()

    def test_initialise_from_vector(self, diamond):
        diamond.initialise_from_vector(point(10, -5))
        assert diamond.center.tolist()[:3] == [10, -5, 0]
        assert torch.equal(diamond.min_values, diamond.max_values)
        assert diamond.l1_radius == 0
        assert diamond.relevance_mask.tolist()[:3] == [True, True, False]

    def test_first_example_adopted_verbatim(self, diamond):
        """An empty diamond must not widen from its zero placeholder."""
        diamond.update_from_examples([point(60)])
        assert int(diamond.center[0]) == 60
        assert diamond.l1_radius == 0

    def test_values_clamped(self, diamond):
        diamond.initialise_from_vector(point(500, -500))
        assert diamond.center.tolist()[:2] == [127, -127]

    def test_bool_vectors_map_to_extremes(self):
        v = torch.tensor([True, False] * 4)
        assert to_point(v, GEOMETRY).tolist() == [127, -127] * 4

    def test_geometry_mismatch(self, diamond):
        with pytest.raises(GeometryMismatch):
            diamond.initialise_from_vector(torch.zeros(16, dtype=torch.int32))


class TestUpdate:
    """Incremental widening."""

    def test_widen_min_max(self, diamond):
        diamond.update_from_examples([point(10, 4), point(20, -4)])
        assert diamond.min_values.tolist()[:2] == [10, -4]
        assert diamond.max_values.tolist()[:2] == [20, 4]

    def test_center_is_midpoint(self, diamond):
        diamond.update_from_examples([point(10, 4), point(20, -4)])
        assert diamond.center.tolist()[:2] == [15, 0]

    def test_radius_is_l1_width(self, diamond):
        diamond.update_from_examples([point(10, 4), point(20, -4)])
        assert diamond.l1_radius == 10 + 8

    def test_mask_marks_varying_axes(self, diamond):
        diamond.update_from_examples([point(10, 4), point(20, -4)])
        # axis 1 has center 0 but varies, axis 2 never moves
        assert diamond.relevance_mask.tolist()[:3] == [True, True, False]

    def test_expand_single(self, diamond):
        diamond.expand(point(1))
        diamond.expand(point(5))
        assert diamond.sample_count == 2
        assert diamond.l1_radius == 4

    def test_fingerprint_follows_center(self):
        a = BoundedDiamond.from_examples("a", "A", [point(30, 30)])
        b = BoundedDiamond.from_examples("b", "B", [point(30, 30)])
        c = BoundedDiamond.from_examples("c", "C", [point(-30, -30)])
        assert a.lsh_fingerprint == b.lsh_fingerprint
        assert a.fingerprint_distance(c) > 0


class TestQueries:
    """Distance and containment."""

    def test_l1_distance(self):
        d = BoundedDiamond.from_examples("f", "Fine", [point(60)])
        assert d.l1_distance(point(60)) == 0
        assert d.l1_distance(point(50, 3)) == 13

    def test_masked_distance(self):
        d = BoundedDiamond.from_examples("f", "Fine", [point(60)])
        assert d.l1_distance(point(60, 99), mask=d.relevance_mask) == 0

    def test_contains(self, diamond):
        diamond.update_from_examples([point(10, 4), point(20, -4)])
        assert diamond.contains(point(12, 0))
        assert not diamond.contains(point(25, 0))

    def test_empty_contains_nothing(self, diamond):
        assert not diamond.contains(point())

    def test_binary_examples(self):
        v = from_name(GEOMETRY, "Dog")
        d = BoundedDiamond.from_examples("d", "Dog", [v])
        assert d.contains(v)
        assert d.relevance_mask.all()


class TestSerialization:
    """Copy and dict conversion."""

    def test_copy_is_independent(self, diamond):
        diamond.expand(point(3))
        clone = diamond.copy()
        clone.expand(point(9))
        assert diamond.l1_radius == 0
        assert clone.l1_radius == 6

    def test_from_dict_restores_envelope(self, diamond):
        diamond.update_from_examples([point(10, 4), point(20, -4)])
        restored = BoundedDiamond.from_dict(diamond.to_dict())
        assert torch.equal(restored.center, diamond.center)
        assert restored.l1_radius == diamond.l1_radius
        assert restored.sample_count == 2
