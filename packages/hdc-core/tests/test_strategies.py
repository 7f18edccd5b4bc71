"""
tests/test_strategies.py - Strategy facade and relation permuter tests
"""

import pytest
import torch
from pydantic import ValidationError

from hdc_core import GeometryMismatch, RelationPermuter, VectorConfig
from hdc_core.strategies import DenseBinaryStrategy, FractalSemanticStrategy, get_strategy


class TestVectorConfig:
    """Configuration validation."""

    def test_defaults(self):
        config = VectorConfig()
        assert config.geometry == 2048
        assert config.strategy == "dense-binary"

    def test_geometry_must_be_byte_aligned(self):
        with pytest.raises(ValidationError):
            VectorConfig(geometry=1001)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            VectorConfig(strategy="holographic")

    def test_frozen(self):
        config = VectorConfig()
        with pytest.raises(ValidationError):
            config.geometry = 512


class TestGetStrategy:
    """Factory."""

    def test_by_name(self):
        strategy = get_strategy("fractal-semantic", geometry=128)
        assert isinstance(strategy, FractalSemanticStrategy)
        assert strategy.geometry == 128

    def test_by_config(self):
        strategy = get_strategy(VectorConfig(geometry=512))
        assert isinstance(strategy, DenseBinaryStrategy)
        assert strategy.geometry == 512

    def test_default(self):
        assert get_strategy().geometry == 2048


@pytest.mark.parametrize("name", ["dense-binary", "fractal-semantic"])
class TestSharedContract:
    """Properties both strategies must satisfy."""

    def test_deterministic_names(self, name):
        strategy = get_strategy(name, geometry=256)
        a1 = strategy.from_name("Dog")
        a2 = strategy.from_name("Dog")
        assert strategy.similarity(a1, a2) == 1.0

    def test_commutative_bind(self, name):
        strategy = get_strategy(name, geometry=256)
        a, b = strategy.from_name("a"), strategy.from_name("b")
        assert strategy.similarity(strategy.bind(a, b), strategy.bind(b, a)) == 1.0

    def test_symmetric_similarity(self, name):
        strategy = get_strategy(name, geometry=256)
        a, b = strategy.from_name("a"), strategy.from_name("b")
        assert strategy.similarity(a, b) == strategy.similarity(b, a)

    def test_unrelated_names_orthogonal(self, name):
        strategy = get_strategy(name, geometry=2048)
        assert strategy.is_orthogonal(strategy.from_name("left"), strategy.from_name("right"))

    def test_position_permutation_round_trip(self, name):
        strategy = get_strategy(name, geometry=256)
        v = strategy.from_name("x")
        perm = strategy.position_permutation(2)
        assert strategy.similarity(strategy.unpermute(strategy.permute(v, perm), perm), v) == 1.0

    def test_foreign_geometry_rejected(self, name):
        strategy = get_strategy(name, geometry=256)
        other = get_strategy(name, geometry=512)
        with pytest.raises(GeometryMismatch):
            strategy.bind(strategy.from_name("a"), other.from_name("a"))


class TestRelationPermuter:
    """Per-relation permutation registry."""

    def test_register_is_deterministic(self):
        p1 = RelationPermuter(256).register("CAUSES")
        p2 = RelationPermuter(256).register("CAUSES")
        assert torch.equal(p1, p2)

    def test_relations_differ(self):
        permuter = RelationPermuter(256)
        assert not torch.equal(permuter.register("CAUSES"), permuter.register("PREVENTS"))

    def test_unregistered_raises_key_error(self):
        with pytest.raises(KeyError):
            RelationPermuter(256).get("CAUSES")

    def test_explicit_permutation_validated(self):
        permuter = RelationPermuter(8)
        with pytest.raises(ValueError):
            permuter.register("BAD", torch.zeros(8, dtype=torch.int64))
        with pytest.raises(ValueError):
            permuter.register("SHORT", torch.arange(4))

    def test_has_and_list(self):
        permuter = RelationPermuter(16)
        permuter.register("CAUSES")
        assert permuter.has("CAUSES")
        assert permuter.relations() == ["CAUSES"]
        assert len(permuter) == 1
