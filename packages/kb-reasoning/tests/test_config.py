"""
tests/test_config.py - Engine configuration and threshold presets
"""

import pytest
from pydantic import ValidationError

from kb_reasoning import EngineConfig, Existence, ReasoningThresholds, get_thresholds


class TestThresholds:
    def test_presets(self):
        dense = get_thresholds("dense-binary")
        sparse = get_thresholds("fractal-semantic")
        assert dense.similarity == 0.5
        assert sparse.similarity == pytest.approx(0.05)
        assert sparse.confidence_decay == dense.confidence_decay

    def test_unknown_strategy(self):
        with pytest.raises(KeyError):
            get_thresholds("holographic")

    def test_band_order(self):
        with pytest.raises(ValidationError):
            ReasoningThresholds(sceptic_factor=1.5, optimist_factor=1.2)

    def test_frozen(self):
        with pytest.raises(ValidationError):
            ReasoningThresholds().similarity = 0.1


class TestEngineConfig:
    """Defaults, strategy presets and YAML loading."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.geometry == 2048
        assert config.strategy == "dense-binary"
        assert config.max_depth == 10
        assert config.min_existence == Existence.POSSIBLE
        assert config.thresholds == get_thresholds("dense-binary")

    def test_thresholds_follow_strategy(self):
        config = EngineConfig.from_dict({"vector": {"strategy": "fractal-semantic"}})
        assert config.thresholds == get_thresholds("fractal-semantic")

    def test_explicit_thresholds_win(self):
        config = EngineConfig.from_dict({"thresholds": {"similarity": 0.3}})
        assert config.thresholds.similarity == 0.3

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            EngineConfig.from_dict({"max_depth": 0})
        with pytest.raises(ValidationError):
            EngineConfig.from_dict({"vector": {"geometry": 12}})
        with pytest.raises(ValidationError):
            EngineConfig.from_dict({"min_existence": 200})

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("vector:\n  geometry: 1024\n  strategy: fractal-semantic\nmax_depth: 8\n")
        config = EngineConfig.from_yaml(path)
        assert config.geometry == 1024
        assert config.max_depth == 8
        assert config.thresholds.similarity == pytest.approx(0.05)

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("")
        assert EngineConfig.from_yaml(path) == EngineConfig()

    def test_yaml_round_trip(self, tmp_path):
        config = EngineConfig.from_dict({"vector": {"geometry": 512}, "max_iterations": 20})
        path = tmp_path / "engine.yaml"
        path.write_text(config.to_yaml())
        assert EngineConfig.from_yaml(path) == config
