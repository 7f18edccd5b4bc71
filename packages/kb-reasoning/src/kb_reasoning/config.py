"""
kb_reasoning/config.py - Engine configuration and strategy thresholds

The configuration collaborator hands the core a geometry, a strategy id and
the thresholds derived from that strategy. All models are frozen: one
engine instance keeps its configuration for life.

Example:
    config = EngineConfig.from_yaml("engine.yaml")

    # engine.yaml
    # vector:
    #   geometry: 1024
    #   strategy: fractal-semantic
    # max_depth: 8
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from hdc_core.types import StrategyName, VectorConfig
from pydantic import BaseModel, Field, model_validator

from .existence import EXISTENCE_MAX, EXISTENCE_MIN, Existence

# =============================================================================
# THRESHOLDS
# =============================================================================


class ReasoningThresholds(BaseModel):
    """Strategy-dependent constants used by proof and inference."""

    similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    confidence_decay: float = Field(
        default=0.95, gt=0.0, le=1.0, description="Penalty per unification hop"
    )
    direct_match: float = Field(default=0.95, gt=0.0, le=1.0)
    transitive_decay: float = Field(
        default=0.95, gt=0.0, le=1.0, description="Confidence = decay ** chain length"
    )
    inheritance_confidence: float = Field(default=0.95, gt=0.0, le=1.0)
    composition_confidence: float = Field(default=0.9, gt=0.0, le=1.0)
    condition_confidence: float = Field(
        default=0.9, gt=0.0, le=1.0, description="Confidence of negation as failure"
    )
    default_confidence: float = Field(default=0.8, gt=0.0, le=1.0)
    strong_match: float = Field(default=0.55, ge=0.0, le=1.0)
    very_strong_match: float = Field(default=0.7, ge=0.0, le=1.0)
    sceptic_factor: float = Field(
        default=0.8, gt=0.0, description="Within sceptic * radius is TRUE_CERTAIN"
    )
    optimist_factor: float = Field(
        default=1.2, gt=0.0, description="Within optimist * radius is PLAUSIBLE"
    )

    @model_validator(mode="after")
    def check_band_order(self) -> ReasoningThresholds:
        if self.sceptic_factor > self.optimist_factor:
            raise ValueError("sceptic_factor must not exceed optimist_factor")
        return self

    model_config = {"frozen": True}


REASONING_THRESHOLDS: dict[str, ReasoningThresholds] = {
    "dense-binary": ReasoningThresholds(),
    "fractal-semantic": ReasoningThresholds(
        similarity=0.05,
        strong_match=0.03,
        very_strong_match=0.05,
    ),
}


def get_thresholds(strategy: str) -> ReasoningThresholds:
    """Return the threshold preset for a strategy id.

    Raises:
        KeyError: For unknown strategies
    """
    try:
        return REASONING_THRESHOLDS[strategy]
    except KeyError:
        raise KeyError(
            f"Unknown strategy {strategy!r}; expected one of {sorted(REASONING_THRESHOLDS)}"
        ) from None


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================


class EngineConfig(BaseModel):
    """Everything an engine instance needs at construction time."""

    vector: VectorConfig = Field(default_factory=VectorConfig)
    thresholds: ReasoningThresholds | None = Field(
        default=None, description="Defaults to the preset of vector.strategy"
    )
    max_depth: int = Field(default=10, ge=1, le=1000, description="Proof and BFS depth bound")
    max_iterations: int = Field(default=100, ge=1, le=100000, description="Forward chaining bound")
    min_existence: int = Field(
        default=int(Existence.POSSIBLE),
        ge=EXISTENCE_MIN,
        le=EXISTENCE_MAX,
        description="Weakest fact a proof may use",
    )
    use_level_optimization: bool = False
    strict_level_pruning: bool = False

    @model_validator(mode="after")
    def fill_thresholds(self) -> EngineConfig:
        if self.thresholds is None:
            # frozen model: bypass __setattr__ during validation
            object.__setattr__(self, "thresholds", get_thresholds(self.vector.strategy))
        return self

    model_config = {"frozen": True}

    @property
    def geometry(self) -> int:
        return self.vector.geometry

    @property
    def strategy(self) -> StrategyName:
        return self.vector.strategy

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        """Validate a plain mapping (e.g. parsed YAML)."""
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load configuration from a YAML file.

        Raises:
            pydantic.ValidationError: On invalid values
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(), sort_keys=False)
