"""
hdc_core/types.py - Pydantic type definitions for the vector engine

Geometry and strategy are fixed when an engine is built and never change
afterwards, so every model here is frozen.
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

StrategyName = Literal["dense-binary", "fractal-semantic"]

STRATEGIES: tuple[str, ...] = ("dense-binary", "fractal-semantic")

# =============================================================================
# VECTOR CONFIGURATION
# =============================================================================


class VectorConfig(BaseModel):
    """Configuration for hyperdimensional vectors."""

    geometry: int = Field(
        default=2048,
        ge=8,
        le=131072,
        description="Vector length in bits (dense) or exponent capacity (sparse)",
    )
    strategy: StrategyName = Field(
        default="dense-binary",
        description="HDC strategy identifier",
    )
    orthogonal_band: float = Field(
        default=0.55,
        gt=0.5,
        le=1.0,
        description="Dense vectors are orthogonal when 1 - band < sim < band",
    )

    @field_validator("geometry")
    @classmethod
    def validate_byte_aligned(cls, v: int) -> int:
        """Geometry must pack into whole bytes."""
        if v % 8 != 0:
            raise ValueError(f"geometry must be a multiple of 8, got {v}")
        return v

    model_config = {"frozen": True}


# =============================================================================
# DIAMOND CONFIGURATION
# =============================================================================

COMPONENT_MIN = -127
COMPONENT_MAX = 127


class DiamondConfig(BaseModel):
    """Shape constants for bounded diamonds."""

    lsh_bits: int = Field(default=64, ge=1, le=64, description="Fingerprint width")
    lsh_seed: int = Field(default=0x5EED_D1A0, ge=0, description="Hyperplane seed")

    model_config = {"frozen": True}
