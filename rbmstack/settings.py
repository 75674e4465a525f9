"""
Validated training configuration loaded from YAML.

Usage:
    from rbmstack.settings import load_config

    config = load_config()
    config.model.learning_rate
"""
from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from rbmstack.constants import BATCH_SIZE, CONFIG_FILE, OUTPUT_DIR, TILE_SIZE
from rbmstack.src.model import RbmType


class ModelConfig(BaseModel):
    """Stack architecture and optimisation settings."""

    hidden_dims: list[int] = Field(default_factory=list)
    output_dim: Optional[int] = Field(default=None, ge=1)
    slope_threshold: float = Field(default=0.05, gt=0)
    learning_rate: float = Field(default=0.1, gt=0)
    first_layer_type: RbmType = RbmType.BERNOULLI_BERNOULLI
    batch_size: int = Field(default=BATCH_SIZE, ge=1)
    pool_size: int = Field(default=TILE_SIZE, ge=1)

    @field_validator("hidden_dims")
    @classmethod
    def validate_hidden_dims(cls, v: list[int]) -> list[int]:
        if any(d < 1 for d in v):
            raise ValueError(f"hidden_dims must be positive, got {v}")
        return v

    @field_validator("first_layer_type", mode="before")
    @classmethod
    def parse_rbm_type(cls, v) -> RbmType:
        return RbmType.parse(v)


class DataConfig(BaseModel):
    path: Optional[str] = None
    synthetic_samples: int = Field(default=4096, ge=1)
    synthetic_features: int = Field(default=784, ge=1)


class PathConfig(BaseModel):
    weights_path: str = os.path.join(OUTPUT_DIR, "rbm_stack_weights.pt")
    plot_path: str = os.path.join(OUTPUT_DIR, "reconstruction_error.png")

    @field_validator("weights_path", "plot_path")
    @classmethod
    def resolve_output_path(cls, v: str) -> str:
        """Place relative out/ paths under OUTPUT_DIR."""
        if os.path.isabs(v):
            return v
        if v == "out" or v.startswith(("out/", "out" + os.sep)):
            return os.path.normpath(os.path.join(OUTPUT_DIR, os.path.relpath(v, "out")))
        return os.path.abspath(v)


class Config(BaseModel):
    model: ModelConfig = Field(default_factory=ModelConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    paths: PathConfig = Field(default_factory=PathConfig)


def load_config(path: Optional[str] = None) -> Config:
    """Load and validate a YAML configuration file."""
    if path is None:
        path = os.path.join(os.path.dirname(__file__), CONFIG_FILE)
    with open(path, 'r') as f:
        raw = yaml.safe_load(f) or {}
    return Config.model_validate(raw)
