"""Test configuration builders."""

from __future__ import annotations

from pixelpipe.models.config import BucketsConfig, Config

ORIGIN = "origin"
DERIVED = "derived"


def make_config(**overrides: object) -> Config:
    """Config with test buckets; keyword overrides replace top-level sections."""
    data: dict[str, object] = {"buckets": BucketsConfig(origin=ORIGIN, derived=DERIVED)}
    data.update(overrides)
    return Config.model_validate(data)
