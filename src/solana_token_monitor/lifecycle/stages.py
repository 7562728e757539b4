"""Lifecycle stage resolution and per-token threshold overrides."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence

from ..config.settings import LifecycleStage, default_stages
from ..datalake.schemas import StageOverride


@dataclass(slots=True, frozen=True)
class StageThresholds:
    """Effective removal thresholds for one token on one cycle."""

    min_liquidity: float
    max_liquidity: float
    max_mcap: float


def resolve_stage(age: timedelta, stages: Sequence[LifecycleStage]) -> LifecycleStage:
    """Return the stage governing a token of the given age.

    The oldest enabled stage whose ``start_age_minutes`` the token has reached
    wins. With no enabled stages the first configured stage is returned as-is,
    even though it is disabled. When the token is younger than every enabled
    stage, the last enabled stage in configured order is returned, which is not
    necessarily the one with the smallest start age.
    """

    if not stages:
        return default_stages()[0]
    age_minutes = age.total_seconds() / 60.0
    enabled = [stage for stage in stages if stage.enabled]
    if not enabled:
        return stages[0]
    by_start_desc = sorted(enabled, key=lambda stage: stage.start_age_minutes, reverse=True)
    for stage in by_start_desc:
        if stage.start_age_minutes <= age_minutes:
            return stage
    return enabled[-1]


def merge_thresholds(stage: LifecycleStage, override: Optional[StageOverride]) -> StageThresholds:
    if override is None:
        return StageThresholds(
            min_liquidity=stage.min_liquidity,
            max_liquidity=stage.max_liquidity,
            max_mcap=stage.max_mcap,
        )
    return StageThresholds(
        min_liquidity=_prefer(override.min_liquidity, stage.min_liquidity),
        max_liquidity=_prefer(override.max_liquidity, stage.max_liquidity),
        max_mcap=_prefer(override.max_mcap, stage.max_mcap),
    )


def _prefer(value: Optional[float], fallback: float) -> float:
    return fallback if value is None else value


__all__ = ["StageThresholds", "merge_thresholds", "resolve_stage"]
