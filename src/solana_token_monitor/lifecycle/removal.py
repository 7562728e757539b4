"""Ordered removal checks deciding whether a token leaves observation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ..config.settings import StrategyConfig
from ..datalake.schemas import Token
from ..utils.constants import RUG_PULL_DRAWDOWN, format_number
from .stages import StageThresholds

RUG_PULL_REASON = "Rug Pull (-90%)"


@dataclass(slots=True, frozen=True)
class RemovalDecision:
    remove: bool
    reason: Optional[str] = None


KEEP = RemovalDecision(remove=False)


def removal_reason(
    token: Token,
    thresholds: StageThresholds,
    strategy: StrategyConfig,
    age: timedelta,
) -> Optional[str]:
    """Return the first matching removal cause, ignoring ownership."""

    latest = token.latest
    first = token.first_snapshot
    if age > strategy.max_tracking_age():
        return f"Expired (> {strategy.tracking_label()})"
    if latest.liquidity < thresholds.min_liquidity:
        return f"Liq < Stage Minimum (${format_number(thresholds.min_liquidity)})"
    if latest.market_cap > thresholds.max_mcap:
        return f"MCAP > Stage Max (${format_number(thresholds.max_mcap)})"
    if first.price > 0 and (latest.price - first.price) / first.price < RUG_PULL_DRAWDOWN:
        return RUG_PULL_REASON
    return None


def decide_removal(
    token: Token,
    thresholds: StageThresholds,
    strategy: StrategyConfig,
    age: timedelta,
) -> RemovalDecision:
    # Owned tokens are exempt whatever the computed cause.
    if token.is_owned:
        return KEEP
    reason = removal_reason(token, thresholds, strategy, age)
    if reason is None:
        return KEEP
    return RemovalDecision(remove=True, reason=reason)


__all__ = ["KEEP", "RUG_PULL_REASON", "RemovalDecision", "decide_removal", "removal_reason"]
