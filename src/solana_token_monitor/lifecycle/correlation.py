"""Correlation pattern and custom rule evaluation against live token metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from ..config.settings import CorrelationRule, CustomAlertRule
from ..datalake.schemas import (
    ActiveRisk,
    AlertMetric,
    AlertType,
    RiskAlert,
    RiskSeverity,
    RuleCondition,
    Token,
)
from ..utils.constants import format_number

RISK_PATTERN_MESSAGE = "Risk Pattern Detected"


def _or_zero(value: Optional[float]) -> float:
    return 0 if value is None else value


_METRIC_READERS: Dict[AlertMetric, Callable[[Token], float]] = {
    AlertMetric.TX_COUNT: lambda token: _or_zero(token.tx_count),
    AlertMetric.PRICE_CHANGE_5M: lambda token: _or_zero(token.price_change_5m),
    AlertMetric.PRICE_CHANGE_1H: lambda token: _or_zero(token.price_change_1h),
    AlertMetric.NET_VOLUME: lambda token: _or_zero(token.net_volume),
    AlertMetric.VOLUME_24H: lambda token: token.latest.volume_24h,
    AlertMetric.LIQUIDITY: lambda token: token.latest.liquidity,
    AlertMetric.VOL_LIQ_RATIO: lambda token: _or_zero(token.vol_liq_ratio),
}

_COMPARATORS: Dict[RuleCondition, Callable[[float, float], bool]] = {
    RuleCondition.GT: lambda value, threshold: value > threshold,
    RuleCondition.LT: lambda value, threshold: value < threshold,
    RuleCondition.EQ: lambda value, threshold: value == threshold,
}


def metric_value(token: Token, metric: AlertMetric) -> float:
    return _METRIC_READERS[metric](token)


def condition_met(condition: RuleCondition, value: float, threshold: float) -> bool:
    return _COMPARATORS[condition](value, threshold)


@dataclass(slots=True)
class CorrelationResult:
    """Triggered pattern descriptions plus the alerts they request."""

    triggered: List[str] = field(default_factory=list)
    alerts: List[RiskAlert] = field(default_factory=list)

    @property
    def annotation(self) -> Optional[ActiveRisk]:
        if not self.triggered:
            return None
        return ActiveRisk(
            type=AlertType.CORRELATION,
            severity=RiskSeverity.WARNING,
            message=RISK_PATTERN_MESSAGE,
            details=tuple(self.triggered),
        )


def evaluate_correlations(
    token: Token,
    rules: Sequence[CorrelationRule],
    age_minutes: float,
    now: datetime,
) -> CorrelationResult:
    result = CorrelationResult()
    for rule in rules:
        if not rule.enabled or age_minutes < rule.min_age_minutes:
            continue
        value = metric_value(token, rule.metric)
        if not condition_met(rule.condition, value, rule.value):
            continue
        rendered = format_number(value)
        result.triggered.append(f"{rule.name} ({rendered})")
        result.alerts.append(
            _alert(token, AlertType.CORRELATION, f"Pattern matched: {rule.name}", rendered, now)
        )
    return result


def evaluate_custom_rules(
    token: Token,
    rules: Sequence[CustomAlertRule],
    now: datetime,
) -> List[RiskAlert]:
    alerts: List[RiskAlert] = []
    for rule in rules:
        if not rule.enabled:
            continue
        value = metric_value(token, rule.metric)
        if condition_met(rule.condition, value, rule.value):
            alerts.append(
                _alert(token, AlertType.CUSTOM_RULE, f"Rule triggered: {rule.name}", format_number(value), now)
            )
    return alerts


def _alert(token: Token, alert_type: AlertType, message: str, value: str, now: datetime) -> RiskAlert:
    return RiskAlert(
        timestamp=now,
        token_id=token.id,
        token_symbol=token.symbol,
        token_address=token.address,
        type=alert_type,
        message=message,
        severity=RiskSeverity.WARNING,
        value=value,
    )


__all__ = [
    "CorrelationResult",
    "RISK_PATTERN_MESSAGE",
    "condition_met",
    "evaluate_correlations",
    "evaluate_custom_rules",
    "metric_value",
]
