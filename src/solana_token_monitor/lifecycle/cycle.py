"""One full filtering and risk-correlation pass over the tracked token set."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, List, Sequence

from ..config.settings import StrategyConfig
from ..datalake.schemas import DeletedToken, RiskAlert, SystemLogRecord, SystemLogType, Token
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS, MetricsRegistry
from .correlation import evaluate_correlations, evaluate_custom_rules
from .removal import decide_removal
from .risk_feed import RiskAlertDeduplicator, should_escalate
from .stages import merge_thresholds, resolve_stage

logger = get_logger(__name__)


@dataclass(slots=True)
class CycleResult:
    """Everything a single tick produces for the UI, archive, and notifier."""

    retained: List[Token] = field(default_factory=list)
    removed: List[DeletedToken] = field(default_factory=list)
    alerts: List[RiskAlert] = field(default_factory=list)
    escalated: List[RiskAlert] = field(default_factory=list)
    alert_stream: List[RiskAlert] = field(default_factory=list)
    logs: List[SystemLogRecord] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed)


def sort_retained(tokens: Iterable[Token]) -> List[Token]:
    """Owned tokens first in their incoming order, then newest launches first."""

    items = list(tokens)
    owned = [token for token in items if token.is_owned]
    others = sorted((token for token in items if not token.is_owned), key=lambda t: t.created_at, reverse=True)
    return owned + others


def run_cycle(
    tokens: Sequence[Token],
    strategy: StrategyConfig,
    now: datetime,
    *,
    alerts: Sequence[RiskAlert] = (),
    deleted_tokens: Sequence[DeletedToken] = (),
    metrics: MetricsRegistry = METRICS,
) -> CycleResult:
    """Classify every token as retained or removed and collect deduplicated alerts.

    ``alerts`` is the existing stream (newest first) and ``deleted_tokens`` the
    archive committed by previous cycles. Inputs are never mutated; retained
    tokens are fresh copies carrying this cycle's risk annotation.
    """

    feed = RiskAlertDeduplicator(alerts, (dead.id for dead in deleted_tokens))
    retained: List[Token] = []
    removed: List[DeletedToken] = []

    for token in tokens:
        age = now - token.created_at
        age_minutes = age.total_seconds() / 60.0

        correlations = evaluate_correlations(token, strategy.correlations, age_minutes, now)
        candidates = correlations.alerts + evaluate_custom_rules(token, strategy.custom_rules, now)
        for candidate in candidates:
            feed.admit(candidate, now)
        current = replace(token, active_risk=correlations.annotation)

        stage = resolve_stage(age, strategy.stages)
        thresholds = merge_thresholds(stage, token.strategy_override)
        decision = decide_removal(current, thresholds, strategy, age)
        if decision.remove:
            removed.append(DeletedToken(token=current, deleted_at=now, deletion_reason=decision.reason or ""))
            logger.debug("Removing %s (%s): %s", token.symbol, token.address, decision.reason)
            metrics.increment("lifecycle.removals", labels={"reason": _reason_key(decision.reason or "")})
        else:
            retained.append(current)

    result = CycleResult(
        retained=sort_retained(retained),
        removed=removed,
        alerts=feed.admitted,
        alert_stream=feed.stream,
    )
    result.escalated = [alert for alert in result.alerts if should_escalate(alert)]
    if removed:
        message = f"Removed {len(removed)} tokens via Filters"
        result.logs.append(SystemLogRecord(timestamp=now, type=SystemLogType.WARNING, message=message))

    metrics.gauge("lifecycle.tokens_retained", len(result.retained))
    metrics.increment("lifecycle.tokens_removed", len(removed))
    metrics.increment("risk.alerts_admitted", len(result.alerts))
    metrics.increment("risk.alerts_suppressed", feed.suppressed)
    metrics.increment("risk.alerts_escalated", len(result.escalated))
    return result


def _reason_key(reason: str) -> str:
    return reason.split(" (", 1)[0].strip().lower().replace(" ", "_")


__all__ = ["CycleResult", "run_cycle", "sort_retained"]
