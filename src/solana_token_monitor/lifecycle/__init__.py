"""Lifecycle filtering and risk-correlation engine exports."""

from .correlation import CorrelationResult, evaluate_correlations, evaluate_custom_rules, metric_value
from .cycle import CycleResult, run_cycle, sort_retained
from .removal import RemovalDecision, decide_removal
from .risk_feed import RiskAlertDeduplicator, format_notification, should_escalate
from .scanner import MarketScanner
from .stages import StageThresholds, merge_thresholds, resolve_stage

__all__ = [
    "CorrelationResult",
    "CycleResult",
    "MarketScanner",
    "RemovalDecision",
    "RiskAlertDeduplicator",
    "StageThresholds",
    "decide_removal",
    "evaluate_correlations",
    "evaluate_custom_rules",
    "format_notification",
    "merge_thresholds",
    "metric_value",
    "resolve_stage",
    "run_cycle",
    "should_escalate",
    "sort_retained",
]
