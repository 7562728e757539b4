"""Alert deduplication and escalation rules for the risk feed."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Set

from ..datalake.schemas import AlertType, RiskAlert, RiskSeverity
from ..utils.constants import ALERT_DEDUP_WINDOW_SECONDS

DEDUP_WINDOW = timedelta(seconds=ALERT_DEDUP_WINDOW_SECONDS)
ESCALATED_TYPES = frozenset({AlertType.CUSTOM_RULE, AlertType.CORRELATION})


def should_escalate(alert: RiskAlert) -> bool:
    return alert.severity == RiskSeverity.CRITICAL or alert.type in ESCALATED_TYPES


def format_notification(alert: RiskAlert) -> str:
    return f"🚨 {alert.type.value}: {alert.token_symbol} \n{alert.message} \nVal: {alert.value}"


class RiskAlertDeduplicator:
    """Gate candidate alerts against the archive and the recent alert stream.

    ``deleted_token_ids`` reflects removals committed by earlier cycles only;
    a token removed later in the current cycle can still raise alerts.
    """

    def __init__(
        self,
        existing_alerts: Iterable[RiskAlert] = (),
        deleted_token_ids: Iterable[str] = (),
        *,
        window: timedelta = DEDUP_WINDOW,
    ) -> None:
        self._stream: List[RiskAlert] = list(existing_alerts)
        self._deleted: Set[str] = set(deleted_token_ids)
        self._window = window
        self._admitted: List[RiskAlert] = []
        self.suppressed = 0

    @property
    def stream(self) -> List[RiskAlert]:
        """Full alert stream, newest first."""

        return list(self._stream)

    @property
    def admitted(self) -> List[RiskAlert]:
        """Alerts admitted through this instance, newest first."""

        return list(self._admitted)

    def admit(self, candidate: RiskAlert, now: datetime) -> bool:
        if candidate.token_id in self._deleted or self._is_recent_duplicate(candidate, now):
            self.suppressed += 1
            return False
        self._stream.insert(0, candidate)
        self._admitted.insert(0, candidate)
        return True

    def _is_recent_duplicate(self, candidate: RiskAlert, now: datetime) -> bool:
        return any(
            existing.token_address == candidate.token_address
            and existing.type == candidate.type
            and now - existing.timestamp < self._window
            for existing in self._stream
        )


__all__ = [
    "DEDUP_WINDOW",
    "ESCALATED_TYPES",
    "RiskAlertDeduplicator",
    "format_notification",
    "should_escalate",
]
