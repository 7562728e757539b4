"""Per-tick driver that refreshes market data and commits engine output."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from ..config.settings import ScannerConfig, StrategyConfig, get_app_config
from ..datalake.schemas import DeletedToken, RiskAlert, SystemLogType, Token
from ..ingestion.market_data import MarketDataFetcher, merge_refreshed_tokens
from ..monitoring.alerts import Notifier
from ..monitoring.logger import correlation_scope, get_logger
from ..monitoring.metrics import METRICS, MetricsRegistry
from ..monitoring.system_log import SystemLogBuffer
from ..utils.constants import utc_now
from .cycle import CycleResult, run_cycle
from .risk_feed import format_notification


class MarketScanner:
    """Holds the live token set, archive, and alert feed between ticks."""

    def __init__(
        self,
        fetcher: MarketDataFetcher,
        *,
        strategy: Optional[StrategyConfig] = None,
        config: Optional[ScannerConfig] = None,
        notifier: Optional[Notifier] = None,
        metrics: MetricsRegistry = METRICS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        app_config = get_app_config() if strategy is None or config is None else None
        self.strategy = strategy or app_config.strategy
        self._config = config or app_config.scanner
        self._fetcher = fetcher
        self._notifier = notifier
        self._metrics = metrics
        self._clock = clock
        self._logger = get_logger(__name__)
        self.scanning_enabled = self._config.scanning_enabled
        self.tokens: List[Token] = []
        self.deleted_tokens: List[DeletedToken] = []
        self.risk_alerts: List[RiskAlert] = []
        self.logs = SystemLogBuffer(self._config.max_system_logs)
        self.api_error: Optional[str] = None
        self.cycles = 0

    def update_strategy(self, strategy: StrategyConfig) -> None:
        """Swap the strategy; the next tick picks it up."""

        self.strategy = strategy

    def set_scanning(self, enabled: bool) -> None:
        if enabled == self.scanning_enabled:
            return
        self.scanning_enabled = enabled
        self.logs.add(SystemLogType.INFO, "Scanning resumed" if enabled else "Scanning paused", timestamp=self._clock())

    def tick(self) -> Optional[CycleResult]:
        """Run one refresh-and-filter pass. Returns ``None`` when nothing was committed."""

        if not self.scanning_enabled:
            return None
        self.cycles += 1
        self.api_error = None
        with correlation_scope(f"cycle-{self.cycles}"), self._metrics.timer("scanner.cycle"):
            try:
                candidates = self._collect_candidates()
            except Exception as exc:  # noqa: BLE001 - upstream failures surface as a banner or are dropped
                self._metrics.increment("scanner.refresh_failed")
                if not self.tokens:
                    self.api_error = str(exc)
                    self._logger.warning("Market refresh failed with no tracked tokens: %s", exc)
                else:
                    self._logger.debug("Market refresh failed, keeping %d tokens: %s", len(self.tokens), exc)
                return None
            result = run_cycle(
                candidates,
                self.strategy,
                self._clock(),
                alerts=self.risk_alerts,
                deleted_tokens=self.deleted_tokens,
                metrics=self._metrics,
            )
            self._commit(result)
            self._notify(result.escalated)
        return result

    def _collect_candidates(self) -> List[Token]:
        current = list(self.tokens)
        refreshed: List[Token] = []
        if current:
            refreshed = self._fetcher.refresh_tokens([token.address for token in current], current)
        new_pools = self._fetcher.fetch_new_pools()
        return merge_refreshed_tokens(current, refreshed, new_pools)

    def _commit(self, result: CycleResult) -> None:
        self.tokens = result.retained
        if result.removed:
            self.deleted_tokens = (result.removed + self.deleted_tokens)[: self._config.max_deleted_tokens]
        self.risk_alerts = result.alert_stream[: self._config.max_risk_alerts]
        self.logs.extend(result.logs)
        self._metrics.gauge("scanner.tracked_tokens", len(self.tokens))
        self._metrics.gauge("scanner.archived_tokens", len(self.deleted_tokens))

    def _notify(self, escalated: List[RiskAlert]) -> None:
        if self._notifier is None:
            return
        # Oldest first so the chat reads in generation order.
        for alert in reversed(escalated):
            self._notifier.send(format_notification(alert))


__all__ = ["MarketScanner"]
