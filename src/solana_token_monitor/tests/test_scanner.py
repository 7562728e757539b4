import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from solana_token_monitor.config.settings import AppMode, ScannerConfig, StrategyConfig, get_app_config
from solana_token_monitor.datalake.schemas import StageOverride, Token, TokenSnapshot
from solana_token_monitor.lifecycle.scanner import MarketScanner
from solana_token_monitor.main import build_scanner, run_loop
from solana_token_monitor.monitoring.metrics import MetricsRegistry

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _token(token_id: str, *, age: timedelta = timedelta(minutes=40), last_price: float = 1.0, tx_count: int = 10) -> Token:
    created_at = START - age
    return Token(
        id=token_id,
        symbol=token_id.upper(),
        name=token_id,
        address=f"addr-{token_id}",
        created_at=created_at,
        history=(
            TokenSnapshot(price=1.0, liquidity=10_000.0, volume_24h=0.0, market_cap=50_000.0, timestamp=created_at),
            TokenSnapshot(price=last_price, liquidity=10_000.0, volume_24h=0.0, market_cap=50_000.0, timestamp=START),
        ),
        tx_count=tx_count,
    )


class FakeFetcher:
    def __init__(self, new_pools: Optional[List[Token]] = None) -> None:
        self.new_pools = list(new_pools or [])
        self.refreshed: Optional[List[Token]] = None
        self.error: Optional[Exception] = None
        self.calls = 0

    def refresh_tokens(self, addresses: Sequence[str], existing: Sequence[Token]) -> List[Token]:
        self.calls += 1
        if self.error:
            raise self.error
        if self.refreshed is not None:
            return list(self.refreshed)
        return list(existing)

    def fetch_new_pools(self) -> List[Token]:
        self.calls += 1
        if self.error:
            raise self.error
        pools, self.new_pools = self.new_pools, []
        return pools


class FakeNotifier:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def send(self, message: str) -> bool:
        self.messages.append(message)
        return True


class Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def _scanner(fetcher: FakeFetcher, *, notifier: Optional[FakeNotifier] = None, clock: Optional[Clock] = None, **config) -> MarketScanner:
    return MarketScanner(
        fetcher,
        strategy=StrategyConfig(),
        config=ScannerConfig(**config),
        notifier=notifier,
        metrics=MetricsRegistry(),
        clock=clock or Clock(START),
    )


def test_first_tick_tracks_new_pools() -> None:
    fetcher = FakeFetcher([_token("a"), _token("b", age=timedelta(minutes=5))])
    scanner = _scanner(fetcher)
    result = scanner.tick()
    assert result is not None
    assert [token.id for token in scanner.tokens] == ["b", "a"]
    assert scanner.api_error is None


def test_refresh_preserves_user_state() -> None:
    fetcher = FakeFetcher([_token("a")])
    scanner = _scanner(fetcher)
    scanner.tick()
    scanner.tokens = [replace(scanner.tokens[0], is_owned=True, entry_price=0.9, strategy_override=StageOverride(min_liquidity=0))]
    fetcher.refreshed = [_token("a", last_price=0.01)]
    scanner.tick()
    assert len(scanner.tokens) == 1
    token = scanner.tokens[0]
    assert token.is_owned
    assert token.entry_price == 0.9
    assert token.strategy_override == StageOverride(min_liquidity=0)
    assert token.latest.price == 0.01
    assert scanner.deleted_tokens == []


def test_upstream_failure_without_tokens_sets_banner() -> None:
    fetcher = FakeFetcher()
    fetcher.error = RuntimeError("rate limited")
    scanner = _scanner(fetcher)
    assert scanner.tick() is None
    assert scanner.api_error == "rate limited"


def test_upstream_failure_with_tokens_is_discarded() -> None:
    fetcher = FakeFetcher([_token("a")])
    scanner = _scanner(fetcher)
    scanner.tick()
    before = list(scanner.tokens)
    fetcher.error = RuntimeError("timeout")
    assert scanner.tick() is None
    assert scanner.api_error is None
    assert scanner.tokens == before


def test_paused_scanner_does_nothing() -> None:
    fetcher = FakeFetcher([_token("a")])
    scanner = _scanner(fetcher, scanning_enabled=False)
    assert scanner.tick() is None
    assert fetcher.calls == 0
    scanner.set_scanning(True)
    assert scanner.tick() is not None
    assert [record.message for record in scanner.logs.records()] == ["Scanning resumed"]


def test_removed_tokens_are_archived_newest_first_and_capped() -> None:
    fetcher = FakeFetcher([_token("a", last_price=0.05)])
    scanner = _scanner(fetcher, max_deleted_tokens=1)
    scanner.tick()
    assert [dead.id for dead in scanner.deleted_tokens] == ["a"]
    fetcher.new_pools = [_token("b", last_price=0.05)]
    scanner.tick()
    assert [dead.id for dead in scanner.deleted_tokens] == ["b"]
    messages = [record.message for record in scanner.logs.records()]
    assert messages == ["Removed 1 tokens via Filters", "Removed 1 tokens via Filters"]


def test_escalated_alerts_reach_notifier_once_per_window() -> None:
    clock = Clock(START)
    notifier = FakeNotifier()
    fetcher = FakeFetcher([_token("z", tx_count=0)])
    scanner = _scanner(fetcher, notifier=notifier, clock=clock)
    scanner.tick()
    assert notifier.messages == ["🚨 CORRELATION: Z \nPattern matched: Zombie Coin \nVal: 0"]

    clock.now = START + timedelta(minutes=1)
    scanner.tick()
    assert len(notifier.messages) == 1
    assert len(scanner.risk_alerts) == 1

    clock.now = START + timedelta(minutes=12)
    scanner.tick()
    assert len(notifier.messages) == 2
    assert len(scanner.risk_alerts) == 2


def test_strategy_update_applies_next_tick() -> None:
    fetcher = FakeFetcher([_token("a")])
    scanner = _scanner(fetcher)
    scanner.tick()
    scanner.update_strategy(StrategyConfig(tracking_days=0, tracking_hours=0.5))
    scanner.tick()
    assert scanner.tokens == []
    assert scanner.deleted_tokens[0].deletion_reason == "Expired (> 0d 0.5h)"


def test_run_loop_stops_after_max_cycles() -> None:
    fetcher = FakeFetcher([_token("a")])
    scanner = _scanner(fetcher)
    asyncio.run(run_loop(scanner, 0, max_cycles=3))
    assert scanner.cycles == 3
    assert [token.id for token in scanner.tokens] == ["a"]


def test_dry_run_scanner_leaves_cached_config_untouched(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("APP_CONFIG_FILE", raising=False)
    monkeypatch.setenv("MONITOR_MODE", "live")
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "app.toml").write_text('[live.mode]\nactive = "live"\n')
    get_app_config.cache_clear()
    root = logging.getLogger()
    previous_handlers, previous_level = root.handlers[:], root.level
    try:
        scanner = build_scanner(tmp_path / "tokens.json", dry_run=True)
        assert scanner._notifier._mode == AppMode.DRY_RUN
        assert get_app_config().mode.active == AppMode.LIVE
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
        get_app_config.cache_clear()
