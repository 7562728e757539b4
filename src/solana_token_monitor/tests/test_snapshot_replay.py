import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from solana_token_monitor.datalake.schemas import StageOverride
from solana_token_monitor.ingestion.snapshot_replay import (
    SnapshotFileFetcher,
    parse_timestamp,
    token_from_dict,
)


def _record(token_id: str, price: float = 1.0) -> dict:
    return {
        "id": token_id,
        "symbol": token_id.upper(),
        "name": token_id,
        "address": f"addr-{token_id}",
        "created_at": "2024-05-01T10:00:00Z",
        "tx_count": 4,
        "history": [
            {"price": 1.0, "liquidity": 10000, "volume_24h": 10, "market_cap": 50000, "timestamp": 1714557600000},
            {"price": price, "liquidity": 9000, "volume_24h": 20, "market_cap": 45000, "timestamp": "2024-05-01T12:00:00+00:00"},
        ],
    }


def test_parse_timestamp_accepts_epoch_ms_and_iso() -> None:
    expected = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp(1714557600000) == expected
    assert parse_timestamp("2024-05-01T10:00:00Z") == expected
    assert parse_timestamp("2024-05-01T10:00:00") == expected


def test_token_from_dict_reads_override_and_history() -> None:
    payload = _record("a")
    payload["strategy_override"] = {"min_liquidity": 0}
    payload["is_owned"] = True
    token = token_from_dict(payload)
    assert token.strategy_override == StageOverride(min_liquidity=0)
    assert token.is_owned
    assert token.first_snapshot.price == 1.0
    assert token.latest.liquidity == 9000.0
    assert token.price_change_5m is None


def test_token_without_history_is_rejected() -> None:
    payload = _record("a")
    payload["history"] = []
    with pytest.raises(ValueError):
        token_from_dict(payload)


def test_fetcher_offers_each_token_once_and_refreshes(tmp_path: Path) -> None:
    path = tmp_path / "tokens.json"
    path.write_text(json.dumps({"tokens": [_record("a"), _record("b")]}))
    fetcher = SnapshotFileFetcher(path)

    pools = fetcher.fetch_new_pools()
    assert sorted(token.id for token in pools) == ["a", "b"]
    assert fetcher.fetch_new_pools() == []

    path.write_text(json.dumps({"tokens": [_record("a", price=0.5)]}))
    refreshed = fetcher.refresh_tokens(["addr-a", "addr-b"], pools)
    by_id = {token.id: token for token in refreshed}
    assert by_id["a"].latest.price == 0.5
    assert by_id["b"].latest.price == 1.0


def test_fetcher_forgets_tokens_dropped_from_file(tmp_path: Path) -> None:
    path = tmp_path / "tokens.json"
    path.write_text(json.dumps({"tokens": [_record("a"), _record("b")]}))
    fetcher = SnapshotFileFetcher(path)
    fetcher.fetch_new_pools()

    path.write_text(json.dumps({"tokens": [_record("b")]}))
    assert fetcher.fetch_new_pools() == []
    assert fetcher._offered == {"b"}

    path.write_text(json.dumps({"tokens": [_record("a"), _record("b")]}))
    assert [token.id for token in fetcher.fetch_new_pools()] == ["a"]
