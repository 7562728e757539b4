"""Replay token snapshots from a JSON file in place of a live market feed."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union

from ..datalake.schemas import StageOverride, Token, TokenSnapshot
from ..monitoring.logger import get_logger

TimeValue = Union[str, int, float, datetime]


def parse_timestamp(value: TimeValue) -> datetime:
    """Accept ISO-8601 strings, epoch milliseconds, or datetimes; return UTC-aware."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000.0, timezone.utc)
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def snapshot_from_dict(payload: Mapping[str, Any]) -> TokenSnapshot:
    return TokenSnapshot(
        price=float(payload.get("price", 0.0)),
        liquidity=float(payload.get("liquidity", 0.0)),
        volume_24h=float(payload.get("volume_24h", 0.0)),
        market_cap=float(payload.get("market_cap", 0.0)),
        timestamp=parse_timestamp(payload["timestamp"]),
        holders=int(payload.get("holders", 0)),
        buys=int(payload.get("buys", 0)),
        sells=int(payload.get("sells", 0)),
        makers=int(payload.get("makers", 0)),
    )


def _optional_float(payload: Mapping[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    return None if value is None else float(value)


def token_from_dict(payload: Mapping[str, Any]) -> Token:
    override_payload = payload.get("strategy_override")
    override = StageOverride(**override_payload) if override_payload else None
    entry_time = payload.get("entry_time")
    tx_count = payload.get("tx_count")
    return Token(
        id=str(payload["id"]),
        symbol=str(payload.get("symbol", "?")),
        name=str(payload.get("name", "")),
        address=str(payload["address"]),
        created_at=parse_timestamp(payload["created_at"]),
        history=tuple(snapshot_from_dict(item) for item in payload.get("history", [])),
        price_change_5m=_optional_float(payload, "price_change_5m"),
        price_change_1h=_optional_float(payload, "price_change_1h"),
        price_change_24h=_optional_float(payload, "price_change_24h"),
        net_volume=_optional_float(payload, "net_volume"),
        buy_volume=float(payload.get("buy_volume", 0.0)),
        sell_volume=float(payload.get("sell_volume", 0.0)),
        fdv=float(payload.get("fdv", 0.0)),
        tx_count=None if tx_count is None else int(tx_count),
        vol_liq_ratio=_optional_float(payload, "vol_liq_ratio"),
        is_owned=bool(payload.get("is_owned", False)),
        entry_price=_optional_float(payload, "entry_price"),
        entry_time=parse_timestamp(entry_time) if entry_time is not None else None,
        strategy_override=override,
    )


class SnapshotFileFetcher:
    """Market-data source backed by a JSON document ``{"tokens": [...]}``.

    The file is re-read on every call so an external process can rewrite it
    between ticks. Each token is offered as a new pool once while it stays in
    the file.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._offered: Set[str] = set()
        self._logger = get_logger(__name__)

    def _load(self) -> Dict[str, Token]:
        with self._path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        records = payload.get("tokens", []) if isinstance(payload, dict) else payload
        tokens = [token_from_dict(item) for item in records]
        # Forget ids that left the file; a token written back later is offered again.
        self._offered &= {token.id for token in tokens}
        return {token.address: token for token in tokens}

    def refresh_tokens(self, addresses: Sequence[str], existing: Sequence[Token]) -> List[Token]:
        latest = self._load()
        by_address = {token.address: token for token in existing}
        refreshed: List[Token] = []
        for address in addresses:
            token = latest.get(address) or by_address.get(address)
            if token is not None:
                refreshed.append(token)
        return refreshed

    def fetch_new_pools(self) -> List[Token]:
        fresh = [token for token in self._load().values() if token.id not in self._offered]
        self._offered.update(token.id for token in fresh)
        if fresh:
            self._logger.info("Replaying %d new tokens from %s", len(fresh), self._path)
        return fresh


__all__ = [
    "SnapshotFileFetcher",
    "parse_timestamp",
    "snapshot_from_dict",
    "token_from_dict",
]
