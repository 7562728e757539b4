"""Data models shared by ingestion, the lifecycle engine, and monitoring."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class AlertMetric(str, Enum):
    """Live token metrics a correlation or custom rule can test."""

    PRICE_CHANGE_5M = "PRICE_CHANGE_5M"
    PRICE_CHANGE_1H = "PRICE_CHANGE_1H"
    LIQUIDITY = "LIQUIDITY"
    VOLUME_24H = "VOLUME_24H"
    NET_VOLUME = "NET_VOLUME"
    VOL_LIQ_RATIO = "VOL_LIQ_RATIO"
    TX_COUNT = "TX_COUNT"


class RuleCondition(str, Enum):
    """Comparison applied between a metric value and a rule threshold."""

    GT = "GT"
    LT = "LT"
    EQ = "EQ"


class AlertType(str, Enum):
    LOW_LIQUIDITY = "LOW_LIQUIDITY"
    RUG_PULL = "RUG_PULL"
    SCAM_RISK = "SCAM_RISK"
    HIGH_VOLATILITY = "HIGH_VOLATILITY"
    WHALE_RISK = "WHALE_RISK"
    CUSTOM_RULE = "CUSTOM_RULE"
    STAGE_FAIL = "STAGE_FAIL"
    CORRELATION = "CORRELATION"


class RiskSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class SystemLogType(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _short_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass(slots=True, frozen=True)
class TokenSnapshot:
    """Point-in-time market metrics for a token."""

    price: float
    liquidity: float
    volume_24h: float
    market_cap: float
    timestamp: datetime
    holders: int = 0
    buys: int = 0
    sells: int = 0
    makers: int = 0


@dataclass(slots=True, frozen=True)
class StageOverride:
    """Per-token partial replacement for lifecycle stage thresholds.

    ``None`` means "use the stage value"; any other value, including ``0``,
    takes precedence.
    """

    min_liquidity: Optional[float] = None
    max_liquidity: Optional[float] = None
    min_mcap: Optional[float] = None
    max_mcap: Optional[float] = None
    min_holders: Optional[int] = None
    max_holders: Optional[int] = None
    max_top10_holding: Optional[float] = None


@dataclass(slots=True, frozen=True)
class ActiveRisk:
    """Risk annotation recomputed for a token on every cycle."""

    type: AlertType
    severity: RiskSeverity
    message: str
    details: Tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class Token:
    """A freshly launched token under observation."""

    id: str
    symbol: str
    name: str
    address: str
    created_at: datetime
    history: Tuple[TokenSnapshot, ...]
    price_change_5m: Optional[float] = None
    price_change_1h: Optional[float] = None
    price_change_24h: Optional[float] = None
    net_volume: Optional[float] = None
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    fdv: float = 0.0
    tx_count: Optional[int] = None
    vol_liq_ratio: Optional[float] = None
    is_owned: bool = False
    entry_price: Optional[float] = None
    entry_time: Optional[datetime] = None
    strategy_override: Optional[StageOverride] = None
    active_risk: Optional[ActiveRisk] = None

    def __post_init__(self) -> None:
        if not self.history:
            raise ValueError(f"Token {self.id} must carry at least one metric snapshot")
        if not isinstance(self.history, tuple):
            object.__setattr__(self, "history", tuple(self.history))

    @property
    def first_snapshot(self) -> TokenSnapshot:
        return self.history[0]

    @property
    def latest(self) -> TokenSnapshot:
        return self.history[-1]


@dataclass(slots=True, frozen=True)
class RiskAlert:
    """Risk event raised against a tracked token."""

    timestamp: datetime
    token_id: str
    token_symbol: str
    token_address: str
    type: AlertType
    message: str
    severity: RiskSeverity
    value: str
    id: str = field(default_factory=_short_id)


@dataclass(slots=True, frozen=True)
class DeletedToken:
    """Token retired from observation, frozen at removal time."""

    token: Token
    deleted_at: datetime
    deletion_reason: str

    @property
    def id(self) -> str:
        return self.token.id


@dataclass(slots=True, frozen=True)
class SystemLogRecord:
    """Operator-facing log line surfaced next to the token feed."""

    timestamp: datetime
    type: SystemLogType
    message: str
    id: str = field(default_factory=_short_id)


__all__ = [
    "ActiveRisk",
    "AlertMetric",
    "AlertType",
    "DeletedToken",
    "RiskAlert",
    "RiskSeverity",
    "RuleCondition",
    "StageOverride",
    "SystemLogRecord",
    "SystemLogType",
    "Token",
    "TokenSnapshot",
]
