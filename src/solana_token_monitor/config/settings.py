"""Configuration management for the token lifecycle monitor."""

from __future__ import annotations

import os
import tomllib
from datetime import timedelta
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, cast

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..datalake.schemas import AlertMetric, RuleCondition
from ..utils.constants import format_number

DEFAULT_CONFIG_FILE = Path("config/app.toml")
CONFIG_FILE_ENV_VAR = "APP_CONFIG_FILE"
MODE_ENV_VAR = "MONITOR_MODE"


class AppMode(str, Enum):
    """Supported runtime modes."""

    DRY_RUN = "dry_run"
    LIVE = "live"


def _resolve_config_path() -> Path:
    env_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        return candidate
    return Path.cwd() / DEFAULT_CONFIG_FILE


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(cast(Dict[str, Any], result[key]), value)
        else:
            result[key] = value
    return result


def _select_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data:
        return {}
    base_section = cast(Dict[str, Any], data.get("default", {}))
    requested_mode = os.getenv(MODE_ENV_VAR)
    if not requested_mode:
        mode_section = base_section.get("mode")
        if isinstance(mode_section, dict):
            requested_mode = cast(str, mode_section.get("active", AppMode.DRY_RUN.value))
        elif isinstance(mode_section, str):
            requested_mode = mode_section
    requested_mode = (requested_mode or AppMode.DRY_RUN.value).lower()

    if requested_mode in data and requested_mode != "default":
        return _deep_merge(base_section, cast(Dict[str, Any], data[requested_mode]))
    if base_section:
        return base_section
    return data


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.exists():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    merged = _select_profile(payload)
    if not isinstance(merged, dict):
        return {}, path
    merged = dict(merged)
    mode_section = merged.get("mode")
    if isinstance(mode_section, dict):
        mode_section = dict(mode_section)
        mode_section.setdefault("config_file", str(path))
        merged["mode"] = mode_section
    else:
        merged["mode"] = {"config_file": str(path)}
    return merged, path


class LifecycleStage(BaseModel):
    """Age-gated threshold bundle applied to tokens once they reach ``start_age_minutes``."""

    model_config = ConfigDict(frozen=True)

    id: str
    enabled: bool = True
    name: str = ""
    description: str = ""
    start_age_minutes: float = Field(default=0.0, ge=0.0)
    # Removal thresholds are required; there is no implicit ceiling.
    min_liquidity: float = Field(ge=0.0)
    max_liquidity: float = Field(ge=0.0)
    min_mcap: float = Field(default=0.0, ge=0.0)
    max_mcap: float = Field(ge=0.0)
    min_holders: int = Field(default=0, ge=0)
    max_holders: int = Field(default=0, ge=0)
    max_top10_holding: float = Field(default=100.0, ge=0.0, le=100.0)


class CorrelationRule(BaseModel):
    """Pattern test against live metrics. Annotates risk, never deletes."""

    model_config = ConfigDict(frozen=True)

    id: str
    enabled: bool = True
    name: str
    description: str = ""
    metric: AlertMetric
    condition: RuleCondition
    value: float
    min_age_minutes: float = Field(default=0.0, ge=0.0)


class CustomAlertRule(BaseModel):
    """User-defined alert trigger evaluated on every token regardless of age."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    metric: AlertMetric
    condition: RuleCondition
    value: float
    enabled: bool = True

    @field_validator("condition")
    @classmethod
    def _directional_only(cls, value: RuleCondition) -> RuleCondition:
        if value == RuleCondition.EQ:
            raise ValueError("custom alert rules support GT and LT conditions only")
        return value


def default_stages() -> List[LifecycleStage]:
    return [
        LifecycleStage(
            id="stage_launch",
            name="Launch Zone (0-1h)",
            description="High risk tolerance.",
            start_age_minutes=0,
            min_liquidity=500,
            max_liquidity=1_000_000,
            min_mcap=0,
            max_mcap=10_000_000,
            min_holders=0,
            max_holders=100_000,
            max_top10_holding=100,
        ),
        LifecycleStage(
            id="stage_growth",
            name="Growth Zone (1h-24h)",
            description="Require higher liquidity.",
            start_age_minutes=60,
            min_liquidity=2_000,
            max_liquidity=5_000_000,
            min_mcap=5_000,
            max_mcap=50_000_000,
            min_holders=10,
            max_holders=100_000,
            max_top10_holding=95,
        ),
        LifecycleStage(
            id="stage_mature",
            name="Mature Zone (>24h)",
            description="Established tokens.",
            start_age_minutes=1_440,
            min_liquidity=5_000,
            max_liquidity=10_000_000,
            min_mcap=10_000,
            max_mcap=100_000_000,
            min_holders=50,
            max_holders=100_000,
            max_top10_holding=80,
        ),
    ]


def default_correlations() -> List[CorrelationRule]:
    return [
        CorrelationRule(
            id="zombie_1",
            name="Zombie Coin",
            description="No trades in 5m but old enough",
            metric=AlertMetric.TX_COUNT,
            condition=RuleCondition.EQ,
            value=0,
            min_age_minutes=30,
        )
    ]


class StrategyConfig(BaseModel):
    """Tracking window, lifecycle stages, and risk rules. Immutable per cycle."""

    model_config = ConfigDict(frozen=True)

    min_ai_confidence: float = Field(default=75.0, ge=0.0, le=100.0)
    tracking_days: float = Field(default=7.0, ge=0.0)
    tracking_hours: float = Field(default=0.0, ge=0.0)
    # Kept in user-entry order; evaluation sorts a copy.
    stages: List[LifecycleStage] = Field(default_factory=default_stages)
    correlations: List[CorrelationRule] = Field(default_factory=default_correlations)
    custom_rules: List[CustomAlertRule] = Field(default_factory=list)

    def max_tracking_age(self) -> timedelta:
        return timedelta(days=self.tracking_days, hours=self.tracking_hours)

    def tracking_label(self) -> str:
        return f"{format_number(self.tracking_days)}d {format_number(self.tracking_hours)}h"


class ModeConfig(BaseModel):
    """Runtime mode and operational toggles."""

    active: AppMode = Field(default=AppMode.DRY_RUN)
    config_file: Optional[Path] = None


class ScannerConfig(BaseModel):
    """Polling cadence and retention caps for the live feeds."""

    interval_seconds: float = Field(default=60.0, ge=1.0)
    scanning_enabled: bool = True
    max_system_logs: int = Field(default=200, ge=1)
    max_deleted_tokens: int = Field(default=1_000, ge=1)
    max_risk_alerts: int = Field(default=500, ge=1)
    snapshot_path: Optional[Path] = None


class TelegramConfig(BaseModel):
    """Chat notifier used for escalated risk alerts."""

    enabled: bool = False
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_base_url: AnyHttpUrl = Field(default="https://api.telegram.org")
    parse_mode: str = Field(default="Markdown")
    request_timeout: float = Field(default=5.0, ge=0.5, le=60.0)


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = "json"

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.strip().upper()


class AppConfig(BaseSettings):
    """Aggregated application configuration."""

    mode: ModeConfig = Field(default_factory=ModeConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def file_settings(_: Optional[BaseSettings] = None) -> Dict[str, Any]:
            payload, _ = _load_toml_config()
            return payload

        # Environment variables win over the static config file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _sync_telegram_credentials(self) -> "AppConfig":
        bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
        chat_id = os.getenv("TELEGRAM_CHAT_ID")
        if bot_token and not self.telegram.bot_token:
            self.telegram.bot_token = bot_token.strip()
        if chat_id and not self.telegram.chat_id:
            self.telegram.chat_id = chat_id.strip()
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Create a cached application configuration object."""

    return AppConfig()


__all__ = [
    "AppConfig",
    "AppMode",
    "CorrelationRule",
    "CustomAlertRule",
    "LifecycleStage",
    "ModeConfig",
    "MonitoringConfig",
    "ScannerConfig",
    "StrategyConfig",
    "TelegramConfig",
    "default_correlations",
    "default_stages",
    "get_app_config",
]
