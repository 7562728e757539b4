from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from solana_token_monitor.config.settings import AppConfig, AppMode, LifecycleStage, StrategyConfig, get_app_config
from solana_token_monitor.datalake.schemas import AlertMetric, RuleCondition

CONFIG_TOML = """
[default.mode]
active = "dry_run"

[default.scanner]
interval_seconds = 30

[default.strategy]
tracking_days = 2
tracking_hours = 6

[[default.strategy.stages]]
id = "only"
name = "Only"
start_age_minutes = 0
min_liquidity = 750
max_liquidity = 100000
max_mcap = 250000

[[default.strategy.custom_rules]]
id = "dump"
name = "Dump"
metric = "PRICE_CHANGE_5M"
condition = "LT"
value = -20

[live.mode]
active = "live"

[live.telegram]
enabled = true
"""


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    for name in ("APP_CONFIG_FILE", "MONITOR_MODE", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "SCANNER__INTERVAL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    get_app_config.cache_clear()
    yield
    get_app_config.cache_clear()


def _write_config(tmp_path: Path) -> Path:
    path = tmp_path / "config" / "app.toml"
    path.parent.mkdir()
    path.write_text(CONFIG_TOML)
    return path


def test_defaults_without_config_file() -> None:
    config = AppConfig()
    assert config.mode.active == AppMode.DRY_RUN
    assert config.scanner.interval_seconds == 60
    assert [stage.start_age_minutes for stage in config.strategy.stages] == [0, 60, 1440]
    assert config.strategy.correlations[0].name == "Zombie Coin"
    assert config.strategy.max_tracking_age() == timedelta(days=7)
    assert config.strategy.tracking_label() == "7d 0h"


def test_default_profile_loaded_from_toml(tmp_path: Path) -> None:
    path = _write_config(tmp_path)
    config = AppConfig()
    assert config.mode.config_file.resolve() == path.resolve()
    assert config.scanner.interval_seconds == 30
    assert config.strategy.tracking_label() == "2d 6h"
    assert [stage.id for stage in config.strategy.stages] == ["only"]
    assert config.strategy.stages[0].min_liquidity == 750
    rule = config.strategy.custom_rules[0]
    assert rule.metric == AlertMetric.PRICE_CHANGE_5M
    assert rule.condition == RuleCondition.LT
    assert config.telegram.enabled is False


def test_mode_env_selects_live_profile(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_config(tmp_path)
    monkeypatch.setenv("MONITOR_MODE", "live")
    config = AppConfig()
    assert config.mode.active == AppMode.LIVE
    assert config.telegram.enabled is True
    assert config.scanner.interval_seconds == 30


def test_environment_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_config(tmp_path)
    monkeypatch.setenv("SCANNER__INTERVAL_SECONDS", "5")
    assert AppConfig().scanner.interval_seconds == 5


def test_telegram_credentials_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", " 123:abc ")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-10042")
    config = AppConfig()
    assert config.telegram.bot_token == "123:abc"
    assert config.telegram.chat_id == "-10042"


def test_get_app_config_is_cached() -> None:
    assert get_app_config() is get_app_config()


def test_strategy_is_immutable() -> None:
    strategy = StrategyConfig()
    with pytest.raises(ValidationError):
        strategy.tracking_days = 1


def test_stage_requires_removal_thresholds() -> None:
    with pytest.raises(ValidationError) as excinfo:
        LifecycleStage(id="only", min_liquidity=500)
    missing = {error["loc"][0] for error in excinfo.value.errors()}
    assert missing == {"max_liquidity", "max_mcap"}


def test_partial_stage_in_toml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config" / "app.toml"
    path.parent.mkdir()
    path.write_text('[[default.strategy.stages]]\nid = "only"\nmin_liquidity = 500\n')
    with pytest.raises(ValidationError):
        AppConfig()
