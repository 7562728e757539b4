"""Monitoring package exports and helpers."""

from __future__ import annotations

from typing import Optional

import requests

from ..config.settings import AppConfig, get_app_config
from .alerts import Notifier, TelegramNotifier
from .logger import configure_logging
from .metrics import METRICS


def bootstrap_observability(
    config: Optional[AppConfig] = None,
    *,
    session: Optional[requests.Session] = None,
) -> TelegramNotifier:
    """Configure logging and build the notifier for escalated alerts."""

    app_config = config or get_app_config()
    configure_logging(app_config.monitoring)
    return TelegramNotifier(app_config.telegram, mode=app_config.mode.active, session=session)


__all__ = ["bootstrap_observability", "METRICS", "Notifier", "TelegramNotifier"]
