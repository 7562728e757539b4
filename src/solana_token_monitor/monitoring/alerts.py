"""Outbound chat notifications for escalated risk alerts."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import requests

from ..config.settings import AppMode, TelegramConfig, get_app_config
from .logger import get_logger
from .metrics import METRICS


class Notifier(Protocol):
    """Anything that can deliver a preformatted text message."""

    def send(self, message: str) -> bool:
        ...


class TelegramNotifier:
    """Posts messages to a Telegram chat via the Bot API.

    Delivery is best effort: failures are logged and reported through the
    return value, never raised to the scan loop.
    """

    def __init__(
        self,
        config: Optional[TelegramConfig] = None,
        *,
        mode: Optional[AppMode] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        app_config = get_app_config() if config is None or mode is None else None
        self._config = config or app_config.telegram
        self._mode = mode or app_config.mode.active
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    @property
    def configured(self) -> bool:
        return bool(self._config.enabled and self._config.bot_token and self._config.chat_id)

    def send(self, message: str) -> bool:
        if not self.configured:
            return False
        if self._mode == AppMode.DRY_RUN:
            self._logger.info("Dry run, notification not sent: %s", message)
            METRICS.increment("notifier.dry_run")
            return False
        url = f"{str(self._config.api_base_url).rstrip('/')}/bot{self._config.bot_token}/sendMessage"
        payload: Dict[str, Any] = {
            "chat_id": self._config.chat_id,
            "text": message,
            "parse_mode": self._config.parse_mode,
        }
        try:
            response = self._session.post(url, json=payload, timeout=self._config.request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            self._logger.warning("Failed to send Telegram notification: %s", exc)
            METRICS.increment("notifier.failed")
            return False
        METRICS.increment("notifier.sent")
        return True


__all__ = ["Notifier", "TelegramNotifier"]
