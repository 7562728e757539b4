"""Log setup for the scanner: JSON lines tagged with the current scan cycle."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from ..config.settings import MonitoringConfig, get_app_config

NO_CORRELATION = "-"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default=NO_CORRELATION)
_configured = False

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "correlation_id"}


class _CorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get()
        return True


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED and not key.startswith("_")}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields land under ``"extra"``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION),
        }
        extras = _record_extras(record)
        if extras:
            entry["extra"] = extras
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_formatter(config: MonitoringConfig) -> logging.Formatter:
    if config.log_format == "text":
        return logging.Formatter(TEXT_FORMAT)
    return StructuredFormatter()


def configure_logging(config: Optional[MonitoringConfig] = None, *, force: bool = False) -> None:
    """Install a single stdout handler on the root logger. Later calls are no-ops unless ``force``."""

    global _configured
    if _configured and not force:
        return
    monitoring = config or get_app_config().monitoring
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_CorrelationFilter())
    handler.setFormatter(_build_formatter(monitoring))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.getLevelNamesMapping().get(monitoring.log_level, logging.INFO))
    logging.captureWarnings(True)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def current_correlation_id() -> str:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str]) -> Iterator[None]:
    """Tag every record logged inside the block with ``correlation_id``."""

    token = _correlation_id.set(correlation_id or NO_CORRELATION)
    try:
        yield
    finally:
        _correlation_id.reset(token)


__all__ = [
    "StructuredFormatter",
    "configure_logging",
    "correlation_scope",
    "current_correlation_id",
    "get_logger",
]
