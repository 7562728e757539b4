"""Bounded operator log feed, mirrored to the structured logger."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Deque, Iterable, List, Optional

from ..datalake.schemas import SystemLogRecord, SystemLogType
from ..utils.constants import utc_now
from .logger import get_logger

_LEVELS = {
    SystemLogType.INFO: logging.INFO,
    SystemLogType.SUCCESS: logging.INFO,
    SystemLogType.WARNING: logging.WARNING,
    SystemLogType.ERROR: logging.ERROR,
}


class SystemLogBuffer:
    """Keeps the most recent ``capacity`` entries, oldest first."""

    def __init__(self, capacity: int = 200) -> None:
        self._entries: Deque[SystemLogRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._logger = get_logger(__name__)

    def add(
        self,
        log_type: SystemLogType,
        message: str,
        *,
        timestamp: Optional[datetime] = None,
    ) -> SystemLogRecord:
        record = SystemLogRecord(timestamp=timestamp or utc_now(), type=log_type, message=message)
        self.extend([record])
        return record

    def extend(self, records: Iterable[SystemLogRecord]) -> None:
        for record in records:
            with self._lock:
                self._entries.append(record)
            self._logger.log(_LEVELS[record.type], record.message, extra={"log_type": record.type.value})

    def records(self, limit: Optional[int] = None) -> List[SystemLogRecord]:
        with self._lock:
            entries = list(self._entries)
        if limit is not None:
            return entries[-limit:]
        return entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["SystemLogBuffer"]
