"""User-visible sync notices."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notifier(Protocol):
    def notify(self, message: str, level: str = "info") -> None: ...


class LoggingNotifier:
    """Send notices to the ``omnivore_sync.notices`` logger."""

    def __init__(self, name: str = "omnivore_sync.notices") -> None:
        self._logger = logging.getLogger(name)

    def notify(self, message: str, level: str = "info") -> None:
        self._logger.log(_LEVELS.get(level, logging.INFO), message)


@dataclass(frozen=True)
class Notice:
    message: str
    level: str
    at: str


class RecordingNotifier(LoggingNotifier):
    """Log notices and keep the most recent ones for later inspection.

    Args:
        limit: Number of notices retained.
    """

    def __init__(self, limit: int = 20) -> None:
        super().__init__()
        self.notices: deque[Notice] = deque(maxlen=limit)

    def notify(self, message: str, level: str = "info") -> None:
        super().notify(message, level)
        self.notices.append(
            Notice(
                message=message,
                level=level,
                at=datetime.now(timezone.utc).isoformat(),
            )
        )

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.notices]
