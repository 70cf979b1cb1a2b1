"""User-facing notifications, injected wherever an error path must report."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class Severity(Enum):
    INFORMATION = "information"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    message: str
    severity: Severity


@runtime_checkable
class Notifier(Protocol):
    def notify(self, message: str, severity: Severity = Severity.INFORMATION) -> None: ...


_LOG_LEVELS = {
    Severity.INFORMATION: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LogNotifier:
    """Notifier for headless use: every notice becomes a log record."""

    def notify(self, message: str, severity: Severity = Severity.INFORMATION) -> None:
        logger.log(_LOG_LEVELS[severity], message)


class RecordingNotifier:
    """Notifier that keeps every notice. For tests and scripted runs."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, message: str, severity: Severity = Severity.INFORMATION) -> None:
        self.notices.append(Notice(message, severity))

    def messages(self, severity: Severity | None = None) -> list[str]:
        return [n.message for n in self.notices if severity is None or n.severity is severity]

    @property
    def errors(self) -> list[str]:
        return self.messages(Severity.ERROR)
