"""User-facing notifications for mutation outcomes (the UI's toast channel)."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List

INFO = 'info'
WARNING = 'warning'
ERROR = 'error'

_LEVELS = {INFO: logging.INFO, WARNING: logging.WARNING, ERROR: logging.ERROR}


@dataclass(frozen=True)
class Notice:
    level: str
    title: str
    message: str


class Notifier:
    def notify(self, level: str, title: str, message: str):
        raise NotImplementedError

    def success(self, title: str, message: str):
        self.notify(INFO, title, message)

    def warning(self, title: str, message: str):
        self.notify(WARNING, title, message)

    def error(self, title: str, message: str):
        self.notify(ERROR, title, message)


class LoggingNotifier(Notifier):
    def __init__(self, logger_name: str = 'fieldservice.notifications'):
        self.logger = logging.getLogger(logger_name)

    def notify(self, level: str, title: str, message: str):
        self.logger.log(_LEVELS.get(level, logging.INFO), '%s: %s', title, message)


class CollectingNotifier(LoggingNotifier):
    """Keeps every notice so a request can return them alongside its payload."""

    def __init__(self, logger_name: str = 'fieldservice.notifications'):
        super().__init__(logger_name)
        self.notices: List[Notice] = []

    def notify(self, level: str, title: str, message: str):
        super().notify(level, title, message)
        self.notices.append(Notice(level, title, message))
