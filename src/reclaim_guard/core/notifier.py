"""Alert delivery for drift that needs an operator."""

from __future__ import annotations

import logging
from typing import Callable

from reclaim_guard.models.drift import Alert

logger = logging.getLogger(__name__)


class Notifier:
    def notify(self, alert: Alert) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Emit alerts as WARNING log records."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def notify(self, alert: Alert) -> None:
        self.log.warning(
            "ALERT %s [%s]: %s", alert.resource_id, alert.classification.value, alert.message,
        )


class CallbackNotifier(Notifier):
    """Forward alerts to a plain callable, e.g. to print them from the CLI."""

    def __init__(self, callback: Callable[[Alert], None]):
        self.callback = callback

    def notify(self, alert: Alert) -> None:
        self.callback(alert)


class FanOutNotifier(Notifier):
    def __init__(self, *notifiers: Notifier):
        self.notifiers = list(notifiers)

    def notify(self, alert: Alert) -> None:
        for n in self.notifiers:
            n.notify(alert)
