"""
Notifier implementations that need no external service.
"""

import logging
from typing import Any, Dict, List, Optional

from .base import Notifier

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "low": logging.INFO,
    "medium": logging.WARNING,
    "warning": logging.WARNING,
    "high": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class LoggingNotifier(Notifier):
    """Writes alerts to the log. Used when no alert channel is configured."""

    def __init__(self, alert_logger: Optional[logging.Logger] = None):
        self.logger = alert_logger or logger

    async def notify(self, kind: str, title: str, message: str,
                     severity: str = "info",
                     metadata: Optional[Dict[str, Any]] = None) -> None:
        level = SEVERITY_LEVELS.get(severity.lower(), logging.INFO)
        self.logger.log(level, f"[{kind}] {title}: {message}")
        if metadata:
            self.logger.debug(f"[{kind}] metadata: {metadata}")


class FanOutNotifier(Notifier):
    """Delivers each alert to several notifiers; one failing does not stop the rest."""

    def __init__(self, notifiers: List[Notifier]):
        self.notifiers = list(notifiers)

    async def notify(self, kind: str, title: str, message: str,
                     severity: str = "info",
                     metadata: Optional[Dict[str, Any]] = None) -> None:
        for notifier in self.notifiers:
            try:
                await notifier.notify(kind, title, message, severity, metadata)
            except Exception as e:
                logger.error(f"{type(notifier).__name__} failed to deliver alert '{title}': {e}")


async def create_notifier(config_manager) -> Notifier:
    """
    Alert channel from configuration.

    With NATS enabled alerts go to both NATS and the log; an unreachable NATS
    server leaves only the log.
    """
    log_notifier = LoggingNotifier()

    if not config_manager.nats.NATS_ENABLED:
        return log_notifier

    # Imported here so the NATS stack is only loaded when enabled
    from ..utils.nats.notifier import NatsNotifier

    nats_notifier = NatsNotifier(config_manager.nats)
    try:
        await nats_notifier.aconnect()
    except Exception as e:
        logger.warning(f"NATS unavailable, alerts will only be logged: {e}")
        return log_notifier

    return FanOutNotifier([log_notifier, nats_notifier])
