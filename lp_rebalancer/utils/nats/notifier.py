"""
NATS publisher for rebalance alerts.

Alerts are published to JetStream on ``<prefix>.<kind>`` subjects so other
services (dashboards, chat bots) can consume them.
"""

import logging
from typing import Any, Dict, Optional

from .client import NatsClientJS
from ...collaborators.base import Notifier
from ...utils.clock import utc_now

logger = logging.getLogger(__name__)


class NatsNotifier(Notifier):
    """
    Fire-and-forget alert publisher backed by NATS/JetStream.

    Publishing failures are logged and never raised to the caller.
    """

    def __init__(self, nats_config, environment: Optional[str] = None):
        """
        Initialize the alert publisher.

        Args:
            nats_config: NatsConfig with URLs, stream name and subject prefix
            environment: Environment to connect to (defaults to the config's)
        """
        self.config = nats_config
        self.nats_client = NatsClientJS(
            nats_config.get_nats_url(environment), timeout=nats_config.NATS_TIMEOUT)
        self.stream_name = nats_config.STREAM_NAME

    async def aconnect(self):
        """Connect to NATS and setup JetStream"""
        await self.nats_client.aconnect()
        await self.nats_client.aregister_new_stream(self.stream_name, self.config.alert_subjects)
        logger.info("NatsNotifier connected and stream registered")

    async def aclose(self):
        """Close NATS connection"""
        await self.nats_client.aclose()
        logger.info("NatsNotifier connection closed")

    @staticmethod
    def build_message(kind: str, title: str, message: str, severity: str,
                      metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "type": f"{kind}_alert",
            "kind": kind,
            "title": title,
            "message": message,
            "severity": severity,
            "metadata": metadata or {},
            "timestamp": utc_now().isoformat(),
        }

    async def notify(self, kind: str, title: str, message: str,
                     severity: str = "info",
                     metadata: Optional[Dict[str, Any]] = None) -> None:
        subject = self.config.get_alert_subject(kind)
        payload = self.build_message(kind, title, message, severity, metadata)

        try:
            await self.nats_client.apublish(subject, payload)
            logger.info(f"Published {severity} alert to {subject}: {title}")
        except Exception as e:
            logger.error(f"Failed to publish alert to {subject}: {e}")
