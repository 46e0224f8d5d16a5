"""
NATS messaging for rebalance alerts.

Provides a JSON NATS client with JetStream support and the alert notifier
built on it.
"""

from .client import NatsClient, NatsClientJS, dumps, loads
from .notifier import NatsNotifier

__all__ = ["NatsClient", "NatsClientJS", "NatsNotifier", "dumps", "loads"]
