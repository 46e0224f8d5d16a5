"""
NATS configuration for lp_rebalancer alerts.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .base import BaseConfig

ALERT_KINDS = ["rebalance_signal", "rebalance_executed", "rebalance_failed", "system"]


@dataclass
class NatsConfig(BaseConfig):
    """NATS messaging configuration."""

    # NATS Connection Settings
    NATS_ENABLED: bool = field(default_factory=lambda: BaseConfig.get_env_bool("NATS_ENABLED", False))
    NATS_URL_LOCAL: str = field(
        default_factory=lambda: BaseConfig.get_env("NATS_URL_LOCAL", "nats://localhost:4222"))
    NATS_URL_DEV: str = field(
        default_factory=lambda: BaseConfig.get_env("NATS_URL_DEV", "nats://nats:4222"))
    NATS_URL_PRODUCTION: str = field(
        default_factory=lambda: BaseConfig.get_env("NATS_URL_PRODUCTION", "nats://nats-server:4222"))

    # Connection Parameters
    NATS_TIMEOUT: int = field(default_factory=lambda: BaseConfig.get_env_int("NATS_TIMEOUT", 10))

    # JetStream Configuration
    STREAM_NAME: str = field(
        default_factory=lambda: BaseConfig.get_env("STREAM_NAME", "REBALANCER_ALERTS"))
    SUBJECT_PREFIX: str = field(
        default_factory=lambda: BaseConfig.get_env("SUBJECT_PREFIX", "rebalancer.alerts"))

    @property
    def nats_urls(self) -> Dict[str, str]:
        """Get NATS URLs for different environments."""
        return {
            "local": self.NATS_URL_LOCAL,
            "dev": self.NATS_URL_DEV,
            "staging": self.NATS_URL_DEV,  # Use dev for staging
            "production": self.NATS_URL_PRODUCTION,
        }

    def get_nats_url(self, environment: str = None) -> str:
        """Get NATS URL for the current or specified environment."""
        env = environment or self.ENVIRONMENT
        return self.nats_urls.get(env, self.NATS_URL_LOCAL)

    def get_alert_subject(self, kind: str) -> str:
        """Get the alert subject for a notification kind."""
        return f"{self.SUBJECT_PREFIX}.{kind.lower()}"

    @property
    def alert_subjects(self) -> List[str]:
        """Get all alert subjects registered on the stream."""
        return [self.get_alert_subject(kind) for kind in ALERT_KINDS]
