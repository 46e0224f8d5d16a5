"""
Configuration management for lp_rebalancer.

Use get_config() to access all configuration settings.

Example:
    from lp_rebalancer.config import get_config

    config = get_config()

    # Scheduler cadences and retention
    hours = config.monitoring.TWELVE_HOUR_ANALYSIS_HOURS
    cost = config.monitoring.rebalance_cost_usd

    # Volume cache
    ttl = config.cache.VOLUME_CACHE_TTL

    # NATS alerts
    subject = config.nats.get_alert_subject("rebalance_signal")
"""

from .base import BaseConfig, ConfigError
from .cache import CacheSettings
from .manager import ConfigManager, get_config, reload_config
from .monitoring import MonitoringSettings
from .nats_config import NatsConfig

__all__ = [
    "BaseConfig",
    "ConfigError",
    "CacheSettings",
    "MonitoringSettings",
    "NatsConfig",
    "ConfigManager",
    "get_config",
    "reload_config",
]
