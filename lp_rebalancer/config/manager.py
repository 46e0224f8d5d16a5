"""
Configuration manager for lp_rebalancer.

This module provides a centralized way to access all configuration settings
across the application. It combines all configuration classes into a single
easy-to-use interface.
"""

import logging
from typing import Dict, Any, Optional

from .base import BaseConfig, ConfigError
from .cache import CacheSettings
from .monitoring import MonitoringSettings
from .nats_config import NatsConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Centralized configuration manager that combines all configuration classes.

    This class provides easy access to all configuration settings and ensures
    that configurations are properly initialized and validated.
    """

    def __init__(self, environment: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            environment: Override the environment (local, dev, staging, production)
        """
        self._environment = environment
        self._base_config = None
        self._monitoring_config = None
        self._cache_config = None
        self._nats_config = None
        self._initialize_configs()

    def _initialize_configs(self):
        """Initialize all configuration objects."""
        try:
            overrides = {"ENVIRONMENT": self._environment} if self._environment else {}

            self._base_config = BaseConfig(**overrides)
            self._monitoring_config = MonitoringSettings(**overrides)
            self._cache_config = CacheSettings(**overrides)
            self._nats_config = NatsConfig(**overrides)

            logger.info(f"Configuration initialized for environment: {self.environment}")

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize configuration: {e}")
            raise ConfigError(f"Configuration initialization failed: {e}")

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self._base_config.ENVIRONMENT

    @property
    def base(self) -> BaseConfig:
        """Get base configuration."""
        return self._base_config

    @property
    def monitoring(self) -> MonitoringSettings:
        """Get monitoring configuration."""
        return self._monitoring_config

    @property
    def cache(self) -> CacheSettings:
        """Get cache configuration."""
        return self._cache_config

    @property
    def nats(self) -> NatsConfig:
        """Get NATS configuration."""
        return self._nats_config

    def validate_configuration(self) -> bool:
        """
        Validate cross-section configuration settings.

        Returns:
            True if all configurations are valid

        Raises:
            ConfigError: If any configuration is invalid
        """
        monitoring = self.monitoring

        if monitoring.rebalance_cost_usd <= 0:
            raise ConfigError("Rebalance cost estimate must be positive")

        window_days = monitoring.INTRADAY_CONTEXT_HOURS / 24
        if window_days > monitoring.INTRADAY_RETENTION_DAYS:
            raise ConfigError(
                "INTRADAY_CONTEXT_HOURS exceeds the intraday snapshot retention window"
            )

        if self.cache.CACHE_BACKEND == "redis" and not self.cache.REDIS_HOST:
            raise ConfigError("Redis cache backend selected but REDIS_HOST is empty")

        logger.info("Configuration validation successful")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert all configurations to dictionary format."""
        return {
            "environment": self.environment,
            "base": self.base.to_dict(),
            "monitoring": self.monitoring.to_dict(),
            "cache": self.cache.to_dict(),
            "nats": self.nats.to_dict(),
        }

    def __repr__(self) -> str:
        """String representation of the configuration manager."""
        return f"ConfigManager(environment={self.environment})"


# Global configuration manager instance
_config_manager = None


def get_config(environment: Optional[str] = None, force_reload: bool = False) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        environment: Override environment
        force_reload: Force reload of configuration

    Returns:
        ConfigManager instance
    """
    global _config_manager

    if _config_manager is None or force_reload:
        _config_manager = ConfigManager(environment=environment)
        _config_manager.validate_configuration()

    return _config_manager


def reload_config(environment: Optional[str] = None) -> ConfigManager:
    """
    Reload the global configuration manager.

    Args:
        environment: Override environment

    Returns:
        New ConfigManager instance
    """
    return get_config(environment=environment, force_reload=True)
