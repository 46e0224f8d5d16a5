"""
Cache configuration for lp_rebalancer.
"""

from dataclasses import dataclass, field
from typing import Optional

from .base import BaseConfig, ConfigError


@dataclass
class CacheSettings(BaseConfig):
    """Volume cache backend and Redis connection settings."""

    CACHE_BACKEND: str = field(
        default_factory=lambda: BaseConfig.get_env("CACHE_BACKEND", "memory"))
    VOLUME_CACHE_TTL: int = field(
        default_factory=lambda: BaseConfig.get_env_int("VOLUME_CACHE_TTL", 300))

    # Redis Configuration
    REDIS_HOST: str = field(default_factory=lambda: BaseConfig.get_env("REDIS_HOST", "localhost"))
    REDIS_PORT: int = field(default_factory=lambda: BaseConfig.get_env_int("REDIS_PORT", 6379))
    REDIS_PASSWORD: Optional[str] = field(
        default_factory=lambda: BaseConfig.get_env("REDIS_PASSWORD") or None)
    REDIS_DB: int = field(default_factory=lambda: BaseConfig.get_env_int("REDIS_DB", 0))
    CONNECTION_TIMEOUT: int = field(
        default_factory=lambda: BaseConfig.get_env_int("CONNECTION_TIMEOUT", 5))

    def _validate_config(self):
        super()._validate_config()
        if self.CACHE_BACKEND not in ("memory", "redis"):
            raise ConfigError(f"Unsupported cache backend: {self.CACHE_BACKEND}")
        if self.VOLUME_CACHE_TTL < 0:
            raise ConfigError("VOLUME_CACHE_TTL cannot be negative")

    def get_redis_connection_kwargs(self) -> dict:
        """Get Redis connection parameters."""
        kwargs = {
            "host": self.REDIS_HOST,
            "port": self.REDIS_PORT,
            "db": self.REDIS_DB,
            "decode_responses": True,
            "socket_timeout": self.CONNECTION_TIMEOUT,
        }

        # Only add password if it's actually set and not empty/whitespace
        if self.REDIS_PASSWORD and self.REDIS_PASSWORD.strip():
            kwargs["password"] = self.REDIS_PASSWORD.strip()

        return kwargs
