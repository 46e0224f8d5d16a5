"""
Monitoring, retention and decision settings for lp_rebalancer.
"""

from dataclasses import dataclass, field
from typing import List

from .base import BaseConfig, ConfigError

URGENCY_LEVELS = ["NONE", "LOW", "MEDIUM", "HIGH", "CRITICAL"]
DECISION_POLICIES = ["cost_benefit", "scoring"]
AUTOMATION_PRESETS = ["aggressive", "balanced", "conservative"]


def _hours_list(key: str, default: List[int]) -> List[int]:
    raw = BaseConfig.get_env_list(key, [str(h) for h in default])
    try:
        return [int(h) for h in raw]
    except ValueError:
        raise ConfigError(f"Environment variable '{key}' must be a list of hours, got: {raw}")


@dataclass
class MonitoringSettings(BaseConfig):
    """Scheduler cadences, snapshot retention and cost model settings."""

    # Cadences (UTC)
    HOURLY_SNAPSHOT_MINUTES: int = field(
        default_factory=lambda: BaseConfig.get_env_int("HOURLY_SNAPSHOT_MINUTES", 60))
    QUICK_CHECK_MINUTES: int = field(
        default_factory=lambda: BaseConfig.get_env_int("QUICK_CHECK_MINUTES", 30))
    TWELVE_HOUR_ANALYSIS_HOURS: List[int] = field(
        default_factory=lambda: _hours_list("TWELVE_HOUR_ANALYSIS_HOURS", [8, 20]))
    DAILY_REVIEW_HOUR: int = field(
        default_factory=lambda: BaseConfig.get_env_int("DAILY_REVIEW_HOUR", 0))
    FIRE_ON_START: bool = field(
        default_factory=lambda: BaseConfig.get_env_bool("FIRE_ON_START", True))

    # Collaborator calls
    FETCH_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: BaseConfig.get_env_float("FETCH_TIMEOUT_SECONDS", 5.0))

    # Snapshot retention
    INTRADAY_RETENTION_DAYS: int = field(
        default_factory=lambda: BaseConfig.get_env_int("INTRADAY_RETENTION_DAYS", 7))
    ANALYTICS_RETENTION_DAYS: int = field(
        default_factory=lambda: BaseConfig.get_env_int("ANALYTICS_RETENTION_DAYS", 90))
    INTRADAY_CONTEXT_HOURS: int = field(
        default_factory=lambda: BaseConfig.get_env_int("INTRADAY_CONTEXT_HOURS", 12))
    VOLATILITY_WINDOW_HOURS: int = field(
        default_factory=lambda: BaseConfig.get_env_int("VOLATILITY_WINDOW_HOURS", 6))

    # Rebalance cost model: N transactions at a fixed native cost each
    REBALANCE_TX_COUNT: int = field(
        default_factory=lambda: BaseConfig.get_env_int("REBALANCE_TX_COUNT", 2))
    TX_COST_NATIVE: float = field(
        default_factory=lambda: BaseConfig.get_env_float("TX_COST_NATIVE", 0.0001))
    NATIVE_PRICE_USD: float = field(
        default_factory=lambda: BaseConfig.get_env_float("NATIVE_PRICE_USD", 140.0))

    # Decisions
    DECISION_POLICY: str = field(
        default_factory=lambda: BaseConfig.get_env("DECISION_POLICY", "cost_benefit"))
    AUTOMATION_PRESET: str = field(
        default_factory=lambda: BaseConfig.get_env("AUTOMATION_PRESET", "balanced"))
    AUTO_APPLY: bool = field(
        default_factory=lambda: BaseConfig.get_env_bool("AUTO_APPLY", False))
    NOTIFY_MIN_URGENCY: str = field(
        default_factory=lambda: BaseConfig.get_env("NOTIFY_MIN_URGENCY", "HIGH"))
    REBALANCE_BINS_PER_SIDE: int = field(
        default_factory=lambda: BaseConfig.get_env_int("REBALANCE_BINS_PER_SIDE", 12))
    REBALANCE_SLIPPAGE_BPS: int = field(
        default_factory=lambda: BaseConfig.get_env_int("REBALANCE_SLIPPAGE_BPS", 100))

    @property
    def snapshot_dir(self):
        """Directory holding the hourly pool snapshot logs."""
        return self.DATA_DIR / "snapshots" / "hourly"

    @property
    def analytics_dir(self):
        """Directory holding position analytics logs and rebalance history."""
        return self.DATA_DIR / "analytics"

    def _validate_config(self):
        super()._validate_config()

        if self.FETCH_TIMEOUT_SECONDS <= 0:
            raise ConfigError("FETCH_TIMEOUT_SECONDS must be positive")
        if self.INTRADAY_RETENTION_DAYS <= 0 or self.ANALYTICS_RETENTION_DAYS <= 0:
            raise ConfigError("Snapshot retention must be at least one day")
        if self.HOURLY_SNAPSHOT_MINUTES <= 0 or self.QUICK_CHECK_MINUTES <= 0:
            raise ConfigError("Cadence minutes must be positive")
        for hour in [*self.TWELVE_HOUR_ANALYSIS_HOURS, self.DAILY_REVIEW_HOUR]:
            if not 0 <= hour <= 23:
                raise ConfigError(f"Invalid hour of day: {hour}")
        if self.DECISION_POLICY not in DECISION_POLICIES:
            raise ConfigError(f"Unsupported decision policy: {self.DECISION_POLICY}")
        if self.AUTOMATION_PRESET not in AUTOMATION_PRESETS:
            raise ConfigError(f"Unknown automation preset: {self.AUTOMATION_PRESET}")
        if self.NOTIFY_MIN_URGENCY.upper() not in URGENCY_LEVELS:
            raise ConfigError(f"Invalid urgency level: {self.NOTIFY_MIN_URGENCY}")

    @property
    def rebalance_cost_usd(self) -> float:
        """Estimated cost of one rebalance in the reference currency."""
        return self.REBALANCE_TX_COUNT * self.TX_COST_NATIVE * self.NATIVE_PRICE_USD
