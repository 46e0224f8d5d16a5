import pytest

from lp_rebalancer.config import manager

CONFIG_ENV_VARS = [
    "ENVIRONMENT",
    "LOG_LEVEL",
    "HOURLY_SNAPSHOT_MINUTES",
    "QUICK_CHECK_MINUTES",
    "TWELVE_HOUR_ANALYSIS_HOURS",
    "DAILY_REVIEW_HOUR",
    "FIRE_ON_START",
    "FETCH_TIMEOUT_SECONDS",
    "INTRADAY_RETENTION_DAYS",
    "ANALYTICS_RETENTION_DAYS",
    "INTRADAY_CONTEXT_HOURS",
    "VOLATILITY_WINDOW_HOURS",
    "REBALANCE_TX_COUNT",
    "TX_COST_NATIVE",
    "NATIVE_PRICE_USD",
    "DECISION_POLICY",
    "AUTOMATION_PRESET",
    "AUTO_APPLY",
    "NOTIFY_MIN_URGENCY",
    "REBALANCE_BINS_PER_SIDE",
    "REBALANCE_SLIPPAGE_BPS",
    "CACHE_BACKEND",
    "VOLUME_CACHE_TTL",
    "REDIS_HOST",
    "REDIS_PASSWORD",
    "NATS_ENABLED",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the developer's .env and shell settings."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    # Disable NATS for tests to avoid connection issues
    monkeypatch.setenv("NATS_ENABLED", "false")
    monkeypatch.setattr(manager, "_config_manager", None)
    yield
