"""
Unit tests for the environment-driven configuration.
"""

import pytest

from lp_rebalancer.config import (
    CacheSettings,
    ConfigError,
    MonitoringSettings,
    NatsConfig,
    get_config,
    reload_config,
)


class TestMonitoringSettings:
    """Test cases for cadence, retention and decision settings."""

    def test_defaults(self, tmp_path):
        settings = MonitoringSettings()

        assert settings.HOURLY_SNAPSHOT_MINUTES == 60
        assert settings.QUICK_CHECK_MINUTES == 30
        assert settings.TWELVE_HOUR_ANALYSIS_HOURS == [8, 20]
        assert settings.DAILY_REVIEW_HOUR == 0
        assert settings.INTRADAY_RETENTION_DAYS == 7
        assert settings.ANALYTICS_RETENTION_DAYS == 90
        assert settings.DECISION_POLICY == "cost_benefit"
        assert settings.AUTO_APPLY is False
        assert settings.rebalance_cost_usd == pytest.approx(0.028)
        assert settings.snapshot_dir == tmp_path / "data" / "snapshots" / "hourly"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TWELVE_HOUR_ANALYSIS_HOURS", "6, 18")
        monkeypatch.setenv("AUTO_APPLY", "yes")
        monkeypatch.setenv("DECISION_POLICY", "scoring")
        monkeypatch.setenv("AUTOMATION_PRESET", "aggressive")
        monkeypatch.setenv("NATIVE_PRICE_USD", "200")

        settings = MonitoringSettings()

        assert settings.TWELVE_HOUR_ANALYSIS_HOURS == [6, 18]
        assert settings.AUTO_APPLY is True
        assert settings.AUTOMATION_PRESET == "aggressive"
        assert settings.rebalance_cost_usd == pytest.approx(0.04)

    @pytest.mark.parametrize("name, value", [
        ("TWELVE_HOUR_ANALYSIS_HOURS", "8,25"),
        ("TWELVE_HOUR_ANALYSIS_HOURS", "noon"),
        ("DAILY_REVIEW_HOUR", "-1"),
        ("QUICK_CHECK_MINUTES", "0"),
        ("FETCH_TIMEOUT_SECONDS", "0"),
        ("INTRADAY_RETENTION_DAYS", "0"),
        ("DECISION_POLICY", "martingale"),
        ("AUTOMATION_PRESET", "yolo"),
        ("NOTIFY_MIN_URGENCY", "SEVERE"),
        ("ENVIRONMENT", "qa"),
        ("LOG_LEVEL", "CHATTY"),
        ("REBALANCE_TX_COUNT", "two"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigError):
            MonitoringSettings()


class TestCacheSettings:
    """Test cases for the volume cache configuration."""

    def test_redis_kwargs_without_password(self):
        kwargs = CacheSettings().get_redis_connection_kwargs()

        assert kwargs["host"] == "localhost"
        assert kwargs["port"] == 6379
        assert "password" not in kwargs

    def test_redis_password_is_stripped(self, monkeypatch):
        monkeypatch.setenv("REDIS_PASSWORD", "  secret  ")
        assert CacheSettings().get_redis_connection_kwargs()["password"] == "secret"

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("CACHE_BACKEND", "memcached")

        with pytest.raises(ConfigError):
            CacheSettings()


class TestNatsConfig:
    """Test cases for alert channel configuration."""

    def test_urls_per_environment(self):
        config = NatsConfig()

        assert config.get_nats_url() == "nats://localhost:4222"
        assert config.get_nats_url("staging") == config.NATS_URL_DEV
        assert config.get_nats_url("production") == "nats://nats-server:4222"

    def test_alert_subjects(self):
        config = NatsConfig()

        assert config.get_alert_subject("Rebalance_Signal") == "rebalancer.alerts.rebalance_signal"
        assert "rebalancer.alerts.rebalance_executed" in config.alert_subjects


class TestConfigManager:
    """Test cases for the combined configuration."""

    def test_get_config_is_cached(self):
        config = get_config()

        assert get_config() is config
        assert reload_config() is not config
        assert config.environment == "local"

    def test_environment_override(self):
        assert get_config("staging", force_reload=True).monitoring.ENVIRONMENT == "staging"

    def test_context_window_must_fit_retention(self, monkeypatch):
        monkeypatch.setenv("INTRADAY_CONTEXT_HOURS", "200")

        with pytest.raises(ConfigError):
            get_config(force_reload=True)

    def test_to_dict(self):
        sections = get_config().to_dict()

        assert set(sections) == {"environment", "base", "monitoring", "cache", "nats"}
        assert sections["monitoring"]["QUICK_CHECK_MINUTES"] == 30
