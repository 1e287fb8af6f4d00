"""Unit tests for Cardiva configuration management.

Tests AppConfig loading from environment variables, validation, and defaults.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cardiva.config import AppConfig, get_config, reset_config


class TestAppConfig:
    """Test AppConfig creation and validation."""

    def test_from_env_requires_database_url(self, monkeypatch):
        """Test DATABASE_URL is required."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(KeyError) as exc_info:
            AppConfig.from_env()

        assert "DATABASE_URL" in str(exc_info.value)

    def test_from_env_with_minimal_config(self, monkeypatch):
        """Test defaults when only the database URL is set."""
        for name in (
            "N8N_RFP_WEBHOOK_URL",
            "N8N_INVENTORY_WEBHOOK_URL",
            "N8N_EXPORT_EMAIL_WEBHOOK_URL",
            "N8N_WEBHOOK_SECRET",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

        config = AppConfig.from_env()

        assert config.db.url == "sqlite+aiosqlite:///./test.db"
        assert config.log_level == "INFO"
        assert config.webhooks.rfp_url is None
        assert config.webhooks.secret is None
        assert config.realtime.enabled is True

    def test_webhook_retry_defaults(self):
        """Test default retry policy: 3 retries, 1s initial delay, 30s timeout."""
        config = AppConfig.from_env()

        assert config.webhooks.max_retries == 3
        assert config.webhooks.initial_delay == 1.0
        assert config.webhooks.timeout == 30.0

    def test_empty_webhook_url_means_not_configured(self, monkeypatch):
        """Test an empty URL is treated as missing."""
        monkeypatch.setenv("N8N_EXPORT_EMAIL_WEBHOOK_URL", "")

        config = AppConfig.from_env()

        assert config.webhooks.export_email_url is None

    def test_upload_queue_limits(self, monkeypatch):
        """Test upload queue defaults and overrides."""
        config = AppConfig.from_env()
        assert config.upload_queue.max_queued == 10
        assert config.upload_queue.max_concurrent == 3

        monkeypatch.setenv("UPLOAD_MAX_CONCURRENT", "5")
        monkeypatch.setenv("UPLOAD_STAGGER_SECONDS", "0.5")
        config = AppConfig.from_env()

        assert config.upload_queue.max_concurrent == 5
        assert config.upload_queue.stagger_seconds == 0.5

    def test_storage_settings(self, monkeypatch):
        monkeypatch.setenv("STORAGE_ROOT", "/var/lib/cardiva")
        monkeypatch.setenv("RFP_BUCKET", "tenders")

        config = AppConfig.from_env()

        assert config.storage.root == Path("/var/lib/cardiva")
        assert config.storage.rfp_bucket == "tenders"

    def test_flags(self, monkeypatch):
        monkeypatch.setenv("CARDIVA_AUTH_DISABLED", "TRUE")
        monkeypatch.setenv("REALTIME_ENABLED", "false")

        config = AppConfig.from_env()

        assert config.auth.disabled is True
        assert config.realtime.enabled is False


class TestGetConfig:
    """Test the configuration singleton."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reset_config_reloads(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        reset_config()

        second = get_config()

        assert second is not first
        assert second.log_level == "DEBUG"
