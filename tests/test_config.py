"""Tests for environment-based configuration."""

import pytest

from config.adapters import ConfigAdapter
from core.domain.exceptions import ConfigurationError

PRODUCTION_ENV = {
    "ENVIRONMENT": "production",
    "DATABASE_URL": "postgresql+asyncpg://watch:secret@db:5432/watch",
    "GOOGLE_CLIENT_ID": "client.apps.googleusercontent.com",
    "GOOGLE_CLIENT_SECRET": "real-client-secret",
    "GCP_PROJECT_ID": "watch-prod",
    "SESSION_SECRET": "real-session-secret",
}


@pytest.fixture
def production_env(monkeypatch):
    for key, value in PRODUCTION_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
    return monkeypatch


def test_development_is_default(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)

    config = ConfigAdapter.create_config()

    assert config.get_environment() == "development"
    assert config.get_database_url().startswith("sqlite+aiosqlite")
    assert config.get_pubsub_topic_prefix() == "gmail-watch-"
    assert config.get_watch_label_ids() == ["INBOX"]
    assert config.get_webhook_max_attempts() == 3


def test_production_requires_encryption_key(production_env):
    with pytest.raises(ConfigurationError):
        ConfigAdapter.create_config()


def test_production_rejects_placeholder_secrets(production_env):
    production_env.setenv("ENCRYPTION_KEY", "dev_encryption_key")

    with pytest.raises(ConfigurationError):
        ConfigAdapter.create_config()


def test_production_rejects_sqlite(production_env):
    production_env.setenv("ENCRYPTION_KEY", "a-real-encryption-key")
    production_env.setenv("DATABASE_URL", "sqlite+aiosqlite:///./prod.db")

    with pytest.raises(ConfigurationError):
        ConfigAdapter.create_config()


def test_valid_production_config(production_env):
    production_env.setenv("ENCRYPTION_KEY", "a-real-encryption-key")
    production_env.setenv("REGISTRATION_WEBHOOK_URL", "")

    config = ConfigAdapter.create_config()

    assert config.is_production()
    assert config.get_registration_webhook_url() is None
    assert config.get_web_workers() == 4
