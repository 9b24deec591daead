"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from nexa_search.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("SEARCH_ADMIN_TOKEN", raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url.startswith("mysql+aiomysql://")
        assert settings.search_default_limit == 20
        assert settings.search_max_limit == 100
        assert settings.search_table_timeout_seconds == 5.0
        assert settings.search_analytics_enabled is True
        assert settings.search_admin_token is None

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./search.db")
        monkeypatch.setenv("SEARCH_TABLE_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("SEARCH_ADMIN_TOKEN", "s3cret")

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite+aiosqlite:///./search.db"
        assert settings.search_table_timeout_seconds == 1.5
        assert settings.search_admin_token == "s3cret"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, search_table_timeout_seconds=0)

    def test_database_url_required(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, database_url="")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_default_limit_cannot_exceed_max(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, search_default_limit=50, search_max_limit=10)
