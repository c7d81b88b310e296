# =============================================================================
# tests/test_config.py - Settings Tests
# =============================================================================

import pytest
from pydantic import ValidationError

from app.config import Settings

REQUIRED = {
    "SUPABASE_URL": "https://test-project.supabase.co",
    "SUPABASE_ANON_KEY": "anon",
    "SUPABASE_SERVICE_KEY": "service",
}


class TestSettings:
    """Tests for environment-driven settings."""

    def test_messaging_defaults(self):
        settings = Settings(_env_file=None, **REQUIRED)

        assert settings.MESSAGE_MAX_LENGTH == 2000
        assert settings.REALTIME_QUEUE_SIZE == 100

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="http://a.test, https://b.test", **REQUIRED)

        assert settings.cors_origins_list == ["http://a.test", "https://b.test"]

    def test_invalid_max_length(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MESSAGE_MAX_LENGTH=0, **REQUIRED)

    def test_environment_flags(self):
        settings = Settings(_env_file=None, ENVIRONMENT="production", **REQUIRED)

        assert settings.is_production
        assert not settings.is_development
