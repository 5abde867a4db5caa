"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from vidtube.config import Settings


class TestSettings:
    """Tests for Settings validation and helpers."""

    def test_token_lifetimes_default(self):
        settings = Settings(access_token_secret="a", refresh_token_secret="b")
        assert settings.access_token_expire_minutes == 15
        assert settings.refresh_token_expire_days == 10

    def test_secrets_must_differ(self):
        with pytest.raises(ValidationError):
            Settings(access_token_secret="same", refresh_token_secret="same")

    def test_cors_origins_list(self):
        settings = Settings(
            access_token_secret="a",
            refresh_token_secret="b",
            cors_origins="http://localhost:3000, https://vidtube.example.com,",
        )
        assert settings.cors_origins_list == [
            "http://localhost:3000",
            "https://vidtube.example.com",
        ]
