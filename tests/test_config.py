"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from shipyard.config import Settings, get_settings, print_settings_json
from shipyard.types import PreservePolicy


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings(_env_file=None)

        assert settings.configdir == Path.cwd() / "configs"
        assert settings.lock_dir == Path.home() / ".cache" / "shipyard" / "locks"
        assert settings.engine == "scheduler-pool"
        assert settings.preserve is PreservePolicy.ON_FAILURE
        assert settings.timeout == 7200
        assert settings.retry_count == 1
        assert settings.log_level == "INFO"
        assert settings.container_runtime == "docker"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "SHIPYARD_ENGINE": "local",
                "SHIPYARD_PRESERVE": "never",
                "SHIPYARD_RETRY_COUNT": "3",
                "SHIPYARD_POOLER_URL": "http://pooler.example",
            },
        ):
            settings = get_settings()

        assert settings.engine == "local"
        assert settings.preserve is PreservePolicy.NEVER
        assert settings.retry_count == 3
        assert settings.pooler_url == "http://pooler.example"

    def test_retry_count_must_be_positive(self) -> None:
        """A retry budget needs at least one attempt."""
        with pytest.raises(ValidationError):
            Settings(retry_count=0)

    def test_invalid_preserve(self) -> None:
        """Unknown preservation policies are rejected."""
        with pytest.raises(ValidationError):
            Settings(preserve="sometimes")


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_returns_valid_json(self) -> None:
        """Should return valid JSON."""
        data = json.loads(print_settings_json(Settings(pooler_url="http://p")))
        assert data["pooler_url"] == "http://p"
        assert data["preserve"] == "on-failure"

    def test_token_is_not_printed(self) -> None:
        """The pooler token never appears in the output."""
        output = print_settings_json(Settings(pooler_token="s3cret"))
        assert "s3cret" not in output
        assert "pooler_token" not in json.loads(output)
