"""Tests for configuration reading and credentials."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from ragchat.configs.config import AppConfig, get_app_config, get_pagination_config
from ragchat.configs.system import DEFAULT_PUBLIC_PATH_PREFIXES, SecurityConfig
from ragchat.core.security import Credentials, is_public_path


class TestAppConfig:
    """Environment variables override the static YAML defaults."""

    def test_env_overrides(self):
        env_vars = {
            "RAGCHAT_SECURITY__GATEWAY_API_KEY": "gw",
            "RAGCHAT_SECURITY__INTERNAL_SERVICE_KEY": "in",
            "RAGCHAT_PAGINATION__MAX_PAGE_SIZE": "50",
            "RAGCHAT_GATEWAY__STORAGE_BASE_URL": "http://storage:9000",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            config = AppConfig()

            assert config.security.gateway_api_key == "gw"
            assert config.security.internal_service_key == "in"
            assert config.pagination.max_page_size == 50
            assert config.pagination.default_page_size == 20
            assert config.gateway.storage_base_url == "http://storage:9000"

    def test_reread_on_every_call(self):
        with patch.dict(os.environ, {"RAGCHAT_PAGINATION__DEFAULT_PAGE_SIZE": "7"}):
            assert get_pagination_config().default_page_size == 7
        assert get_app_config() is not get_app_config()

    def test_default_public_prefixes(self):
        assert AppConfig().security.public_path_prefixes == DEFAULT_PUBLIC_PATH_PREFIXES

    def test_page_size_must_be_positive(self):
        with patch.dict(os.environ, {"RAGCHAT_PAGINATION__MAX_PAGE_SIZE": "0"}):
            with pytest.raises(ValidationError):
                AppConfig()


class TestCredentials:
    def test_from_config(self):
        creds = Credentials.from_config(
            SecurityConfig(gateway_api_key="gw", internal_service_key="in")
        )
        assert creds.gateway_api_key == "gw"
        assert creds.internal_service_key == "in"
        assert creds.public_path_prefixes == tuple(DEFAULT_PUBLIC_PATH_PREFIXES)

    def test_frozen(self):
        creds = Credentials(gateway_api_key="gw")
        with pytest.raises(ValidationError):
            creds.gateway_api_key = "other"  # type: ignore[misc]

    @pytest.mark.parametrize("key, configured", [("", False), ("  ", False), ("k", True)])
    def test_gateway_key_configured(self, key, configured):
        assert Credentials(gateway_api_key=key).gateway_key_configured is configured

    def test_public_path_is_prefix_match(self):
        prefixes = ["/docs", "/health"]
        assert is_public_path("/docs/oauth2-redirect", prefixes)
        assert is_public_path("/health", prefixes)
        assert not is_public_path("/api/v1/health", prefixes)
