"""Tests for configuration loading and MorpheusClient auth resolution."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from mks._config import HOUR, MINUTE, MksConfig, ReconcilerConfig
from mks.auth import AccessTokenAuth, PasswordAuth
from mks.client import MorpheusClient


class TestMksConfig:
    def test_from_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            'api_url = "https://morpheus.example.com"\n'
            "timeout = 30\n"
            "verify_ssl = false\n"
            "force_delete = true\n"
            '[auth]\nusername = "admin"\npassword = "secret"\n'
        )

        config = MksConfig.from_file(config_file)

        assert config.base_url == "https://morpheus.example.com"
        assert config.timeout == 30.0
        assert config.verify_ssl is False
        assert config.force_delete is True
        assert config.auth.username == "admin"

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = MksConfig.from_file(tmp_path / "missing.toml")

        assert config.base_url is None
        assert config.max_retries == 3

    def test_env_overrides_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text('api_url = "https://file.example.com"\ntimeout = 30\n')
        env = {
            "MORPHEUS_API_URL": "https://env.example.com",
            "MORPHEUS_FORCE_DELETE": "yes",
            "MORPHEUS_VERIFY_SSL": "false",
        }

        with patch.dict(os.environ, env, clear=True):
            config = MksConfig.load(config_file)

        assert config.base_url == "https://env.example.com"
        assert config.timeout == 30.0
        assert config.force_delete is True
        assert config.verify_ssl is False

    def test_reconciler_config_defaults(self) -> None:
        config = ReconcilerConfig.from_config(MksConfig(force_delete=True))

        assert config.force_delete is True
        assert config.cluster_create.timeout == 3 * HOUR
        assert config.cluster_create.delay == 3 * MINUTE
        assert config.worker_add.poll_interval == 10.0
        assert config.cluster_delete.poll_interval == 30.0
        assert config.failed_status_grace == 3 * MINUTE
        assert config.timeouts.read == 5 * MINUTE


class TestMorpheusClientConfigAuth:
    """Test MorpheusClient auth from env and config file."""

    def test_client_loads_token_from_config(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            'api_url = "https://morpheus.example.com"\naccess_token = "config-token"\n'
        )

        with (
            patch("mks._config.CONFIG_FILE", config_file),
            patch.dict(os.environ, {}, clear=True),
        ):
            client = MorpheusClient()

        assert client.base_url == "https://morpheus.example.com"
        assert isinstance(client._auth, AccessTokenAuth)
        assert client._auth.access_token == "config-token"
        client.close()

    def test_client_loads_password_from_env(self, tmp_path: Path) -> None:
        env = {
            "MORPHEUS_API_URL": "https://morpheus.example.com",
            "MORPHEUS_API_USERNAME": "admin",
            "MORPHEUS_API_PASSWORD": "secret",
        }

        with (
            patch("mks._config.CONFIG_FILE", tmp_path / "missing.toml"),
            patch.dict(os.environ, env, clear=True),
        ):
            client = MorpheusClient()

        assert isinstance(client._auth, PasswordAuth)
        assert client._auth.username == "admin"
        client.close()

    def test_explicit_token_wins(self) -> None:
        config = MksConfig(base_url="https://morpheus.example.com", access_token="config-token")

        with MorpheusClient(access_token="explicit", config=config) as client:
            assert isinstance(client._auth, AccessTokenAuth)
            assert client._auth.access_token == "explicit"

    def test_missing_url(self) -> None:
        with pytest.raises(ValueError, match="API URL is required"):
            MorpheusClient(access_token="token", config=MksConfig())

    def test_missing_credentials(self) -> None:
        with pytest.raises(ValueError, match="No authentication credentials"):
            MorpheusClient("https://morpheus.example.com", config=MksConfig())
