"""Tests for config loading: JSON file, keyring token and env fallbacks."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from keyring.errors import NoKeyringError

from assetlib import constants
from assetlib.config import (
    ENDPOINT_ENV_VAR,
    KEY_NAME,
    SERVICE_NAME,
    TOKEN_ENV_VAR,
    delete_api_token,
    get_api_token,
    load_ingest_config,
    mask_token,
    store_api_token,
)
from assetlib.upload.exceptions import ConfigurationError


@pytest.fixture
def no_env(monkeypatch):
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)
    monkeypatch.delenv(ENDPOINT_ENV_VAR, raising=False)


def stub_keyring(monkeypatch, token=None, error=None):
    calls = []

    def get_password(service, key):
        calls.append((service, key))
        if error is not None:
            raise error
        return token

    monkeypatch.setattr("assetlib.config.keyring.get_password", get_password)
    return calls


# ======================================================================
# Token lookup
# ======================================================================


class TestGetApiToken:
    def test_keyring_first(self, monkeypatch, no_env):
        monkeypatch.setenv(TOKEN_ENV_VAR, "env-token")
        calls = stub_keyring(monkeypatch, token="keyring-token")

        assert get_api_token() == "keyring-token"
        assert calls == [(SERVICE_NAME, KEY_NAME)]

    def test_env_fallback(self, monkeypatch, no_env):
        monkeypatch.setenv(TOKEN_ENV_VAR, "env-token")
        stub_keyring(monkeypatch, token=None)

        assert get_api_token() == "env-token"

    def test_unavailable_keyring_falls_back_to_env(self, monkeypatch, no_env):
        monkeypatch.setenv(TOKEN_ENV_VAR, "env-token")
        stub_keyring(monkeypatch, error=NoKeyringError("no backend"))

        assert get_api_token() == "env-token"

    def test_missing_everywhere(self, monkeypatch, no_env):
        stub_keyring(monkeypatch, token=None)

        with pytest.raises(ConfigurationError, match="set-token"):
            get_api_token()


# ======================================================================
# Config file
# ======================================================================


class TestLoadIngestConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path, monkeypatch, no_env):
        stub_keyring(monkeypatch, token=None)

        config = load_ingest_config(tmp_path / "absent.json")

        assert config.endpoint is None
        assert config.token is None
        assert config.request_timeout == constants.REQUEST_TIMEOUT_SECONDS
        assert config.poll_attempts == constants.POLL_ATTEMPTS
        assert config.pipeline_deadline == constants.PIPELINE_DEADLINE_SECONDS

    def test_file_values_and_unknown_keys(self, tmp_path: Path, monkeypatch, no_env, caplog):
        stub_keyring(monkeypatch, token=None)
        path = tmp_path / "ingest_config.json"
        path.write_text(
            json.dumps(
                {
                    "endpoint": "https://cms.example.test/graphql",
                    "token": "file-token",
                    "poll_attempts": 5,
                    "pipeline_deadline": 30.0,
                    "colour": "blue",
                }
            )
        )

        config = load_ingest_config(path)

        assert config.endpoint == "https://cms.example.test/graphql"
        assert config.token == "file-token"
        assert config.poll_attempts == 5
        assert config.pipeline_deadline == 30.0
        assert "colour" in caplog.text

    def test_keyring_token_overrides_file(self, tmp_path: Path, monkeypatch, no_env):
        stub_keyring(monkeypatch, token="keyring-token")
        path = tmp_path / "ingest_config.json"
        path.write_text(json.dumps({"token": "file-token"}))

        assert load_ingest_config(path).token == "keyring-token"

    def test_env_fills_gaps(self, tmp_path: Path, monkeypatch, no_env):
        stub_keyring(monkeypatch, token=None)
        monkeypatch.setenv(TOKEN_ENV_VAR, "env-token")
        monkeypatch.setenv(ENDPOINT_ENV_VAR, "https://env.example.test/graphql")

        config = load_ingest_config(tmp_path / "absent.json")

        assert config.token == "env-token"
        assert config.endpoint == "https://env.example.test/graphql"

    def test_non_object_json_rejected(self, tmp_path: Path, monkeypatch, no_env):
        stub_keyring(monkeypatch, token=None)
        path = tmp_path / "ingest_config.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(ConfigurationError, match="JSON object"):
            load_ingest_config(path)

    def test_token_hidden_from_repr(self, tmp_path: Path, monkeypatch, no_env):
        stub_keyring(monkeypatch, token="super-secret")
        config = load_ingest_config(tmp_path / "absent.json")
        assert "super-secret" not in repr(config)


# ======================================================================
# Keyring token management
# ======================================================================


class TestTokenStorage:
    def test_store_strips_whitespace(self):
        with patch("assetlib.config.keyring") as mock_keyring:
            store_api_token("  abc-token \n")

        mock_keyring.set_password.assert_called_once_with(SERVICE_NAME, KEY_NAME, "abc-token")

    def test_store_blank_rejected(self):
        with patch("assetlib.config.keyring") as mock_keyring:
            with pytest.raises(ConfigurationError, match="empty"):
                store_api_token("   ")

        mock_keyring.set_password.assert_not_called()

    def test_delete_existing(self):
        with patch("assetlib.config.keyring") as mock_keyring:
            mock_keyring.get_password.return_value = "abc-token"
            assert delete_api_token() is True

        mock_keyring.delete_password.assert_called_once_with(SERVICE_NAME, KEY_NAME)

    def test_delete_when_keyring_unavailable(self, monkeypatch):
        stub_keyring(monkeypatch, error=NoKeyringError("no backend"))
        assert delete_api_token() is False

    @pytest.mark.parametrize(
        "token, masked",
        [
            ("abcdefghijkl", "abcdefgh****"),
            ("abcdefgh", "ab******"),
            ("abc", "ab*"),
            ("a", "*"),
        ],
    )
    def test_mask_token(self, token, masked):
        assert mask_token(token) == masked
