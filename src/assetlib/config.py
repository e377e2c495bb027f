"""Configuration loading for the ingestion pipeline.

The control-plane endpoint and pipeline tunables come from
``config/ingest_config.json``; the bearer token comes from the system
keyring, with environment variables as the fallback for both.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from assetlib.models import IngestConfig
from assetlib.upload.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SERVICE_NAME = "assetlib-control-plane"
KEY_NAME = "api_token"

TOKEN_ENV_VAR = "ASSETLIB_TOKEN"
ENDPOINT_ENV_VAR = "ASSETLIB_ENDPOINT"

DEFAULT_CONFIG_PATH = Path("config/ingest_config.json")


def _token_from_keyring() -> str | None:
    try:
        return keyring.get_password(SERVICE_NAME, KEY_NAME)
    except KeyringError:
        logger.debug("System keyring unavailable", exc_info=True)
        return None


def stored_api_token() -> str | None:
    """Token saved in the system keyring, or ``None`` if absent or unavailable."""
    return _token_from_keyring()


def store_api_token(token: str) -> None:
    """Save *token* in the system keyring.

    Raises:
        ConfigurationError: If *token* is blank.
        KeyringError: If the keyring backend rejects the write.
    """
    token = token.strip()
    if not token:
        raise ConfigurationError("Token cannot be empty")
    keyring.set_password(SERVICE_NAME, KEY_NAME, token)


def delete_api_token() -> bool:
    """Remove the keyring token. Returns ``False`` if none was stored."""
    if not _token_from_keyring():
        return False
    keyring.delete_password(SERVICE_NAME, KEY_NAME)
    return True


def mask_token(token: str, visible: int = 8) -> str:
    """Keep the first *visible* characters; short tokens keep at most two."""
    shown = visible if len(token) > visible else max(0, min(2, len(token) - 1))
    return token[:shown] + "*" * (len(token) - shown)


def get_api_token() -> str:
    """Get the control-plane token: system keyring first, then ``ASSETLIB_TOKEN``.

    Raises:
        ConfigurationError: If no token is found anywhere, with setup
            instructions.
    """
    token = _token_from_keyring()
    if token:
        return token

    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        return token

    raise ConfigurationError(
        "Control-plane token not found.\n"
        "Set it with: assetlib config set-token YOUR_TOKEN\n"
        f"Or: export {TOKEN_ENV_VAR}=your-token"
    )


def load_ingest_config(config_path: Path | None = None) -> IngestConfig:
    """Load pipeline configuration from JSON, falling back to defaults.

    Reads ``config/ingest_config.json`` when *config_path* is ``None``; a
    missing file yields an all-defaults config.  Unknown keys are ignored.
    Token precedence: system keyring, then the file, then
    ``ASSETLIB_TOKEN``.  The endpoint comes from the file, else
    ``ASSETLIB_ENDPOINT``.

    The result is not validated here: :class:`ControlPlaneClient` raises
    :class:`ConfigurationError` at construction if endpoint or token is
    missing.

    Args:
        config_path: Optional explicit path to the JSON file.

    Returns:
        IngestConfig populated from file, keyring and environment.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    data: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{config_path} must contain a JSON object")

    # Only recognised fields
    field_names = {f.name for f in IngestConfig.__dataclass_fields__.values()}
    kwargs = {k: v for k, v in data.items() if k in field_names}
    ignored = sorted(set(data) - field_names)
    if ignored:
        logger.warning("Ignoring unknown config keys in %s: %s", config_path, ", ".join(ignored))

    config = IngestConfig(**kwargs)

    keyring_token = _token_from_keyring()
    if keyring_token:
        config.token = keyring_token
    if not config.token:
        config.token = os.environ.get(TOKEN_ENV_VAR)
    if not config.endpoint:
        config.endpoint = os.environ.get(ENDPOINT_ENV_VAR)

    return config
