"""CLI configuration file.

The non-secret credential identifiers live in a YAML file under the user's
configuration directory::

    organization_id: 1234567890
    project_id: 0f3c...
    environment_id: 8a2d...
    client_id: 5e1b...

The client secret is never written here; it goes to the OS vault through
:mod:`secret_store`.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from api_client import DEFAULT_BASE_URL, ApiClient, build_http_session
from errors import ConfigurationError, SecretNotFoundError
from models.uamcli import Credential
from secret_store import KeyringSecretStore
from token_manager import DEFAULT_TOKEN_URL, TokenManager

logger = logging.getLogger("uamcli.config")

CONFIG_ENV_VAR = "UAMCLI_CONFIG"
CONFIG_DIR_NAME = "uamcli"
CONFIG_FILE_NAME = "config.yml"

PathArg = Union[str, os.PathLike]


class Configuration(Credential):
    """
    Credential identifiers plus service endpoints.

    Attributes:
        base_url (str): Asset Manager API root.
        token_url (str): Token exchange endpoint.
    """

    base_url: str = DEFAULT_BASE_URL
    token_url: str = DEFAULT_TOKEN_URL

    @property
    def credential(self) -> Credential:
        return Credential(
            organization_id=self.organization_id,
            project_id=self.project_id,
            environment_id=self.environment_id,
            client_id=self.client_id,
        )

    def to_file_dict(self) -> Dict[str, Any]:
        """Fields written to the YAML file; endpoints only when non-default."""
        data = self.model_dump()
        if data["base_url"] == DEFAULT_BASE_URL:
            del data["base_url"]
        if data["token_url"] == DEFAULT_TOKEN_URL:
            del data["token_url"]
        return data


def default_configuration_path() -> Path:
    """Location of ``config.yml`` for this user and platform.

    ``UAMCLI_CONFIG`` overrides the platform default.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg) if xdg else Path.home() / ".config"
    return base / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _resolve(path: Optional[PathArg]) -> Path:
    return Path(path).expanduser() if path else default_configuration_path()


def load_configuration(path: Optional[PathArg] = None) -> Configuration:
    """Read and validate the configuration file.

    Raises:
        ConfigurationError: The file is missing, not YAML, or incomplete.
    """
    config_file = _resolve(path)
    if not config_file.exists():
        raise ConfigurationError(
            f"Configuration not found: {config_file}. Run 'uamcli config set' first."
        )

    try:
        with open(config_file, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read configuration {config_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {config_file} is not a mapping")

    # IDs that look numeric come back from YAML as ints
    data = {key: str(value) if value is not None else value for key, value in data.items()}
    try:
        config = Configuration.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise ConfigurationError(
            f"Configuration {config_file} is incomplete or invalid: {fields}"
        ) from exc

    logger.debug("Loaded configuration: %s", config_file)
    return config


def save_configuration(
    config: Configuration,
    path: Optional[PathArg] = None,
    client_secret: Optional[str] = None,
    secret_store: Any = None,
) -> Path:
    """Write the configuration file and, when given, the client secret.

    Returns:
        Path of the written file.
    """
    config_file = _resolve(path)
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as fh:
            yaml.safe_dump(config.to_file_dict(), fh, default_flow_style=False, sort_keys=False)
    except OSError as exc:
        raise ConfigurationError(f"Cannot write configuration {config_file}: {exc}") from exc
    logger.info("Configuration saved to %s", config_file)

    if client_secret is not None:
        store = secret_store if secret_store is not None else KeyringSecretStore()
        store.store(config.secret_key(), client_secret)
        logger.info("Client secret stored in the OS credential vault")
    return config_file


def delete_configuration(path: Optional[PathArg] = None, secret_store: Any = None) -> Path:
    """Remove the configuration file and its vault entry.

    A vault entry that is already gone is not an error.
    """
    config = load_configuration(path)
    config_file = _resolve(path)

    store = secret_store if secret_store is not None else KeyringSecretStore()
    try:
        store.delete(config.secret_key())
    except SecretNotFoundError:
        logger.info("No client secret stored for this configuration")

    try:
        config_file.unlink()
    except OSError as exc:
        raise ConfigurationError(f"Cannot delete configuration {config_file}: {exc}") from exc
    logger.info("Configuration deleted: %s", config_file)
    return config_file


def build_client(config: Configuration, secret_store: Any = None) -> ApiClient:
    """Wire a token manager and API client for ``config``."""
    store = secret_store if secret_store is not None else KeyringSecretStore()
    http = build_http_session()
    token_manager = TokenManager(config.credential, store, http, token_url=config.token_url)
    return ApiClient(config.credential, token_manager, base_url=config.base_url, http=http)
