"""OS credential vault adapter.

Wraps the ``keyring`` library (macOS Keychain, Windows Credential Locker,
Linux Secret Service).  Exactly one secret, the service account client
secret, is stored per composite key.  Secret values are never logged.
"""

import logging

import keyring
from keyring.errors import (
    KeyringError,
    NoKeyringError,
    PasswordDeleteError,
)

from errors import (
    SecretAccessDeniedError,
    SecretNotFoundError,
    SecretStoreUnavailableError,
)

logger = logging.getLogger("uamcli.secrets")

DEFAULT_SERVICE_NAME = "uamcli"


class KeyringSecretStore:
    """Store, retrieve and delete secrets in the OS vault.

    Args:
        service_name: Vault service name the entries are filed under.
    """

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME) -> None:
        self.service_name = service_name

    def store(self, key: str, secret: str) -> None:
        """Create or overwrite the secret for ``key``.

        Raises:
            SecretAccessDeniedError: The vault refused the write.
            SecretStoreUnavailableError: No vault backend exists.
        """
        logger.debug("Storing secret for %s", key)
        try:
            keyring.set_password(self.service_name, key, secret)
        except NoKeyringError as exc:
            raise SecretStoreUnavailableError(str(exc)) from exc
        except KeyringError as exc:
            raise SecretAccessDeniedError(key, type(exc).__name__) from exc

    def retrieve(self, key: str) -> str:
        """Return the secret stored under ``key``.

        Raises:
            SecretNotFoundError: Nothing is stored under ``key``.
            SecretAccessDeniedError: The vault refused the read.
            SecretStoreUnavailableError: No vault backend exists.
        """
        try:
            secret = keyring.get_password(self.service_name, key)
        except NoKeyringError as exc:
            raise SecretStoreUnavailableError(str(exc)) from exc
        except KeyringError as exc:
            raise SecretAccessDeniedError(key, type(exc).__name__) from exc

        if secret is None:
            raise SecretNotFoundError(key)
        return secret

    def delete(self, key: str) -> None:
        """Remove the secret stored under ``key``.

        Raises:
            SecretNotFoundError: Nothing is stored under ``key``.
            SecretAccessDeniedError: The vault refused the delete.
            SecretStoreUnavailableError: No vault backend exists.
        """
        logger.debug("Deleting secret for %s", key)
        try:
            keyring.delete_password(self.service_name, key)
        except NoKeyringError as exc:
            raise SecretStoreUnavailableError(str(exc)) from exc
        except PasswordDeleteError as exc:
            raise SecretNotFoundError(key) from exc
        except KeyringError as exc:
            raise SecretAccessDeniedError(key, type(exc).__name__) from exc
