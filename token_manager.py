"""Bearer token acquisition and caching.

The service account key (client ID + secret) is exchanged for a short-lived
access token.  The token is cached in memory for the life of the process and
refreshed when it is about to expire or when the API answers 401.  Nothing is
written to disk.
"""

import base64
import json
import logging
import threading
import time
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import requests
from pydantic import ValidationError
from requests.exceptions import RequestException

from errors import AuthUnreachableError, InvalidCredentialsError, MalformedResponseError
from models.uamcli import Credential, SessionToken
from models.unity import TokenResponse

logger = logging.getLogger("uamcli.auth")

DEFAULT_TOKEN_URL = "https://services.api.unity.com/auth/v1/token-exchange"

# Used when neither the response nor the JWT reports a lifetime
DEFAULT_TOKEN_LIFETIME = 3600.0

# Refresh this many seconds before the reported expiry
DEFAULT_SAFETY_MARGIN = 60.0

TOKEN_REQUEST_TIMEOUT = 30


def _basic_auth_header(client_id: str, client_secret: str) -> str:
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _jwt_expiry(token: str) -> Optional[float]:
    """Read the ``exp`` claim of a JWT without verifying it."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except ValueError:
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    return float(exp) if isinstance(exp, (int, float)) else None


class TokenManager:
    """Owns the session token for one credential.

    The client secret is read from ``secret_store`` each time a new token is
    needed and is not kept on this object.

    Args:
        credential: Non-secret credential identifiers.
        secret_store: Object with ``retrieve(key) -> str``.
        http: ``requests.Session`` (or compatible) used for the exchange.
        token_url: Token exchange endpoint.
        clock: Returns the current time in epoch seconds.
        safety_margin: Seconds before expiry at which a token is renewed.
    """

    def __init__(
        self,
        credential: Credential,
        secret_store: Any,
        http: requests.Session,
        token_url: str = DEFAULT_TOKEN_URL,
        clock: Callable[[], float] = time.time,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
    ) -> None:
        self.credential = credential
        self.secret_store = secret_store
        self.http = http
        self.token_url = token_url
        self.clock = clock
        self.safety_margin = safety_margin
        self._token: Optional[SessionToken] = None
        self._lock = threading.Lock()

    @property
    def cached_token(self) -> Optional[SessionToken]:
        return self._token

    def get_valid_token(self) -> str:
        """Return a token that is not about to expire, refreshing if needed.

        Concurrent callers are serialized on a lock; a caller that waited
        while another thread refreshed picks up the fresh token instead of
        issuing its own exchange.

        Raises:
            InvalidCredentialsError: The endpoint answered 401/403.
            AuthUnreachableError: The endpoint could not be reached.
            SecretError: The client secret could not be read from the vault.
        """
        token = self._token
        if token is not None and token.is_valid(self.clock(), self.safety_margin):
            return token.value

        with self._lock:
            token = self._token
            if token is not None and token.is_valid(self.clock(), self.safety_margin):
                return token.value
            self._token = self._request_token()
            return self._token.value

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs a fresh exchange."""
        with self._lock:
            self._token = None

    def _request_token(self) -> SessionToken:
        client_secret = self.secret_store.retrieve(self.credential.secret_key())
        query = urlencode(
            {
                "projectId": self.credential.project_id,
                "environmentId": self.credential.environment_id,
            }
        )
        url = f"{self.token_url}?{query}"
        headers = {
            "Authorization": _basic_auth_header(self.credential.client_id, client_secret),
            "Cache-Control": "no-cache",
            "Content-Length": "0",
        }

        logger.debug("Requesting access token: POST %s", self.token_url)
        requested_at = self.clock()
        try:
            response = self.http.request(
                "POST", url, headers=headers, timeout=TOKEN_REQUEST_TIMEOUT
            )
        except RequestException as exc:
            raise AuthUnreachableError(
                f"Could not reach the token endpoint: {exc}"
            ) from exc

        if response.status_code in (401, 403):
            raise InvalidCredentialsError(response.status_code)
        if response.status_code >= 500:
            raise AuthUnreachableError(
                f"Token endpoint unavailable (HTTP {response.status_code})"
            )
        if response.status_code >= 400:
            raise InvalidCredentialsError(response.status_code)

        try:
            payload = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MalformedResponseError(
                "Token endpoint returned an unexpected body",
                status_code=response.status_code,
            ) from exc

        if payload.expires_in is not None:
            expires_at = requested_at + payload.expires_in
        else:
            expires_at = _jwt_expiry(payload.access_token) or (
                requested_at + DEFAULT_TOKEN_LIFETIME
            )

        logger.info("Obtained access token (expires in %.0fs)", expires_at - requested_at)
        return SessionToken(value=payload.access_token, expires_at=expires_at)
