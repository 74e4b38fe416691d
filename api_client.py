"""Authenticated HTTP facade for the Unity Asset Manager API.

Every call obtains a bearer token from the :class:`TokenManager`, sends the
body as JSON and decodes the JSON reply, optionally into a pydantic model.
Failures are classified into the :class:`errors.ApiError` family.

Retry policy (enforced by the urllib3 ``Retry`` mounted on the session):

* GET is retried on connection errors, read errors and 5xx answers with
  exponential backoff.
* Writes are retried only when the connection could not be established,
  i.e. before any byte of the request left the client.  Once dispatched, a
  write is never resent automatically.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from errors import (
    ConflictError,
    MalformedResponseError,
    NotFoundError,
    RequestRejectedError,
    ServerError,
    TransportError,
    UnauthorizedError,
)
from models.uamcli import Credential

logger = logging.getLogger("uamcli.api")

DEFAULT_BASE_URL = "https://services.api.unity.com"
USER_AGENT = "uamcli"

MAX_RETRIES = 3
BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = (500, 502, 503, 504)
IDEMPOTENT_METHODS = frozenset({"GET"})

REQUEST_TIMEOUT = 30
TRANSFER_TIMEOUT = 120

# Download chunk size
_CHUNK_SIZE = 65_536

ModelT = TypeVar("ModelT", bound=BaseModel)


def build_retry(max_retries: int = MAX_RETRIES, backoff_factor: float = BACKOFF_FACTOR) -> Retry:
    """Retry policy for the shared session.

    ``connect`` retries apply to every method because a connect failure
    means nothing was sent.  ``read`` and ``status`` retries are limited to
    ``IDEMPOTENT_METHODS`` by ``allowed_methods``.
    """
    return Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        other=0,
        allowed_methods=IDEMPOTENT_METHODS,
        status_forcelist=RETRY_STATUS_CODES,
        backoff_factor=backoff_factor,
        raise_on_status=False,
        respect_retry_after_header=True,
    )


def build_http_session(
    max_retries: int = MAX_RETRIES,
    backoff_factor: float = BACKOFF_FACTOR,
) -> requests.Session:
    """Create a ``requests.Session`` with the retry policy mounted."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=build_retry(max_retries, backoff_factor))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def _error_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def classify_response(method: str, url: str, response: requests.Response) -> None:
    """Raise the matching :class:`ApiError` for a non-2xx response."""
    status = response.status_code
    if status < 400:
        return

    body = _error_body(response)
    message = f"{method} {url} failed with HTTP {status}"

    if status in (401, 403):
        raise UnauthorizedError(message, status_code=status, body=body)
    if status == 404:
        raise NotFoundError(message, status_code=status, body=body)
    if status == 409:
        raise ConflictError(message, status_code=status, body=body)
    if status >= 500:
        raise ServerError(message, status_code=status, body=body)
    raise RequestRejectedError(message, status_code=status, body=body)


class ApiClient:
    """Authenticated JSON client bound to one credential.

    Args:
        credential: Organization/project/environment/client identifiers.
        token_manager: Supplies bearer tokens.
        base_url: API root, without trailing slash.
        http: Session used for every call; defaults to
            :func:`build_http_session`.
    """

    def __init__(
        self,
        credential: Credential,
        token_manager: Any,
        base_url: str = DEFAULT_BASE_URL,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.credential = credential
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else build_http_session()

    @property
    def organization_id(self) -> str:
        return self.credential.organization_id

    @property
    def project_id(self) -> str:
        return self.credential.project_id

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ---------------------------------------------------------------
    #  JSON requests
    # ---------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        model: Optional[Type[ModelT]] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> Any:
        """Send an authenticated request and decode the reply.

        Args:
            method: HTTP method.
            path: Path below ``base_url`` (leading slash) or an absolute URL.
            body: JSON-serializable request body.
            params: Query parameters.
            model: Pydantic model to validate the reply into.
            timeout: Seconds before the call is abandoned.

        Returns:
            The validated model, the decoded JSON, or ``None`` for an empty
            reply.

        Raises:
            ApiError: Any classified failure.
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        method = method.upper()

        response = self._send(method, url, body, params, timeout)
        if response.status_code == 401:
            # Token may have expired early (clock skew); refresh exactly once.
            logger.info("Received 401, refreshing access token and retrying once")
            self.token_manager.invalidate()
            response = self._send(method, url, body, params, timeout)

        classify_response(method, url, response)
        return self._decode(method, url, response, model)

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, body=body, **kwargs)

    def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, body=body, **kwargs)

    def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", path, body=body, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def _send(
        self,
        method: str,
        url: str,
        body: Any,
        params: Optional[Dict[str, Any]],
        timeout: float,
    ) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self.token_manager.get_valid_token()}",
            "Accept": "application/json",
            "Cache-Control": "no-cache",
        }
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": timeout}
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["json"] = body

        logger.debug("%s %s", method, url)
        try:
            response = self.http.request(method, url, **kwargs)
        except RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        logger.debug("Response: HTTP %s", response.status_code)
        return response

    @staticmethod
    def _decode(
        method: str,
        url: str,
        response: requests.Response,
        model: Optional[Type[ModelT]],
    ) -> Any:
        if not response.content:
            if model is not None:
                raise MalformedResponseError(
                    f"{method} {url} returned an empty body",
                    status_code=response.status_code,
                )
            return None

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{method} {url} returned a body that is not JSON",
                status_code=response.status_code,
            ) from exc

        if model is None:
            return payload
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"{method} {url} returned an unexpected shape: {exc.error_count()} error(s)",
                status_code=response.status_code,
                body=payload,
            ) from exc

    # ---------------------------------------------------------------
    #  File transfer (pre-signed storage URLs, no bearer token)
    # ---------------------------------------------------------------

    def put_content(self, upload_url: str, file_path: Path) -> None:
        """Stream a local file to a pre-signed upload URL.

        The content PUT is a write: it is never repeated by this client once
        dispatched.

        Raises:
            OSError: The local file cannot be read.
            ApiError: The storage service rejected the upload.
        """
        size = file_path.stat().st_size
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "Content-Length": str(size),
        }
        with open(file_path, "rb") as fh:
            try:
                response = self.http.request(
                    "PUT", upload_url, data=fh, headers=headers, timeout=TRANSFER_TIMEOUT
                )
            except RequestException as exc:
                raise TransportError(f"Upload of {file_path.name} failed: {exc}") from exc
        classify_response("PUT", upload_url.split("?", 1)[0], response)

    def download(self, url: str, destination: Path) -> Path:
        """Stream a pre-signed download URL into ``destination``."""
        try:
            response = self.http.request("GET", url, stream=True, timeout=TRANSFER_TIMEOUT)
        except RequestException as exc:
            raise TransportError(f"Download of {destination.name} failed: {exc}") from exc
        classify_response("GET", url.split("?", 1)[0], response)

        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(destination, "wb") as fh:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    fh.write(chunk)
        return destination
