import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from api_client import ApiClient
from errors import AuthUnreachableError, SecretNotFoundError
from models.uamcli import Credential


class InMemorySecretStore:
    """Vault fake with the same interface as KeyringSecretStore."""

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self.secrets = dict(secrets or {})
        self.reads = 0

    def store(self, key: str, secret: str) -> None:
        self.secrets[key] = secret

    def retrieve(self, key: str) -> str:
        self.reads += 1
        if key not in self.secrets:
            raise SecretNotFoundError(key)
        return self.secrets[key]

    def delete(self, key: str) -> None:
        if key not in self.secrets:
            raise SecretNotFoundError(key)
        del self.secrets[key]


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        if text is not None:
            self.text = text
        elif payload is not None:
            self.text = json.dumps(payload)
        else:
            self.text = ""
        self.content = self.text.encode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text)

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]


class FakeHttpSession:
    """Scripted stand-in for ``requests.Session``.

    Routes are matched on method and the end of the URL path (query string
    ignored); the longest matching suffix wins.  Each route replays its
    queued responses in order and repeats the last one.
    Queued exceptions are raised instead of returned.
    """

    def __init__(self):
        self.routes: List[Dict[str, Any]] = []
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def add(self, method: str, fragment: str, *responses: Any) -> None:
        self.routes.append(
            {"method": method.upper(), "fragment": fragment, "responses": list(responses)}
        )

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        data = kwargs.get("data")
        if hasattr(data, "read"):
            kwargs["data"] = data.read()
        self.calls.append({"method": method.upper(), "url": url, **kwargs})

        matches = [
            route for route in self.routes
            if route["method"] == method.upper() and url.split("?", 1)[0].endswith(route["fragment"])
        ]
        if not matches:
            raise AssertionError(f"Unexpected request: {method} {url}")
        route = max(matches, key=lambda r: len(r["fragment"]))
        responses = route["responses"]
        outcome = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def calls_to(self, method: str, fragment: str = "") -> List[Dict[str, Any]]:
        return [
            call for call in self.calls
            if call["method"] == method.upper() and fragment in call["url"]
        ]

    def close(self) -> None:
        self.closed = True


class StaticTokenManager:
    """Hands out numbered tokens; ``invalidate`` moves to the next one.

    With ``fail_after`` set, calls beyond that count raise
    ``AuthUnreachableError`` as if the token endpoint went down.
    """

    def __init__(self, fail_after: Optional[int] = None):
        self.generation = 1
        self.invalidations = 0
        self.requests = 0
        self.fail_after = fail_after

    def get_valid_token(self) -> str:
        self.requests += 1
        if self.fail_after is not None and self.requests > self.fail_after:
            raise AuthUnreachableError("token endpoint down")
        return f"token-{self.generation}"

    def invalidate(self) -> None:
        self.invalidations += 1
        self.generation += 1


@pytest.fixture
def credential():
    return Credential(
        organization_id="org-1",
        project_id="proj-1",
        environment_id="env-1",
        client_id="client-1",
    )


@pytest.fixture
def secret_store(credential):
    return InMemorySecretStore({credential.secret_key(): "s3cr3t-value"})


@pytest.fixture
def http():
    return FakeHttpSession()


@pytest.fixture
def token_manager():
    return StaticTokenManager()


@pytest.fixture
def client(credential, token_manager, http):
    return ApiClient(credential, token_manager, base_url="https://api.test", http=http)


@pytest.fixture
def make_file(tmp_path: Path):
    """Create a file with the given name and content under tmp_path."""

    def _make_file(name: str, content: bytes = b"data") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _make_file
