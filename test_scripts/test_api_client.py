"""Tests for the authenticated API client."""
import pytest
from pydantic import BaseModel
from requests.exceptions import ConnectionError as RequestsConnectionError

from api_client import (
    ApiClient,
    build_http_session,
    build_retry,
)
from errors import (
    ConflictError,
    MalformedResponseError,
    NotFoundError,
    RequestRejectedError,
    ServerError,
    TransportError,
    UnauthorizedError,
)

from conftest import FakeResponse

BASE = "https://api.test"


class Thing(BaseModel):
    id: str


class TestRequest:
    def test_sends_bearer_token_and_json(self, client, http):
        http.add("POST", "/things", FakeResponse(200, {"id": "1"}))

        result = client.post("/things", body={"name": "x"}, model=Thing)

        assert result == Thing(id="1")
        call = http.calls[0]
        assert call["url"] == f"{BASE}/things"
        assert call["headers"]["Authorization"] == "Bearer token-1"
        assert call["json"] == {"name": "x"}

    def test_empty_body_returns_none(self, client, http):
        http.add("PATCH", "/things/1", FakeResponse(204))
        assert client.patch("/things/1") is None

    def test_absolute_url_is_used_as_is(self, client, http):
        http.add("GET", "https://other.test/x", FakeResponse(200, {"ok": True}))
        assert client.get("https://other.test/x") == {"ok": True}


class TestUnauthorizedRefresh:
    def test_401_refreshes_token_and_resends_once(self, client, http, token_manager):
        http.add("GET", "/things", FakeResponse(401), FakeResponse(200, {"id": "1"}))

        result = client.get("/things", model=Thing)

        assert result.id == "1"
        assert token_manager.invalidations == 1
        assert [c["headers"]["Authorization"] for c in http.calls] == [
            "Bearer token-1",
            "Bearer token-2",
        ]

    def test_second_401_is_not_retried(self, client, http, token_manager):
        http.add("GET", "/things", FakeResponse(401))

        with pytest.raises(UnauthorizedError):
            client.get("/things")

        assert len(http.calls) == 2
        assert token_manager.invalidations == 1


class TestClassification:
    @pytest.mark.parametrize(
        "status, error",
        [
            (403, UnauthorizedError),
            (404, NotFoundError),
            (409, ConflictError),
            (422, RequestRejectedError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_codes(self, client, http, status, error):
        http.add("GET", "/things", FakeResponse(status, {"detail": "x"}))
        with pytest.raises(error) as exc_info:
            client.get("/things")
        assert exc_info.value.status_code == status
        assert exc_info.value.body == {"detail": "x"}

    def test_connection_error_is_transport(self, client, http):
        http.add("POST", "/things", RequestsConnectionError("refused"))
        with pytest.raises(TransportError) as exc_info:
            client.post("/things", body={})
        assert exc_info.value.exit_code == 4

    def test_non_json_body_is_malformed(self, client, http):
        http.add("GET", "/things", FakeResponse(200, text="<html>"))
        with pytest.raises(MalformedResponseError):
            client.get("/things")

    def test_wrong_shape_is_malformed(self, client, http):
        http.add("GET", "/things", FakeResponse(200, {"name": "no id"}))
        with pytest.raises(MalformedResponseError):
            client.get("/things", model=Thing)

    def test_empty_body_with_model_is_malformed(self, client, http):
        http.add("GET", "/things", FakeResponse(200))
        with pytest.raises(MalformedResponseError):
            client.get("/things", model=Thing)


class TestRetryPolicy:
    def test_reads_and_statuses_retried_for_get_only(self):
        retry = build_retry()
        assert retry.allowed_methods == frozenset({"GET"})
        assert retry.read == 3
        assert retry.status == 3
        assert set(retry.status_forcelist) == {500, 502, 503, 504}

    def test_writes_not_retried_on_server_errors(self):
        retry = build_retry()
        assert retry.connect == 3
        assert retry.is_retry("POST", 503) is False
        assert retry.is_retry("PATCH", 502) is False
        assert retry.is_retry("GET", 503) is True

    def test_session_mounts_retry_adapter(self):
        session = build_http_session()
        adapter = session.get_adapter("https://services.api.unity.com")
        assert adapter.max_retries.total == 3
        assert adapter.max_retries.allowed_methods == frozenset({"GET"})


class TestFileTransfer:
    def test_put_content_streams_file(self, client, http, make_file):
        path = make_file("model.fbx", b"0123456789")
        http.add("PUT", "https://blob.test/upload", FakeResponse(201))

        client.put_content("https://blob.test/upload?sig=abc", path)

        call = http.calls[0]
        assert call["data"] == b"0123456789"
        assert call["headers"]["x-ms-blob-type"] == "BlockBlob"
        assert call["headers"]["Content-Length"] == "10"
        assert "Authorization" not in call["headers"]

    def test_put_content_failure_hides_signature(self, client, http, make_file):
        path = make_file("model.fbx")
        http.add("PUT", "https://blob.test/upload", FakeResponse(403, text="denied"))
        with pytest.raises(UnauthorizedError) as exc_info:
            client.put_content("https://blob.test/upload?sig=abc", path)
        assert "sig=abc" not in str(exc_info.value)

    def test_download_writes_file(self, client, http, tmp_path):
        http.add("GET", "https://blob.test/file", FakeResponse(200, text="payload"))
        target = tmp_path / "out" / "file.txt"

        client.download("https://blob.test/file?sig=1", target)

        assert target.read_text() == "payload"
        assert http.calls[0]["stream"] is True


def test_context_manager_closes_session(credential, token_manager, http):
    with ApiClient(credential, token_manager, http=http):
        pass
    assert http.closed
