"""Tests for HTTP client implementations."""

from unittest.mock import MagicMock

import pytest
import requests

from retryafter import (
    RETRY_AFTER,
    HttpClient,
    InMemoryCache,
    RequestsHttpClient,
    RetryAfterHttpClient,
    create_http_client,
)


def make_response(status_code: int, headers: dict[str, str] | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.headers.update(headers or {})
    response.url = "https://api.example.com/v1/resource"
    response.reason = "Too Many Requests" if status_code == 429 else "OK"
    return response


@pytest.fixture(autouse=True)
def reset_config():
    RETRY_AFTER.reset()
    yield
    RETRY_AFTER.reset()


class TestRequestsHttpClient:
    """Tests for RequestsHttpClient."""

    def test_is_an_http_client(self):
        assert isinstance(RequestsHttpClient(session=MagicMock()), HttpClient)

    def test_creates_session_when_not_given(self):
        client = RequestsHttpClient()

        assert isinstance(client.session, requests.Session)

    def test_get_delegates_to_session(self):
        session = MagicMock(spec=requests.Session)
        session.get.return_value = make_response(200)
        client = RequestsHttpClient(session=session)

        response = client.get(
            "https://api.example.com/v1/resource",
            headers={"X-Test": "1"},
            timeout=5,
            options={"retry_after_cache_key": "ignored"},
        )

        assert response.status_code == 200
        session.get.assert_called_once_with(
            "https://api.example.com/v1/resource",
            headers={"X-Test": "1"},
            timeout=5,
        )

    def test_post_sends_json_body(self):
        session = MagicMock(spec=requests.Session)
        session.post.return_value = make_response(200)
        client = RequestsHttpClient(session=session)

        client.post("https://api.example.com/v1/resource", data={"key": "value"})

        session.post.assert_called_once_with(
            "https://api.example.com/v1/resource",
            json={"key": "value"},
            headers=None,
            timeout=30,
        )

    def test_raises_http_error_with_response_attached(self):
        session = MagicMock(spec=requests.Session)
        session.post.return_value = make_response(429, {"Retry-After": "2"})
        client = RequestsHttpClient(session=session)

        with pytest.raises(requests.HTTPError) as exc_info:
            client.post("https://api.example.com/v1/resource", data={})

        assert exc_info.value.response.status_code == 429
        assert exc_info.value.response.headers["Retry-After"] == "2"

    def test_returns_error_response_when_raise_for_status_disabled(self):
        session = MagicMock(spec=requests.Session)
        session.get.return_value = make_response(503)
        client = RequestsHttpClient(session=session, raise_for_status=False)

        response = client.get("https://api.example.com/v1/resource")

        assert response.status_code == 503

    def test_raise_for_status_defaults_to_global_config(self):
        RETRY_AFTER.configure(http={"raise_for_status": False})

        client = RequestsHttpClient(session=MagicMock())

        assert client.raise_for_status is False

    def test_fails_when_url_is_empty(self):
        client = RequestsHttpClient(session=MagicMock())

        with pytest.raises(AssertionError, match="URL cannot be empty"):
            client.get("")

    def test_fails_when_timeout_is_not_positive(self):
        client = RequestsHttpClient(session=MagicMock())

        with pytest.raises(AssertionError, match="Timeout must be greater than 0"):
            client.post("https://api.example.com", timeout=0)


class TestCreateHttpClient:
    """Tests for create_http_client()."""

    def test_wraps_requests_client_with_gate(self):
        cache = InMemoryCache()
        session = MagicMock(spec=requests.Session)

        client = create_http_client(cache=cache, cache_key="sendMessage", session=session)

        assert isinstance(client, RetryAfterHttpClient)
        assert isinstance(client.delegate, RequestsHttpClient)
        assert client.delegate.session is session
        assert client.cache is cache
        assert client.cache_key == "sendMessage"

    def test_gated_client_blocks_after_429(self):
        session = MagicMock(spec=requests.Session)
        session.post.return_value = make_response(429, {"Retry-After": "60"})
        client = create_http_client(cache=InMemoryCache(), cache_key="sendMessage", session=session)

        with pytest.raises(requests.HTTPError):
            client.post("https://api.example.com/v1/resource", data={})

        with pytest.raises(requests.RequestException, match="Retry after"):
            client.post("https://api.example.com/v1/resource", data={})

        assert session.post.call_count == 1
