"""
HTTP client abstraction for the retryafter package.

This module provides the handler interface the gate wraps, plus a plain
`requests`-based transport. Implementations can be wrapped with decorators
(like RetryAfterHttpClient) for rate limiting and other cross-cutting concerns.

Available implementations:
    - RequestsHttpClient: Transport over a requests.Session.
    - RetryAfterHttpClient: Decorator that enforces Retry-After backoff (see _gate).

Example:
    >>> from retryafter import InMemoryCache, create_http_client
    >>> client = create_http_client(cache=InMemoryCache(), cache_key="sendMessage")
    >>> response = client.post("https://api.example.com/v1/resource", data={"key": "value"})

Request options:
    Every call accepts an `options` mapping. Transports ignore it; decorators
    read the settings addressed to them (e.g. the cache key option).
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, override

import requests

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from retryafter._cache import Cache
    from retryafter._gate import RetryAfterHttpClient


# =============================================================================
# Abstract Base Class
# =============================================================================


class HttpClient(ABC):
    """
    Abstract base class for HTTP clients.

    This is the unified HTTP client interface of the package. The gate both
    consumes and implements it, so decorators compose at any position of a
    client chain.

    Example:
        >>> class MyHttpClient(HttpClient):
        ...     def get(self, url, headers=None, timeout=30, options=None):
        ...         return requests.get(url, headers=headers, timeout=timeout)
        ...     def post(self, url, data=None, headers=None, timeout=30, options=None):
        ...         return requests.post(url, json=data, headers=headers, timeout=timeout)
    """

    @abstractmethod
    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        options: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Execute a GET request.

        Args:
            url: The full URL to request.
            headers: Additional headers to include.
            timeout: Request timeout in seconds.
            options: Per-request settings read by decorators.

        Returns:
            The HTTP response.

        Raises:
            requests.RequestException: If the HTTP request fails.
        """
        pass

    @abstractmethod
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        options: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Execute a POST request with JSON body.

        Args:
            url: The full URL to request.
            data: JSON-serializable data to send in the request body.
            headers: Additional headers to include.
            timeout: Request timeout in seconds.
            options: Per-request settings read by decorators.

        Returns:
            The HTTP response.

        Raises:
            requests.RequestException: If the HTTP request fails.
        """
        pass


# =============================================================================
# requests Implementation
# =============================================================================


class RequestsHttpClient(HttpClient):
    """
    HTTP client backed by a `requests.Session`.

    When `raise_for_status` is enabled (default), 4xx and 5xx responses raise
    `requests.HTTPError` with the response attached, so rate-limit signals on
    error responses remain reachable through `exc.response`.

    Example:
        >>> client = RequestsHttpClient()
        >>> response = client.get("https://api.example.com/v1/status")

    Args:
        session: Session to send requests with. A new one is created if omitted.
        raise_for_status: Whether to raise on 4xx/5xx responses.
            Defaults to RETRY_AFTER.config.http.raise_for_status.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        raise_for_status: bool | None = None,
    ):
        from retryafter._config import RETRY_AFTER

        self.session = session or requests.Session()
        self.raise_for_status = (
            raise_for_status if raise_for_status is not None else RETRY_AFTER.config.http.raise_for_status
        )

    def _check(self, response: requests.Response) -> requests.Response:
        if self.raise_for_status:
            response.raise_for_status()
        return response

    @override
    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        options: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Execute a GET request.

        Raises:
            AssertionError: If url is empty or timeout is invalid.
            requests.HTTPError: If raise_for_status is enabled and the response is 4xx/5xx.
            requests.RequestException: If the HTTP request fails.
        """
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        logger.debug(f"RequestsHttpClient: GET {url}")
        return self._check(self.session.get(url, headers=headers, timeout=timeout))

    @override
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        options: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Execute a POST request with JSON body.

        Raises:
            AssertionError: If url is empty or timeout is invalid.
            requests.HTTPError: If raise_for_status is enabled and the response is 4xx/5xx.
            requests.RequestException: If the HTTP request fails.
        """
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        logger.debug(f"RequestsHttpClient: POST {url}")
        return self._check(self.session.post(url, json=data, headers=headers, timeout=timeout))


# =============================================================================
# Factory
# =============================================================================


def create_http_client(
    cache: "Cache",
    cache_key: str | None = None,
    session: requests.Session | None = None,
) -> "RetryAfterHttpClient":
    """
    Create a requests transport wrapped with the Retry-After gate.

    Settings not passed explicitly come from RETRY_AFTER.config.

    Args:
        cache: Cache used to store retry deadlines.
        cache_key: Default cache key for requests that carry none.
        session: Optional requests.Session for the transport.

    Returns:
        A RetryAfterHttpClient delegating to a RequestsHttpClient.

    Example:
        >>> client = create_http_client(cache=InMemoryCache())
        >>> client.post(url, data=payload, options={"retry_after_cache_key": "sendMessage"})
    """
    # Lazy import to avoid circular dependencies
    from retryafter._gate import RetryAfterHttpClient

    return RetryAfterHttpClient(
        delegate=RequestsHttpClient(session=session),
        cache=cache,
        cache_key=cache_key,
    )
