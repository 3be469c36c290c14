"""
Retry-After gate: an HTTP client decorator that honors server-advertised backoff.

When a response (success or error) carries a `Retry-After` header, the gate
records a deadline in a cache under the request's cache key. Until that
deadline passes, every request sharing the key fails fast with
RateLimitedError instead of reaching the network.

The gate never retries on its own. It only blocks and reports, leaving retry
orchestration to the caller (e.g. catch RateLimitedError and reschedule after
`error.retry_after`).

Example:
    >>> from retryafter import InMemoryCache, RequestsHttpClient, RetryAfterHttpClient
    >>> client = RetryAfterHttpClient(
    ...     delegate=RequestsHttpClient(),
    ...     cache=InMemoryCache(),
    ... )
    >>> client.post(
    ...     "https://api.telegram.org/bot<token>/sendMessage",
    ...     data={"chat_id": 1, "text": "hi"},
    ...     options={"retry_after_cache_key": "sendMessage"},
    ... )

Concurrency:
    The gate holds no lock. Two concurrent requests with the same key may both
    pass the pre-flight check and both record a deadline afterwards (last
    writer wins). Requests issued after a deadline is known are always blocked.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, override

import requests
from urllib3 import HTTPHeaderDict

from retryafter._cache import Cache
from retryafter._http import HttpClient
from retryafter._utils import (
    compute_deadline,
    compute_ttl,
    from_iso_string,
    split_folded_values,
    to_iso_string,
)

logger = logging.getLogger(__name__)

_MISSING = object()


# =============================================================================
# Exceptions
# =============================================================================


class InvalidCacheKeyError(requests.RequestException):
    """
    Raised before any I/O when a request carries no usable cache key.

    The cache key must be a non-empty string, supplied either per request via
    the cache key option or bound to the gate at construction. This is a
    caller contract violation and should not be retried.

    Attributes:
        option: Name of the request option holding the cache key.
        request: The request that was rejected.
    """

    def __init__(self, message: str, option: str, request: requests.Request):
        self.option = option
        super().__init__(message, request=request)


class RateLimitedError(requests.RequestException):
    """
    Raised when a request is blocked by an active Retry-After deadline.

    This is the expected, recoverable signal of the gate: callers should branch
    on it to decide whether (and when) to try again. The blocked request never
    reached the delegate client.

    Attributes:
        cache_key: The rate-limit bucket that is blocked.
        retry_after: Deadline until which requests are blocked (inclusive).
        checked_at: Time at which the request was checked.
        request: The request that was blocked.

    Example:
        >>> try:
        ...     client.post(url, data, options={"retry_after_cache_key": "sendMessage"})
        ... except RateLimitedError as e:
        ...     print(f"Blocked for {(e.retry_after - e.checked_at).total_seconds():.1f}s")
    """

    def __init__(
        self,
        cache_key: str,
        retry_after: datetime,
        checked_at: datetime,
        request: requests.Request,
    ):
        self.cache_key = cache_key
        self.retry_after = retry_after
        self.checked_at = checked_at
        super().__init__(
            f"Retry after {to_iso_string(retry_after)}. Checked at {to_iso_string(checked_at)}.",
            request=request,
        )


# =============================================================================
# Gate
# =============================================================================


class RetryAfterHttpClient(HttpClient):
    """
    HTTP client decorator that blocks requests during a server-advertised Retry-After window.

    Each request is processed in three steps:

    1. Key resolution: the cache key comes from `options[request_option]`,
       falling back to the key bound at construction. A missing, non-string
       or empty key raises InvalidCacheKeyError before any cache access.
    2. Pre-flight: if the cache holds a deadline at or after now, the request
       is rejected with RateLimitedError without calling the delegate.
       Deadlines in the past are ignored (the entry is left to expire).
    3. Post-flight: the Retry-After header of the response is captured into
       the cache, whatever the status code. When the delegate raises a
       requests.RequestException carrying a response (e.g. HTTPError on 429),
       that response is captured too and the original exception re-raised.

    Args:
        delegate: The underlying HTTP client to delegate requests to.
        cache: Cache storing one deadline per key.
        cache_key: Default cache key used when a request carries none.
        request_option: Name of the request option holding the cache key.
        header_name: Response header carrying the rate-limit signal.
        ttl_margin: Extra seconds a deadline is kept in the cache.
        require_cache_key: If False, requests without any key are forwarded ungated.
        clock: Returns the current time as an aware datetime.

    Any argument left as None falls back to RETRY_AFTER.config.gate.

    Raises:
        InvalidCacheKeyError: If the request carries no usable cache key.
        RateLimitedError: If the cache key is blocked by an active deadline.
        InvalidRetryAfterHeaderError: If the response carries a malformed Retry-After value.
    """

    REQUEST_OPTION = "retry_after_cache_key"
    HEADER = "Retry-After"

    def __init__(
        self,
        delegate: HttpClient,
        cache: Cache,
        cache_key: str | None = None,
        request_option: str | None = None,
        header_name: str | None = None,
        ttl_margin: int | None = None,
        require_cache_key: bool | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        from retryafter._config import RETRY_AFTER

        cfg = RETRY_AFTER.config.gate

        assert delegate is not None, "Delegate HTTP client is required."
        assert cache is not None, "Cache is required."

        self.delegate = delegate
        self.cache = cache
        self.cache_key = cache_key if cache_key is not None else cfg.cache_key
        self.request_option = request_option or cfg.request_option
        self.header_name = header_name or cfg.header_name
        self.ttl_margin = ttl_margin if ttl_margin is not None else cfg.ttl_margin
        self.require_cache_key = require_cache_key if require_cache_key is not None else cfg.require_cache_key
        self.clock = clock or (lambda: datetime.now(UTC))

        assert self.ttl_margin >= 1, "ttl_margin must be greater than or equal to 1."

    # -------------------------------------------------------------------------
    # HttpClient
    # -------------------------------------------------------------------------

    @override
    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        options: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Gate, then delegate GET request."""
        request = requests.Request(method="GET", url=url, headers=headers)
        return self._send(
            request,
            options,
            lambda: self.delegate.get(url, headers, timeout, options),
        )

    @override
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        options: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Gate, then delegate POST request."""
        request = requests.Request(method="POST", url=url, headers=headers, json=data)
        return self._send(
            request,
            options,
            lambda: self.delegate.post(url, data, headers, timeout, options),
        )

    # -------------------------------------------------------------------------
    # Gate steps
    # -------------------------------------------------------------------------

    def _send(
        self,
        request: requests.Request,
        options: dict[str, Any] | None,
        forward: Callable[[], requests.Response],
    ) -> requests.Response:
        key = self._resolve_cache_key(request, options or {})
        if key is None:
            logger.debug(f"RetryAfterHttpClient: no cache key for {request.method} {request.url}, forwarding ungated.")
            return forward()

        self._check_deadline(key, request)

        try:
            response = forward()
        except requests.RequestException as e:
            if e.response is not None:
                self._capture_retry_after(e.response, key)
            raise

        self._capture_retry_after(response, key)
        return response

    def _resolve_cache_key(self, request: requests.Request, options: dict[str, Any]) -> str | None:
        """
        Resolve the cache key for a request.

        Returns:
            The cache key, or None when no key is present and none is required.

        Raises:
            InvalidCacheKeyError: If the key is missing (and required), not a string, or empty.
        """
        key = options.get(self.request_option, _MISSING)
        if key is _MISSING:
            if self.cache_key is None:
                if not self.require_cache_key:
                    return None
                raise InvalidCacheKeyError(
                    f"Request option {self.request_option} is required, none given.",
                    option=self.request_option,
                    request=request,
                )
            key = self.cache_key

        if not isinstance(key, str) or key == "":
            given = "empty string" if isinstance(key, str) else type(key).__name__
            raise InvalidCacheKeyError(
                f"Request option {self.request_option} must be a non empty string, {given} given.",
                option=self.request_option,
                request=request,
            )

        return key

    def _check_deadline(self, key: str, request: requests.Request) -> None:
        """
        Reject the request if the key is blocked by an active deadline.

        The boundary is inclusive: a request at the exact deadline is still blocked.

        Raises:
            RateLimitedError: If the cached deadline is at or after now.
        """
        cached = self.cache.get(key)
        if cached is None:
            return

        retry_after = from_iso_string(cached)
        now = self.clock()
        if retry_after >= now:
            logger.warning(
                f"RetryAfterHttpClient: '{key}' is rate limited until {to_iso_string(retry_after)}. "
                f"Rejecting {request.method} {request.url}."
            )
            raise RateLimitedError(
                cache_key=key,
                retry_after=retry_after,
                checked_at=now,
                request=request,
            )

    def _capture_retry_after(self, response: requests.Response, key: str) -> None:
        """
        Record a new deadline if the response carries a Retry-After header.

        Only the last header value is honored.

        Raises:
            InvalidRetryAfterHeaderError: If the header value cannot be parsed.
        """
        values = self._header_values(response)
        if not values:
            return

        now = self.clock()
        retry_after = compute_deadline(values[-1], now)
        ttl = compute_ttl(retry_after, now, margin=self.ttl_margin)

        self.cache.set(key, to_iso_string(retry_after), ttl)
        logger.warning(
            f"RetryAfterHttpClient: HTTP {response.status_code} with {self.header_name}: {values[-1]!r}. "
            f"Blocking '{key}' until {to_iso_string(retry_after)} (cache ttl={ttl}s)."
        )

    def _header_values(self, response: requests.Response) -> list[str]:
        """
        Return every value of the rate-limit header, in order of appearance.

        requests folds repeated headers into one comma-separated value, so the
        raw urllib3 headers are preferred when available.
        """
        raw_headers = getattr(getattr(response, "raw", None), "headers", None)
        if isinstance(raw_headers, HTTPHeaderDict):
            return list(raw_headers.getlist(self.header_name))

        value = response.headers.get(self.header_name)
        if value is None:
            return []

        return split_folded_values(value)


# =============================================================================
# Middleware
# =============================================================================


class RetryAfterMiddleware:
    """
    Factory that wraps HTTP clients with a shared Retry-After gate configuration.

    Useful when several clients (or a client chain) should share one cache.
    The wrapped client has the same interface as the original one.

    Example:
        >>> middleware = RetryAfterMiddleware(cache=InMemoryCache())
        >>> client = middleware(RequestsHttpClient())
        >>> # Or, equivalently
        >>> client = middleware.wrap(RequestsHttpClient())

    Args:
        cache: Cache storing the deadlines.
        cache_key: Default cache key bound to every wrapped client.
        **gate_options: Extra RetryAfterHttpClient arguments
            (request_option, header_name, ttl_margin, require_cache_key, clock).
    """

    def __init__(self, cache: Cache, cache_key: str | None = None, **gate_options: Any):
        assert cache is not None, "Cache is required."

        self.cache = cache
        self.cache_key = cache_key
        self.gate_options = gate_options

    def wrap(self, handler: HttpClient) -> RetryAfterHttpClient:
        """
        Return `handler` wrapped with the Retry-After gate.

        Args:
            handler: The HTTP client to wrap.

        Returns:
            A RetryAfterHttpClient delegating to `handler`.
        """
        return RetryAfterHttpClient(
            delegate=handler,
            cache=self.cache,
            cache_key=self.cache_key,
            **self.gate_options,
        )

    def __call__(self, handler: HttpClient) -> RetryAfterHttpClient:
        return self.wrap(handler)
