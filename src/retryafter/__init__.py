"""
Retry-After gate for requests-based HTTP clients.

When a server answers with a `Retry-After` header (delta-seconds or HTTP-date),
the gate remembers the deadline under a caller-supplied cache key and, until it
passes, rejects further requests for that key without touching the network.
It never retries automatically: it blocks and reports.

Quick Start:
    >>> from retryafter import InMemoryCache, RateLimitedError, create_http_client
    >>> client = create_http_client(cache=InMemoryCache())
    >>> try:
    ...     response = client.post(
    ...         "https://api.example.com/v1/messages",
    ...         data={"text": "Hello"},
    ...         options={"retry_after_cache_key": "messages"},
    ...     )
    ... except RateLimitedError as e:
    ...     print(f"Try again after {e.retry_after}")

Global Configuration:
    >>> from retryafter import RETRY_AFTER
    >>> RETRY_AFTER.configure(
    ...     gate={"cache_key": "my-api", "ttl_margin": 1},
    ...     http={"raise_for_status": True},
    ... )

Main Classes:
    - RetryAfterHttpClient: HTTP client decorator enforcing Retry-After backoff.
    - RetryAfterMiddleware: Factory wrapping HTTP clients with the gate.
    - RateLimitedError: Raised when a request is blocked by an active deadline.
    - InvalidCacheKeyError: Raised when a request carries no usable cache key.
    - InvalidRetryAfterHeaderError: Raised when a Retry-After value cannot be parsed.

HTTP Client:
    - HttpClient: Abstract base class for HTTP clients.
    - RequestsHttpClient: Transport over a requests.Session.
    - create_http_client: Builds a gated RequestsHttpClient from the global configuration.

Cache:
    - Cache: Abstract base class for TTL key-value caches.
    - InMemoryCache: Thread-safe, process-local cache.

Configuration:
    - RETRY_AFTER: Global singleton for configuration.
    - RetryAfterConfig: Root configuration dataclass.
    - GateConfig: Gate configuration.
    - HttpConfig: Transport configuration.
    - ConfigEnvVarError: Exception raised when env var parsing fails.
    - ConfigValidationError: Exception raised when config validation fails.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("retryafter")

from retryafter._cache import Cache, InMemoryCache
from retryafter._config import (
    RETRY_AFTER,
    ConfigEnvVarError,
    ConfigValidationError,
    GateConfig,
    HttpConfig,
    RetryAfterConfig,
)
from retryafter._gate import (
    InvalidCacheKeyError,
    RateLimitedError,
    RetryAfterHttpClient,
    RetryAfterMiddleware,
)
from retryafter._http import (
    HttpClient,
    RequestsHttpClient,
    create_http_client,
)
from retryafter._utils import InvalidRetryAfterHeaderError

__all__ = [
    "__version__",
    # Gate
    "RetryAfterHttpClient",
    "RetryAfterMiddleware",
    "RateLimitedError",
    "InvalidCacheKeyError",
    "InvalidRetryAfterHeaderError",
    # HTTP Client
    "HttpClient",
    "RequestsHttpClient",
    "create_http_client",
    # Cache
    "Cache",
    "InMemoryCache",
    # Configuration
    "RETRY_AFTER",
    "RetryAfterConfig",
    "GateConfig",
    "HttpConfig",
    "ConfigEnvVarError",
    "ConfigValidationError",
]
