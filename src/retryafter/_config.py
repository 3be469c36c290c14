"""
Global configuration for the retryafter package.

This module provides a simple configuration system following Convention over Configuration (CoC).
Users can optionally call RETRY_AFTER.configure() at application startup to customize defaults.
If not called, sensible defaults are used.

Hierarchy of precedence (highest to lowest):
1. *Options passed to client constructors
2. Values set via RETRY_AFTER.configure()
3. Environment variables (RETRY_AFTER_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from retryafter import RETRY_AFTER
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> header = RETRY_AFTER.config.gate.header_name
    >>>
    >>> # Custom configuration
    >>> RETRY_AFTER.configure(
    ...     gate={"cache_key": "telegram-bot", "ttl_margin": 2},
    ...     http={"raise_for_status": False},
    ... )
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, Self

# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


class EnvVars:
    """
    Utility class for reading environment variables with type conversion.

    Example:
        >>> EnvVars.get("RETRY_AFTER_TTL_MARGIN", type_hint=int)
        2
        >>> EnvVars.get("RETRY_AFTER_CACHE_KEY")
        'telegram-bot'
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Args:
            var_name: The environment variable name.
            type_hint: Type hint used to infer the converter (ignored if converter is provided).
            converter: Custom converter function (takes precedence over type_hint).

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:  # None or empty string
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        """
        Infer converter function from type hint.

        Handles both actual types and string annotations (PEP 563).
        """
        type_str = str(type_hint)

        if type_hint is int or type_str == "int":
            return int
        if type_hint is float or type_str == "float":
            return float
        if type_hint is bool or type_str == "bool":
            return lambda v: v.lower() in ("true", "1", "yes")
        # str, "str | None" and other types: return as string
        return str


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Provides `.with_overrides()` method for creating new instances
    with partial field updates. Uses strict validation to catch
    typos and invalid field names early.

    Example:
        >>> config = GateConfig()
        >>> custom = config.with_overrides({"ttl_margin": 2})
        >>> custom.ttl_margin
        2
    """

    def with_overrides(
        self,
        overrides: dict[str, Any],
        allow_none_fields: set[str] | None = None,
    ) -> Self:
        """
        Return a new instance with specified fields overridden.

        Args:
            overrides: Dict of field names to new values.
                       Only existing fields are allowed.
            allow_none_fields: Set of field names that accept None as a valid value.
                       By default, None values are filtered out.

        Returns:
            New instance with updated values.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        allow_none = allow_none_fields or set()
        filtered = {k: v for k, v in overrides.items() if v is not None or k in allow_none}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return new instance with environment variables applied.

        Reads env vars declared in field metadata and applies them as overrides.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(
                    var_name=env_var,
                    type_hint=f.type,
                    converter=f.metadata.get("converter"),
                )
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class GateConfig(OverridableConfig):
    """
    Configuration for the Retry-After gate (RetryAfterHttpClient).

    Attributes:
        header_name: Response header carrying the rate-limit signal.
            Matched case-insensitively.
            Env var: RETRY_AFTER_HEADER_NAME

        request_option: Name of the per-request option holding the cache key.
            Env var: RETRY_AFTER_REQUEST_OPTION

        cache_key: Default cache key used when a request carries none.
            Env var: RETRY_AFTER_CACHE_KEY

        require_cache_key: If True, a request without any cache key is rejected
            with InvalidCacheKeyError. If False, it is forwarded without gating.
            Env var: RETRY_AFTER_REQUIRE_CACHE_KEY

        ttl_margin: Extra seconds a deadline is kept in the cache beyond its window.
            Env var: RETRY_AFTER_TTL_MARGIN

    Example:
        >>> from retryafter import RETRY_AFTER
        >>> RETRY_AFTER.configure(gate={"cache_key": "sendMessage"})
    """

    header_name: str = field(default="Retry-After", metadata={"env": "RETRY_AFTER_HEADER_NAME"})
    request_option: str = field(default="retry_after_cache_key", metadata={"env": "RETRY_AFTER_REQUEST_OPTION"})
    cache_key: str | None = field(default=None, metadata={"env": "RETRY_AFTER_CACHE_KEY"})
    require_cache_key: bool = field(default=True, metadata={"env": "RETRY_AFTER_REQUIRE_CACHE_KEY"})
    ttl_margin: int = field(default=1, metadata={"env": "RETRY_AFTER_TTL_MARGIN"})

    def validate(self) -> Self:
        """Validate gate configuration fields."""
        if not self.header_name:
            raise ConfigValidationError(
                "header_name", self.header_name,
                "Must not be empty.", section="gate"
            )
        if not self.request_option:
            raise ConfigValidationError(
                "request_option", self.request_option,
                "Must not be empty.", section="gate"
            )
        if self.cache_key is not None and self.cache_key == "":
            raise ConfigValidationError(
                "cache_key", self.cache_key,
                "Must not be empty string.", section="gate"
            )
        if self.ttl_margin < 1:
            raise ConfigValidationError(
                "ttl_margin", self.ttl_margin,
                "Must be greater than or equal to 1.", section="gate"
            )
        return self


@dataclass(frozen=True)
class HttpConfig(OverridableConfig):
    """
    Configuration for the requests-based transport (RequestsHttpClient).

    Attributes:
        raise_for_status: If True, 4xx/5xx responses raise requests.HTTPError
            with the response attached.
            Env var: RETRY_AFTER_HTTP_RAISE_FOR_STATUS
    """

    raise_for_status: bool = field(default=True, metadata={"env": "RETRY_AFTER_HTTP_RAISE_FOR_STATUS"})

    def validate(self) -> Self:
        """Validate HTTP configuration fields."""
        return self


@dataclass(frozen=True)
class RetryAfterConfig:
    """
    Global configuration for the retryafter package.

    Aggregates all configuration sections. Access via the global
    `RETRY_AFTER.config` property.

    Attributes:
        gate: Retry-After gate configuration.
        http: Transport configuration.

    Example:
        >>> from retryafter import RETRY_AFTER
        >>> RETRY_AFTER.config.gate.request_option
        'retry_after_cache_key'
        >>> RETRY_AFTER.config.http.raise_for_status
        True
    """

    gate: GateConfig = field(default_factory=GateConfig)
    http: HttpConfig = field(default_factory=HttpConfig)

    def with_env_vars(self) -> RetryAfterConfig:
        """
        Return a new config with environment variables applied on top.

        Returns:
            New RetryAfterConfig instance with env vars applied.
        """
        return RetryAfterConfig(
            gate=self.gate.with_env_vars(),
            http=self.http.with_env_vars(),
        )

    def with_section_overrides(
        self,
        *,
        gate: dict[str, Any] | None = None,
        http: dict[str, Any] | None = None,
    ) -> RetryAfterConfig:
        """
        Return a new config with overrides applied to nested sections.

        Each section dict is merged with the existing section config,
        only overriding the specified fields.

        Example:
            >>> config = RetryAfterConfig()
            >>> custom = config.with_section_overrides(gate={"ttl_margin": 2})
        """
        return RetryAfterConfig(
            gate=self.gate.with_overrides(gate or {}, allow_none_fields={"cache_key"}),
            http=self.http.with_overrides(http or {}),
        )


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _RetryAfter:
    """
    Singleton for package configuration.

    Use `RETRY_AFTER.configure()` to customize settings and `RETRY_AFTER.config`
    to access current configuration.

    Example:
        >>> from retryafter import RETRY_AFTER
        >>> RETRY_AFTER.configure(gate={"cache_key": "my-api"})
        >>> print(RETRY_AFTER.config.gate.cache_key)
    """

    def __init__(self) -> None:
        """Initialize with defaults and environment variables."""
        self._config: RetryAfterConfig = RetryAfterConfig().with_env_vars()

    def configure(
        self,
        *,
        gate: dict[str, Any] | None = None,
        http: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> RetryAfterConfig:
        """
        Configure package settings.

        Call at application startup to customize defaults. Updates the
        internal configuration and returns the configured instance.

        Args:
            gate: Gate config overrides (header_name, request_option, cache_key, ...).
            http: Transport config overrides (raise_for_status).
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, ignores env vars entirely.

        Returns:
            The configured RetryAfterConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.
        """
        base = RetryAfterConfig()
        if allow_env_override:
            base = base.with_env_vars()

        # configure() always wins over env vars
        self._config = base.with_section_overrides(gate=gate, http=http)

        return self.validate()

    @property
    def config(self) -> RetryAfterConfig:
        """Access current configuration (read-only)."""
        return self._config

    def reset(self) -> RetryAfterConfig:
        """
        Reset configuration to defaults + env vars.

        Useful for testing to ensure clean state between tests.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config = RetryAfterConfig().with_env_vars()
        return self.validate()

    def validate(self) -> RetryAfterConfig:
        """
        Validate current configuration.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config.gate.validate()
        self._config.http.validate()
        return self._config

    def __repr__(self) -> str:
        return f"RETRY_AFTER(config={self._config!r})"


# Global singleton instance - always reflects current configuration
RETRY_AFTER: _RetryAfter = _RetryAfter()
RETRY_AFTER.validate()  # Validate defaults + env vars on module load
