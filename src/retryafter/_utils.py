"""
Retry-After parsing and deadline arithmetic.

This module provides internal helper functions used by the gate to turn a
`Retry-After` header value into a deadline and back into a cacheable string.
These functions are not part of the public API and may change without notice.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime

logger = logging.getLogger(__name__)

# Anything PHP-style "numeric": optional sign, digits with optional fraction, optional exponent.
_NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

# A comma starts a new folded value only when followed by a day name, a bare number or an ISO date.
_FOLD_BOUNDARY = re.compile(
    r",\s*(?=(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)|[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*(?:,|$)|\d{4}-\d{2}-\d{2})"
)


class InvalidRetryAfterHeaderError(ValueError):
    """
    Raised when a Retry-After header value is neither numeric nor a recognizable date.

    A malformed header is a data-integrity problem, so it is never suppressed
    by the gate.

    Attributes:
        value: The raw header value that failed to parse.
    """

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Invalid Retry-After header value: {value!r} (expected delta-seconds or an HTTP-date)"
        )


def is_numeric(value: str) -> bool:
    """Return True if the header value is a numeric delta (e.g. "2", "2.5", "1e3")."""
    return bool(_NUMERIC_PATTERN.match(value))


def split_folded_values(value: str) -> list[str]:
    """
    Split a comma-folded header back into its individual values.

    HTTP-dates contain commas themselves ("Wed, 21 Oct 2022 07:28:00 GMT"),
    so a comma only separates two values when the next one starts like a new
    Retry-After value: a day name, a bare number or an ISO date.

    Example:
        >>> split_folded_values("Wed, 21 Oct 2022 07:28:00 GMT, 5")
        ['Wed, 21 Oct 2022 07:28:00 GMT', '5']
    """
    return [part.strip() for part in _FOLD_BOUNDARY.split(value)]


def parse_http_date(value: str) -> datetime:
    """
    Parse an absolute Retry-After date into an aware UTC datetime.

    Accepts the HTTP-date grammar (IMF-fixdate, RFC 850, asctime). ISO-8601
    timestamps are accepted as a fallback.

    Args:
        value: The raw header value.

    Returns:
        The parsed point in time, converted to UTC.

    Raises:
        InvalidRetryAfterHeaderError: If the value is not a recognizable timestamp.

    Example:
        >>> parse_http_date("Wed, 21 Oct 2022 07:28:00 GMT")
        datetime.datetime(2022, 10, 21, 7, 28, tzinfo=datetime.timezone.utc)
    """
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            logger.debug(f"Failed to parse Retry-After header: {value!r}")
            raise InvalidRetryAfterHeaderError(value) from e

    # "-0000" and naive ISO values carry no zone; HTTP dates are always GMT
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def compute_deadline(value: str, now: datetime) -> datetime:
    """
    Compute the retry deadline for a Retry-After header value.

    Numeric values are a whole-second delta from `now` (the fractional part
    is truncated). Any other value is parsed as an absolute date.

    Args:
        value: The raw header value.
        now: The current time (aware UTC).

    Returns:
        The deadline until which requests should be blocked.

    Raises:
        InvalidRetryAfterHeaderError: If the value cannot be parsed.
    """
    if is_numeric(value):
        try:
            return now + timedelta(seconds=int(float(value)))
        except (OverflowError, ValueError) as e:
            raise InvalidRetryAfterHeaderError(value) from e
    return parse_http_date(value)


def compute_ttl(deadline: datetime, now: datetime, margin: int = 1) -> int:
    """
    Compute how long (in whole seconds) a deadline should live in the cache.

    The ceiling of the remaining window plus `margin` guarantees the entry is
    never evicted before the gate would stop blocking on its own. Deadlines
    already in the past keep only the margin.

    Example:
        >>> compute_ttl(now + timedelta(seconds=2), now)
        3
        >>> compute_ttl(now + timedelta(seconds=1.2), now)
        3
    """
    remaining = (deadline - now).total_seconds()
    return max(math.ceil(remaining), 0) + margin


def to_iso_string(moment: datetime) -> str:
    """Render a datetime as ISO-8601 in UTC with microsecond precision."""
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso_string(value: str) -> datetime:
    """Parse a cached ISO-8601 timestamp back into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
