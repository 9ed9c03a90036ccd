"""
Client configuration.

Options mirror the constructor of the API facade. The server key may come
from the OXFD_SERVER_KEY environment variable when it is not passed in.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from enum import Enum

DEFAULT_BASE_URL = "https://api.oxfd.re/v1"
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 10000

SERVER_KEY_ENV_VAR = "OXFD_SERVER_KEY"

# Env vars that must never be logged
REDACTED_ENV_VARS = frozenset({SERVER_KEY_ENV_VAR})


class RateLimitMode(str, Enum):
    """Client-side rate limit mode."""

    AUTO = "auto"  # ~29 req/s with bursts up to 10
    NONE = "none"  # no admission control
    FIXED_INTERVAL = "fixed_interval"  # one request per N seconds


def parse_rate_limit(value: str | float) -> tuple[RateLimitMode, float | None]:
    """
    Parse a user-facing rate limit option.

    Args:
        value: "auto", "none", or seconds between requests.

    Returns:
        (mode, interval_s). interval_s is None unless mode is FIXED_INTERVAL.

    Raises:
        ValueError: If the value is not a known mode or a positive number.
    """
    if isinstance(value, str):
        if value == RateLimitMode.AUTO.value:
            return RateLimitMode.AUTO, None
        if value == RateLimitMode.NONE.value:
            return RateLimitMode.NONE, None
        raise ValueError(f"rate_limit must be 'auto', 'none' or seconds, got {value!r}")

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"rate_limit must be 'auto', 'none' or seconds, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"rate_limit interval must be > 0 seconds, got {value}")
    return RateLimitMode.FIXED_INTERVAL, float(value)


@dataclass
class ClientConfig:
    """
    Configuration for the Oxford API client.

    Attributes:
        server_key: API key sent in the server-key header (required).
        rate_limit: "auto", "none", or seconds between requests.
        max_retries: Retries on 429 before giving up.
        timeout_ms: Per-attempt request timeout in milliseconds.
        base_url: API base URL, without trailing slash.
    """

    server_key: str = ""
    rate_limit: str | float = RateLimitMode.AUTO.value
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        if not self.server_key:
            self.server_key = os.environ.get(SERVER_KEY_ENV_VAR, "")
        if not isinstance(self.server_key, str) or not self.server_key:
            raise ValueError(f"server_key is required (or set {SERVER_KEY_ENV_VAR})")

        # Raises on bad values
        parse_rate_limit(self.rate_limit)

        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValueError(f"max_retries must be an int, got {self.max_retries!r}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int):
            raise ValueError(f"timeout_ms must be an int, got {self.timeout_ms!r}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        self.base_url = self.base_url.rstrip("/")

    @property
    def rate_limit_mode(self) -> RateLimitMode:
        """Parsed rate limit mode."""
        return parse_rate_limit(self.rate_limit)[0]

    @property
    def rate_limit_interval_s(self) -> float | None:
        """Seconds between requests in fixed-interval mode, else None."""
        return parse_rate_limit(self.rate_limit)[1]

    def __repr__(self) -> str:
        # Keep the key out of tracebacks and logs
        return (
            f"ClientConfig(server_key='***', rate_limit={self.rate_limit!r}, "
            f"max_retries={self.max_retries}, timeout_ms={self.timeout_ms}, "
            f"base_url={self.base_url!r})"
        )
