"""
Async REST request executor for the Oxford API.

Pipeline per logical call:
    AwaitingToken -> InFlight -> Success
                              -> RetryWait -> AwaitingToken (429, bounded)
                              -> Failed (classified error)

- Every attempt, retries included, takes a fresh token from the admission gate
- Timeout applies per attempt, not across retries
- Only 429 is retried, after the Retry-After delay (default 1 s)
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiohttp
import orjson

from oxfd.connectors.bucket import TokenBucket, create_bucket
from oxfd.errors import OxfordAPIError, RateLimitError, classify_error_response

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from types import TracebackType

    from oxfd.config import ClientConfig

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_S = 1.0


@dataclass(frozen=True)
class RequestAttempt:
    """One attempt of a logical call. Recreated for every retry."""

    method: str
    path: str
    body: Any = None
    attempt: int = 0

    def next(self) -> RequestAttempt:
        """Attempt record for the following retry."""
        return RequestAttempt(self.method, self.path, self.body, self.attempt + 1)


@dataclass(frozen=True)
class RawResponse:
    """Status, headers and body text of a completed HTTP exchange."""

    status: int
    reason: str
    headers: Mapping[str, str]
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class RequestMetrics:
    """Counters for executor observability."""

    requests: int = 0  # logical calls
    attempts: int = 0  # HTTP attempts, retries included
    succeeded: int = 0
    failed: int = 0
    retries: int = 0  # 429 retries
    rate_limited: int = 0  # calls failed with RateLimitError
    timeouts: int = 0
    network_errors: int = 0


def parse_retry_after(value: str | None) -> float:
    """
    Parse a Retry-After header given in seconds.

    Args:
        value: Raw header value.

    Returns:
        Delay in seconds. Falls back to 1 s for a missing, unparseable,
        negative or non-finite value.
    """
    if value is None:
        return DEFAULT_RETRY_AFTER_S
    try:
        seconds = float(value)
    except ValueError:
        return DEFAULT_RETRY_AFTER_S
    if not math.isfinite(seconds) or seconds < 0:
        return DEFAULT_RETRY_AFTER_S
    return seconds


def parse_body(text: str) -> Any:
    """
    Decode a response body.

    Empty body -> None. Body that is not JSON -> {"message": text}.
    """
    if not text:
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return {"message": text}


class OxfordRestClient:
    """
    Executes API calls through the admission gate with retry on 429.

    Owns one aiohttp session carrying the server-key and JSON headers.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            config: Client configuration.
            sleep_fn: Coroutine used for the 429 retry delay (default asyncio.sleep).
        """
        self._config = config
        self._bucket: TokenBucket | None = create_bucket(config.rate_limit)
        self._sleep = sleep_fn or asyncio.sleep
        self._session: aiohttp.ClientSession | None = None
        self.metrics = RequestMetrics()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def bucket(self) -> TokenBucket | None:
        """Admission gate, or None when rate limiting is disabled."""
        return self._bucket

    def _headers(self) -> dict[str, str]:
        return {
            "server-key": self._config.server_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_ms / 1000)
            self._session = aiohttp.ClientSession(headers=self._headers(), timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> OxfordRestClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def execute(self, method: str, path: str, body: Any = None) -> Any:
        """
        Perform one logical API call.

        Args:
            method: HTTP method.
            path: Path relative to the base URL (e.g. "/server/players").
            body: JSON-serializable request body, or None.

        Returns:
            Parsed response data: decoded JSON, None for an empty body, or
            {"message": text} for a body that is not JSON.

        Raises:
            RateLimitError: If 429 persists after max_retries retries.
            AuthError: On 403.
            ServerUnavailableError: On 503.
            OxfordAPIError: On any other failure (status 408 for timeouts,
                0 for transport errors).
        """
        self.metrics.requests += 1
        attempt = RequestAttempt(method, path, body)

        try:
            while True:
                if self._bucket is not None:
                    await self._bucket.acquire()

                response = await self._send(attempt)

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    if attempt.attempt < self._config.max_retries:
                        delay_s = parse_retry_after(retry_after)
                        self.metrics.retries += 1
                        logger.warning(
                            "Rate limited, retrying",
                            extra={
                                "path": path,
                                "attempt": attempt.attempt,
                                "retry_after_s": delay_s,
                            },
                        )
                        await self._sleep(delay_s)
                        attempt = attempt.next()
                        continue

                    self.metrics.rate_limited += 1
                    raise RateLimitError("Rate limit exceeded", retry_after)

                data = parse_body(response.text)

                if not response.ok:
                    error = classify_error_response(response.status, data, path, response.reason)
                    logger.error(
                        "API request failed",
                        extra={
                            "path": path,
                            "status": response.status,
                            "kind": error.kind.value,
                        },
                    )
                    raise error

                self.metrics.succeeded += 1
                return data
        except OxfordAPIError:
            self.metrics.failed += 1
            raise

    async def _send(self, attempt: RequestAttempt) -> RawResponse:
        """
        Issue one HTTP attempt under the configured deadline.

        Raises:
            OxfordAPIError: 408 on timeout, 0 on transport failure.
        """
        self.metrics.attempts += 1
        url = f"{self._config.base_url}{attempt.path}"
        data = orjson.dumps(attempt.body) if attempt.body is not None else None

        try:
            session = await self._get_session()
            async with session.request(attempt.method, url, data=data) as response:
                text = await response.text(errors="replace")
                return RawResponse(
                    status=response.status,
                    reason=response.reason or "",
                    headers=response.headers,
                    text=text,
                )
        except asyncio.TimeoutError as e:
            self.metrics.timeouts += 1
            logger.warning(
                "Request timed out",
                extra={
                    "path": attempt.path,
                    "timeout_ms": self._config.timeout_ms,
                    "attempt": attempt.attempt,
                },
            )
            raise OxfordAPIError("Request timed out", 408) from e
        except aiohttp.ClientError as e:
            self.metrics.network_errors += 1
            logger.warning(
                "Request failed",
                extra={"path": attempt.path, "error": str(e), "attempt": attempt.attempt},
            )
            raise OxfordAPIError(f"Network error: {e}", 0) from e

    def get_status(self) -> dict[str, Any]:
        """Get executor and admission gate status for observability."""
        status: dict[str, Any] = {
            "requests": self.metrics.requests,
            "succeeded": self.metrics.succeeded,
            "failed": self.metrics.failed,
            "retries": self.metrics.retries,
            "rate_limit": str(self._config.rate_limit),
        }
        if self._bucket is not None:
            status["gate"] = self._bucket.get_status()
        return status
