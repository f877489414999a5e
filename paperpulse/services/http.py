"""Polite HTTP access shared by the external source adapters.

Every adapter owns a :class:`PoliteClient` that adds a User-Agent, a
per-call timeout, a per-source minimum interval between requests and
retry with backoff:

* 429 → honour ``Retry-After`` (seconds) when present, else exponential
  backoff with jitter;
* 5xx, connection errors and timeouts → exponential backoff with jitter;
* any other 4xx → returned immediately, no retry;
* other ``requests`` errors (broken bodies, redirect loops, bad URLs) →
  raised as a classified :class:`ExternalServiceError`, no retry.

Adapter results are wrapped in :class:`AdapterOutcome` so that expected
degradations are values, not exceptions.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import requests

from paperpulse.exceptions import (
    ExternalServiceError,
    PermanentServiceError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 15.0
DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.6
MAX_RETRY_AFTER = 30.0


# ---------------------------------------------------------------------------
# Tagged outcome
# ---------------------------------------------------------------------------

@dataclass
class AdapterOutcome(Generic[T]):
    """Result of one adapter call.

    ``status`` is ``"ok"`` (value is the answer) or ``"degraded"`` (value
    is the fallback, ``error`` says why).
    """

    status: str
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "AdapterOutcome[T]":
        return cls(status="ok", value=value)

    @classmethod
    def degraded(cls, error: str, fallback: Optional[T] = None) -> "AdapterOutcome[T]":
        return cls(status="degraded", value=fallback, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class RateLimiter:
    """Thread-safe minimum interval between calls to one source."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def wait(self) -> None:
        """Block until this source may be called again."""
        if self.min_interval <= 0:
            return
        with self._lock:
            now = self._clock()
            delay = self._next_slot - now
            self._next_slot = max(now, self._next_slot) + self.min_interval
        if delay > 0:
            self._sleep(delay)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

def _retry_after_seconds(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, min(float(value), MAX_RETRY_AFTER))
    except ValueError:
        return None


class PoliteClient:
    """``requests`` wrapper with timeout, retry/backoff and rate limiting."""

    def __init__(
        self,
        source: str,
        user_agent: str,
        timeout: float = DEFAULT_TIMEOUT,
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        min_interval: float = 0.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize client.

        Args:
            source: Short source name used in logs and errors
            user_agent: User-Agent header value
            timeout: Per-request timeout in seconds
            attempts: Maximum number of attempts (first call included)
            base_delay: Base backoff delay in seconds
            min_interval: Minimum seconds between two calls to this source
            session: Optional pre-built session (tests inject a stub)
            sleep: Sleep function (tests inject a recorder)
        """
        self.source = source
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.base_delay = base_delay
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent
        self._sleep = sleep
        self.limiter = RateLimiter(min_interval, sleep=sleep)

    def _backoff(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt) + random.uniform(0, 0.15)

    def get(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> requests.Response:
        """GET with retries.

        Returns the final response, which may be a non-2xx that was not
        retryable or that exhausted retries.

        Raises:
            TransientServiceError: If every attempt failed at the network
                level, or the body broke off mid-transfer
            PermanentServiceError: On other ``requests`` errors (redirect
                loops, invalid URLs)
        """
        last_error: Optional[Exception] = None
        response: Optional[requests.Response] = None

        for attempt in range(self.attempts):
            self.limiter.wait()
            try:
                response = self.session.get(
                    url, params=params, headers=headers, timeout=self.timeout
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                response = None
                if attempt + 1 < self.attempts:
                    delay = self._backoff(attempt)
                    logger.warning(
                        "%s network error (%s); retrying in %.2fs", self.source, e, delay
                    )
                    self._sleep(delay)
                continue
            except (requests.exceptions.ChunkedEncodingError,
                    requests.exceptions.ContentDecodingError) as e:
                raise TransientServiceError(self.source, f"broken response: {e}") from e
            except requests.RequestException as e:
                raise PermanentServiceError(
                    self.source, f"request failed: {type(e).__name__}: {e}"
                ) from e

            status = response.status_code
            if status == 429 or 500 <= status < 600:
                if attempt + 1 >= self.attempts:
                    break
                delay = _retry_after_seconds(response) if status == 429 else None
                if delay is None:
                    delay = self._backoff(attempt)
                logger.warning(
                    "%s returned %d; retrying in %.2fs (attempt %d/%d)",
                    self.source, status, delay, attempt + 1, self.attempts,
                )
                self._sleep(delay)
                continue
            return response

        if response is not None:
            return response
        raise TransientServiceError(self.source, f"request failed: {last_error}")

    def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """GET and decode JSON, raising a classified error on failure.

        Raises:
            TransientServiceError: Network failure, 429 or 5xx after retries
            PermanentServiceError: Other non-2xx status or invalid JSON
        """
        response = self.get(url, params=params, headers=headers)
        raise_for_status(self.source, response)
        try:
            return response.json()
        except ValueError as e:
            raise PermanentServiceError(self.source, "malformed JSON response") from e


def raise_for_status(source: str, response: requests.Response) -> None:
    """Map a non-2xx response to the matching :class:`ExternalServiceError`."""
    status = response.status_code
    if 200 <= status < 300:
        return
    message = f"HTTP {status}"
    if status == 429 or status >= 500:
        raise TransientServiceError(source, message, status=status)
    raise PermanentServiceError(source, message, status=status)


def describe_error(error: Exception) -> str:
    """Short, log-friendly description of an adapter failure."""
    if isinstance(error, ExternalServiceError):
        return str(error)
    return f"{type(error).__name__}: {error}"
