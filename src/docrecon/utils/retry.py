"""Retry with exponential backoff for rate-limited external calls."""

import asyncio
import functools
import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUSES = {429, 503, "429", "503", "RESOURCE_EXHAUSTED"}
RATE_LIMIT_MARKERS = ("429", "quota", "503", "RESOURCE_EXHAUSTED")


def is_rate_limit_error(error: BaseException | str) -> bool:
    """
    Check whether an error signals rate limiting or provider overload.

    Looks at HTTP-style status attributes (``status_code``, ``status``,
    ``code``), a nested ``error`` payload, and finally the message text.
    """
    if isinstance(error, str):
        return "429" in error

    for attr in ("status_code", "status", "code"):
        if getattr(error, attr, None) in RATE_LIMIT_STATUSES:
            return True

    nested = getattr(error, "error", None) or getattr(error, "body", None)
    if isinstance(nested, dict):
        inner = nested.get("error", nested)
        if isinstance(inner, dict) and (
            inner.get("code") in RATE_LIMIT_STATUSES or inner.get("status") in RATE_LIMIT_STATUSES
        ):
            return True

    message = str(error)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class RetryPolicy:
    """
    Exponential backoff policy for fallible async operations.

    The wait before retry ``n`` (0-based) is ``base_delay_ms * 2**n`` plus a
    random jitter in ``[0, max_jitter_ms]``. Errors the predicate rejects are
    re-raised immediately; once attempts are exhausted the last error is
    re-raised unchanged.
    """

    def __init__(
        self,
        max_attempts: int = 7,
        base_delay_ms: float = 15000,
        max_jitter_ms: float = 2000,
        is_retryable: Callable[[BaseException], bool] = is_rate_limit_error,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_jitter_ms = max_jitter_ms
        self.is_retryable = is_retryable
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings, **overrides) -> "RetryPolicy":
        """Build a policy from application settings."""
        options = {
            "max_attempts": settings.retry_max_attempts,
            "base_delay_ms": settings.retry_base_delay_ms,
            "max_jitter_ms": settings.retry_max_jitter_ms,
        }
        options.update(overrides)
        return cls(**options)

    def backoff_ms(self, attempt: int) -> float:
        """Delay in milliseconds before retrying after ``attempt`` (0-based) failed."""
        jitter = self._rng.uniform(0, self.max_jitter_ms) if self.max_jitter_ms else 0.0
        return self.base_delay_ms * (2 ** attempt) + jitter

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds, fails permanently, or attempts run out."""
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as exc:
                if not self.is_retryable(exc) or attempt == self.max_attempts - 1:
                    raise

                delay_ms = self.backoff_ms(attempt)
                logger.warning(
                    "Rate limit hit (%s). Retrying in %.1fs (attempt %d/%d)",
                    type(exc).__name__,
                    delay_ms / 1000,
                    attempt + 1,
                    self.max_attempts,
                )
                await self._sleep(delay_ms / 1000)

        raise RuntimeError("unreachable")  # pragma: no cover

    def wrap(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorate an async function so every call goes through this policy."""

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await self.call(lambda: func(*args, **kwargs))

        return wrapper
