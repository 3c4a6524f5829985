# Where: perf/runner/retry.py
# What: Retry policy value and a generic retry-until-budget combinator.
# Why: The readiness probe and the load-test wrapper share one retry loop.
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from perf.runner.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_FIXED = "fixed"
BACKOFF_EXPONENTIAL = "exponential"


def _always(_exc: BaseException) -> bool:
    return True


def _default_sleep(seconds: float) -> None:
    time.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """
    interval: delay after the first failure (seconds)
    max_attempts: total attempts, the first one included
    retry_if: decides whether a failure may be retried at all
    backoff: "fixed" keeps ``interval``; "exponential" multiplies it by ``factor``
             per attempt, capped at ``max_interval``
    """

    interval: float
    max_attempts: int
    retry_if: Callable[[BaseException], bool] = _always
    backoff: str = BACKOFF_FIXED
    factor: float = 2.0
    max_interval: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.interval < 0:
            raise ValueError(f"interval must be >= 0, got {self.interval}")
        if self.backoff not in (BACKOFF_FIXED, BACKOFF_EXPONENTIAL):
            raise ValueError(f"Unknown backoff strategy: {self.backoff}")

    @classmethod
    def fixed(
        cls,
        interval: float,
        max_attempts: int,
        retry_if: Callable[[BaseException], bool] = _always,
    ) -> RetryPolicy:
        return cls(interval=interval, max_attempts=max_attempts, retry_if=retry_if)

    @classmethod
    def exponential(
        cls,
        base: float,
        max_attempts: int,
        retry_if: Callable[[BaseException], bool] = _always,
        *,
        factor: float = 2.0,
        max_interval: float | None = None,
    ) -> RetryPolicy:
        return cls(
            interval=base,
            max_attempts=max_attempts,
            retry_if=retry_if,
            backoff=BACKOFF_EXPONENTIAL,
            factor=factor,
            max_interval=max_interval,
        )

    def delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff == BACKOFF_FIXED:
            value = self.interval
        else:
            value = self.interval * (self.factor ** (attempt - 1))
        if self.max_interval is not None:
            value = min(value, self.max_interval)
        return value

    def should_retry(self, exc: BaseException) -> bool:
        return bool(self.retry_if(exc))


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """
    Call ``fn`` until it returns, a failure is not retryable, or the budget is spent.

    The first attempt runs immediately. A non-retryable exception propagates
    unchanged; an exhausted budget raises RetryExhaustedError with the last error.
    """
    sleep = sleep or _default_sleep
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as exc:
            if not policy.should_retry(exc):
                raise
            if attempt >= policy.max_attempts:
                raise RetryExhaustedError(attempt, exc) from exc
            delay = policy.delay(attempt)
            logger.info(
                "Attempt failed, retrying",
                extra={"attempt": attempt, "max_attempts": policy.max_attempts, "delay": delay},
            )
            if on_retry:
                on_retry(attempt, exc, delay)
            sleep(delay)
