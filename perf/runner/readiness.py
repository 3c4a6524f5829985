# Where: perf/runner/readiness.py
# What: HTTP readiness probe with exponential backoff.
# Why: The app server needs time to bind its listener after its container starts.
from __future__ import annotations

import errno
import logging

import requests

from perf.runner import constants
from perf.runner.errors import ReadinessTimeoutError, RetryExhaustedError, StageError
from perf.runner.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)

_RETRYABLE_ERRNOS = {errno.ECONNREFUSED, errno.ECONNRESET}


def is_connection_retryable(exc: BaseException) -> bool:
    """True when ``exc`` was caused by a refused or reset connection."""
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, (ConnectionRefusedError, ConnectionResetError)):
            return True
        if isinstance(current, OSError) and current.errno in _RETRYABLE_ERRNOS:
            return True
        # requests wraps urllib3 errors in args; urllib3 keeps the cause in ``reason``.
        for nested in (current.__cause__, current.__context__, getattr(current, "reason", None)):
            if isinstance(nested, BaseException):
                pending.append(nested)
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
    return False


def readiness_policy(max_attempts: int = constants.READINESS_ATTEMPTS) -> RetryPolicy:
    return RetryPolicy.exponential(
        constants.READINESS_BASE_DELAY,
        max_attempts,
        is_connection_retryable,
        factor=constants.READINESS_BACKOFF_FACTOR,
        max_interval=constants.READINESS_MAX_DELAY,
    )


def probe_once(url: str, *, timeout: float) -> int:
    """One GET; any HTTP response means the server is answering."""
    with requests.Session() as session:
        session.trust_env = False
        response = session.get(url, timeout=timeout)
    return response.status_code


def wait_for_url(
    url: str,
    *,
    policy: RetryPolicy | None = None,
    timeout: float = constants.READINESS_REQUEST_TIMEOUT,
) -> int:
    """
    Block until ``url`` answers. Returns the number of attempts made.

    Raises ReadinessTimeoutError once the attempt budget is spent, or StageError
    for a failure the policy does not retry.
    """
    policy = policy or readiness_policy()
    attempts = 0

    def _attempt() -> int:
        nonlocal attempts
        attempts += 1
        return probe_once(url, timeout=timeout)

    logger.info("Waiting for server to start up...", extra={"url": url})
    try:
        status_code = retry_call(_attempt, policy)
    except RetryExhaustedError as exc:
        raise ReadinessTimeoutError(url, exc.attempts, exc.last_error) from exc
    except requests.exceptions.RequestException as exc:
        raise StageError(f"Probe of {url} failed: {exc}", cause=exc) from exc

    logger.info(
        "Server is up.", extra={"url": url, "attempts": attempts, "status_code": status_code}
    )
    return attempts
