# Where: perf/runner/tests/test_readiness.py
# What: Unit tests for the app server readiness probe.
# Why: The probe must retry only connection-level failures and stop at its budget.
from __future__ import annotations

import errno

import pytest
import requests

from perf.runner import readiness
from perf.runner.errors import ReadinessTimeoutError, StageError
from perf.runner.retry import RetryPolicy


def _refused() -> requests.exceptions.ConnectionError:
    return requests.exceptions.ConnectionError(
        ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
    )


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


class FakeSession:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = outcomes
        self.calls: list[tuple[str, float]] = []
        self.trust_env = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def get(self, url: str, timeout: float):
        self.calls.append((url, timeout))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return FakeResponse(outcome)


@pytest.fixture
def session(monkeypatch):
    holder: dict[str, FakeSession] = {}

    def install(outcomes: list) -> FakeSession:
        fake = FakeSession(outcomes)
        holder["session"] = fake
        monkeypatch.setattr(readiness.requests, "Session", lambda: fake)
        return fake

    return install


def test_probe_disables_proxy_env_and_passes_timeout(session) -> None:
    fake = session([200])
    assert readiness.probe_once("http://127.0.0.1:3000", timeout=5.0) == 200
    assert fake.trust_env is False
    assert fake.calls == [("http://127.0.0.1:3000", 5.0)]


@pytest.mark.parametrize("failures", [0, 1, 4])
def test_wait_succeeds_after_k_refusals(session, no_sleep, failures: int) -> None:
    fake = session([_refused()] * failures + [200])
    attempts = readiness.wait_for_url("http://127.0.0.1:3000", timeout=5.0)
    assert attempts == failures + 1
    assert len(fake.calls) == failures + 1
    assert len(no_sleep) == failures


def test_any_http_status_counts_as_ready(session) -> None:
    session([_refused(), 503])
    assert readiness.wait_for_url("http://127.0.0.1:3000") == 2


def test_wait_gives_up_after_exactly_max_attempts(session) -> None:
    fake = session([_refused()])
    with pytest.raises(ReadinessTimeoutError) as excinfo:
        readiness.wait_for_url("http://127.0.0.1:3000", policy=readiness.readiness_policy(10))
    assert len(fake.calls) == 10
    assert excinfo.value.attempts == 10
    assert isinstance(excinfo.value.last_error, requests.exceptions.ConnectionError)


def test_non_connection_error_fails_without_retry(session) -> None:
    fake = session([requests.exceptions.ReadTimeout("read timed out")])
    with pytest.raises(StageError) as excinfo:
        readiness.wait_for_url("http://127.0.0.1:3000")
    assert not isinstance(excinfo.value, ReadinessTimeoutError)
    assert len(fake.calls) == 1


def test_backoff_delays_grow(session, no_sleep) -> None:
    session([_refused()] * 3 + [200])
    policy = RetryPolicy.exponential(0.1, 10, readiness.is_connection_retryable, factor=2.0)
    readiness.wait_for_url("http://127.0.0.1:3000", policy=policy)
    assert no_sleep == pytest.approx([0.1, 0.2, 0.4])


def test_retryable_predicate_recognizes_refused_and_reset() -> None:
    assert readiness.is_connection_retryable(_refused())
    assert readiness.is_connection_retryable(ConnectionResetError(errno.ECONNRESET, "reset"))
    assert readiness.is_connection_retryable(OSError(errno.ECONNREFUSED, "refused"))


def test_retryable_predicate_follows_exception_chain() -> None:
    try:
        try:
            raise ConnectionResetError(errno.ECONNRESET, "Connection reset by peer")
        except ConnectionResetError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        assert readiness.is_connection_retryable(outer)


def test_retryable_predicate_rejects_other_errors() -> None:
    assert not readiness.is_connection_retryable(requests.exceptions.ReadTimeout("slow"))
    assert not readiness.is_connection_retryable(ValueError("bad"))
    assert not readiness.is_connection_retryable(OSError(errno.EHOSTUNREACH, "no route"))
