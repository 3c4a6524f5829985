# Where: perf/runner/tests/test_reporting.py
# What: Unit tests for tenant naming and datapoint reporting.
# Why: Metric names must stay stable so runs can be compared over time.
from __future__ import annotations

import pytest
import requests

from perf.runner import reporting
from perf.runner.reporting import KairosReporter, snake_case, tenant_for


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("acme/shop-front", "acme_shop_front"),
        ("MyOrg/WebApp", "my_org_web_app"),
        ("ABCCorp/app2", "abc_corp_app_2"),
        ("already_snake", "already_snake"),
    ],
)
def test_snake_case(value: str, expected: str) -> None:
    assert snake_case(value) == expected


def test_tenant_for_joins_org_and_repo() -> None:
    assert tenant_for("Acme", "shop-front") == "acme_shop_front"


def test_payload_names_and_tags() -> None:
    reporter = KairosReporter("kairos:8080", prefix="rapido", profile="ci")

    payload = reporter.build_payload({"gitcommit": "{}"}, tenant="acme_shop", timestamp=99)

    assert reporter.url == "http://kairos:8080/api/v1/datapoints"
    assert payload == [
        {
            "name": "rapido.acme_shop.gitcommit",
            "datapoints": [[99, "{}"]],
            "tags": {"profile": "ci"},
        }
    ]


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        self.posts: list[tuple[str, object, float]] = []
        self.trust_env = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def post(self, url, json, timeout):
        self.posts.append((url, json, timeout))
        return FakeResponse(self.status_code)


def test_report_posts_payload(monkeypatch) -> None:
    session = FakeSession(204)
    monkeypatch.setattr(reporting.requests, "Session", lambda: session)

    KairosReporter("http://kairos:8080/").report({"gitcommit": "x"}, tenant="t", timestamp=1)

    [(url, body, timeout)] = session.posts
    assert url == "http://kairos:8080/api/v1/datapoints"
    assert body[0]["name"] == "perf.t.gitcommit"
    assert timeout == 10.0
    assert session.trust_env is False


def test_report_raises_on_http_error(monkeypatch) -> None:
    monkeypatch.setattr(reporting.requests, "Session", lambda: FakeSession(500))
    with pytest.raises(requests.exceptions.HTTPError):
        KairosReporter("kairos").report({"gitcommit": "x"}, tenant="t", timestamp=1)


def test_reporter_is_a_structural_interface() -> None:
    with pytest.raises(TypeError):
        reporting.Reporter()
