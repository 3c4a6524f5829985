# Where: perf/runner/reporting.py
# What: Time-series reporting of run metrics.
# Why: Runs are compared over time per tenant (organization + repository).
from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Protocol

import requests

from perf.runner import constants
from perf.runner.models import PipelineOptions

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def snake_case(value: str) -> str:
    return "_".join(word.lower() for word in _WORD_RE.findall(value))


def tenant_for(org: str, repo: str) -> str:
    return snake_case(f"{org}/{repo}")


def metric_name(prefix: str, tenant: str, metric: str) -> str:
    return f"{prefix}.{tenant}.{metric}"


def build_commit_metrics(options: PipelineOptions) -> dict[str, Any]:
    commit_url = "/".join(
        [
            options.github_url.rstrip("/"),
            options.github_org,
            options.github_repo,
            "commit",
            options.git_sha,
        ]
    )
    payload = {"gitcommit": options.git_sha, "giturl": commit_url}
    return {constants.METRIC_GIT_COMMIT: json.dumps(payload)}


class Reporter(Protocol):
    def report(self, metrics: Mapping[str, Any], *, tenant: str, timestamp: int) -> None: ...


class KairosReporter:
    """
    Posts datapoints to a KairosDB compatible endpoint.

    One datapoint per metric, named ``<prefix>.<tenant>.<metric>`` and tagged with
    the run profile.
    """

    def __init__(
        self,
        host: str,
        *,
        prefix: str = constants.DEFAULT_PREFIX,
        profile: str = constants.DEFAULT_PROFILE,
        timeout: float = constants.REPORT_TIMEOUT,
    ):
        self.host = host
        self.prefix = prefix
        self.profile = profile
        self.timeout = timeout

    @property
    def url(self) -> str:
        base = self.host if "://" in self.host else f"http://{self.host}"
        return f"{base.rstrip('/')}/api/v1/datapoints"

    def build_payload(
        self, metrics: Mapping[str, Any], *, tenant: str, timestamp: int
    ) -> list[dict[str, Any]]:
        return [
            {
                "name": metric_name(self.prefix, tenant, key),
                "datapoints": [[timestamp, value]],
                "tags": {"profile": self.profile},
            }
            for key, value in metrics.items()
        ]

    def report(self, metrics: Mapping[str, Any], *, tenant: str, timestamp: int) -> None:
        payload = self.build_payload(metrics, tenant=tenant, timestamp=timestamp)
        logger.info(
            "Sending datapoints",
            extra={"url": self.url, "metrics": sorted(metrics), "tenant": tenant},
        )
        with requests.Session() as session:
            session.trust_env = False
            response = session.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()
