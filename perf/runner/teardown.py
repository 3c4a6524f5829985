# Where: perf/runner/teardown.py
# What: Best-effort concurrent removal of every container a run created.
# Why: One stuck container must not keep the others alive or hide the run's real failure.
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Mapping

from perf.runner import constants
from perf.runner.docker_client import ContainerRuntime
from perf.runner.errors import TeardownRemovalError
from perf.runner.models import ContainerHandle

logger = logging.getLogger(__name__)


@dataclass
class TeardownReport:
    removed: list[str] = field(default_factory=list)
    protected: list[str] = field(default_factory=list)
    failures: list[TeardownRemovalError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "removed": list(self.removed),
            "protected": list(self.protected),
            "error_count": self.error_count,
            "failures": [
                {"role": f.role, "container_id": f.container_id, "error": str(f.cause)}
                for f in self.failures
            ],
        }


def tear_down(
    runtime: ContainerRuntime | None,
    containers: Mapping[str, ContainerHandle],
    *,
    max_workers: int = constants.TEARDOWN_MAX_WORKERS,
) -> TeardownReport:
    """
    Remove every unprotected container concurrently.

    Never raises: each removal failure is recorded in the report.
    """
    report = TeardownReport()
    targets: list[tuple[str, ContainerHandle]] = []
    for role, handle in containers.items():
        if handle.protected:
            logger.info(
                "Keeping protected container",
                extra={"role": role, "container_id": handle.container_id},
            )
            report.protected.append(handle.container_id)
            continue
        targets.append((role, handle))

    logger.info("Tearing down...", extra={"containers": len(targets)})
    if not targets:
        return report
    if runtime is None:
        for role, handle in targets:
            report.failures.append(
                TeardownRemovalError(
                    role, handle.container_id, RuntimeError("container runtime is not initialized")
                )
            )
        return report

    def _remove(item: tuple[str, ContainerHandle]) -> TeardownRemovalError | None:
        role, handle = item
        try:
            runtime.remove_container(handle.container_id, force=True, remove_volumes=True)
        except Exception as e:
            logger.warning(
                f"Error while removing container {handle.container_id}: {e}",
                extra={"role": role, "container_id": handle.container_id},
            )
            return TeardownRemovalError(role, handle.container_id, e)
        return None

    workers = max(1, min(max_workers, len(targets)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(_remove, targets))

    for (_role, handle), failure in zip(targets, results):
        if failure is None:
            report.removed.append(handle.container_id)
        else:
            report.failures.append(failure)
    return report
