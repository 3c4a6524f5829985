# Where: perf/runner/tests/conftest.py
# What: In-memory container runtime and option fixtures for pipeline tests.
# Why: Exercise stages and teardown without a Docker daemon.
from __future__ import annotations

import itertools
import threading
from typing import Any, Callable

import pytest

from perf.runner.containers import ContainerSpec
from perf.runner.models import PipelineOptions


class FakeRuntime:
    """
    Records every call. Behaviour per image is configured through:
      - exit_codes: image -> list of exit statuses consumed per run (default 0)
      - fail_create: images whose create call raises
      - fail_start: images whose start call raises
      - fail_remove: container ids whose removal raises
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.specs: dict[str, ContainerSpec] = {}
        self.created: list[str] = []
        self.started: list[str] = []
        self.removed: list[tuple[str, bool, bool]] = []
        self.exit_codes: dict[str, list[int]] = {}
        self.output: dict[str, list[bytes]] = {}
        self.fail_create: set[str] = set()
        self.fail_start: set[str] = set()
        self.fail_remove: set[str] = set()
        self.on_create: Callable[[ContainerSpec], None] | None = None
        self.closed = False

    def create_container(self, spec: ContainerSpec) -> str:
        if self.on_create:
            self.on_create(spec)
        if spec.image in self.fail_create:
            raise RuntimeError(f"cannot create {spec.image}")
        with self._lock:
            container_id = f"c{next(self._ids)}"
            self.specs[container_id] = spec
            self.created.append(container_id)
        return container_id

    def start_container(self, container_id: str) -> None:
        if self.specs[container_id].image in self.fail_start:
            raise RuntimeError(f"cannot start {container_id}")
        with self._lock:
            self.started.append(container_id)

    def attach_output(self, container_id: str):
        return iter(self.output.get(self.specs[container_id].image, []))

    def wait(self, container_id: str) -> int:
        image = self.specs[container_id].image
        with self._lock:
            codes = self.exit_codes.get(image)
            if codes:
                return codes.pop(0) if len(codes) > 1 else codes[0]
        return 0

    def inspect(self, container_id: str) -> dict[str, Any]:
        index = int(container_id[1:])
        return {
            "Id": container_id,
            "Name": f"/container-{container_id}",
            "State": {"ExitCode": 0},
            "NetworkSettings": {
                "IPAddress": f"172.17.0.{index}",
                "Ports": {"3000/tcp": [{"HostIp": "127.0.0.1", "HostPort": str(32000 + index)}]},
            },
        }

    def remove_container(
        self, container_id: str, *, force: bool = True, remove_volumes: bool = True
    ) -> None:
        if container_id in self.fail_remove:
            raise RuntimeError(f"cannot remove {container_id}")
        with self._lock:
            self.removed.append((container_id, force, remove_volumes))

    def close(self) -> None:
        self.closed = True

    def images_created(self) -> list[str]:
        return [self.specs[cid].image for cid in self.created]


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


def make_options(**overrides) -> PipelineOptions:
    values: dict[str, Any] = {
        "app_build_cmd": "npm run build",
        "app_server_cmd": "npm start",
        "git_sha": "abc123",
        "github_org": "acme",
        "github_repo": "shop-front",
        "github_token": "token",
        "urls": ("http://dev.example.com:3000/",),
        "sitespeed_retry_interval": 0.0,
        "timestamp": 1700000000000,
    }
    values.update(overrides)
    return PipelineOptions(**values)


@pytest.fixture
def options() -> PipelineOptions:
    return make_options()


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps: list[float] = []
    monkeypatch.setattr("perf.runner.retry._default_sleep", sleeps.append)
    return sleeps


REQUIRED_ARGS = [
    "--app-build-cmd",
    "npm run build",
    "--app-server-cmd",
    "npm start",
    "--git-sha",
    "abc123",
    "--github-org",
    "acme",
    "--github-repo",
    "shop-front",
    "--github-token",
    "token",
]
