# Where: perf/runner/models.py
# What: Dataclasses for pipeline options, container handles and run state.
# Why: Keep execution inputs explicit and avoid implicit global state.
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, NamedTuple

from perf.runner import constants

if TYPE_CHECKING:
    from perf.runner.docker_client import ContainerRuntime
    from perf.runner.teardown import TeardownReport

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass(frozen=True)
class PipelineOptions:
    app_build_cmd: str
    app_server_cmd: str
    git_sha: str
    github_org: str
    github_repo: str
    github_token: str
    urls: tuple[str, ...]
    mock_server_cmd: str | None = None
    app_server_hostname: str = constants.DEFAULT_HOSTNAME
    mock_server_hostname: str = constants.DEFAULT_HOSTNAME
    metrics_host: str | None = None
    prefix: str = constants.DEFAULT_PREFIX
    profile: str = constants.DEFAULT_PROFILE
    resource_timing: bool = False
    sitespeed_retries: int = constants.SITESPEED_RETRIES
    sitespeed_retry_interval: float = constants.SITESPEED_RETRY_INTERVAL
    sitespeed_sample_size: int = constants.SITESPEED_SAMPLE_SIZE
    sitespeed_screenshot: bool = False
    sitespeed_output_dir: str | None = None
    browser_config: str | None = None
    plugins_dir: str | None = None
    readiness_attempts: int = constants.READINESS_ATTEMPTS
    readiness_timeout: float = constants.READINESS_REQUEST_TIMEOUT
    parallel_urls: bool = False
    timestamp: int = 0
    result_file: str | None = None
    github_url: str = constants.DEFAULT_GITHUB_URL
    builder_container: str | None = None


@dataclass(frozen=True)
class ContainerHandle:
    """One container created (or adopted) by the pipeline."""

    container_id: str
    image: str = ""
    inspect_data: Mapping[str, Any] = field(default_factory=dict)
    protected: bool = False

    @property
    def name(self) -> str:
        return str(self.inspect_data.get("Name", "")).lstrip("/")

    @property
    def network_settings(self) -> Mapping[str, Any]:
        return self.inspect_data.get("NetworkSettings") or {}

    @property
    def ip_address(self) -> str:
        return self.network_settings.get("IPAddress") or ""

    @property
    def exit_code(self) -> int | None:
        state = self.inspect_data.get("State") or {}
        return state.get("ExitCode")

    def published_port(self, port: str) -> tuple[str, str] | None:
        ports = self.network_settings.get("Ports") or {}
        bindings = ports.get(port) or []
        if not bindings:
            return None
        binding = bindings[0]
        return binding.get("HostIp", ""), str(binding.get("HostPort", ""))


@dataclass(frozen=True)
class PipelineContext:
    """
    State threaded through the stages.

    Stages never mutate a context; ``with_container`` returns a new value whose
    container mapping is a superset of the current one.
    """

    options: PipelineOptions
    runtime: ContainerRuntime | None = None
    containers: Mapping[str, ContainerHandle] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def with_runtime(self, runtime: ContainerRuntime) -> PipelineContext:
        return replace(self, runtime=runtime)

    def with_container(self, role: str, handle: ContainerHandle) -> PipelineContext:
        return self.with_containers({role: handle})

    def with_containers(self, handles: Mapping[str, ContainerHandle]) -> PipelineContext:
        if not handles:
            return self
        merged = dict(self.containers)
        merged.update(handles)
        return replace(self, containers=MappingProxyType(merged))

    def require_runtime(self) -> ContainerRuntime:
        if self.runtime is None:
            raise RuntimeError("Container runtime is not initialized")
        return self.runtime


class StageResult(NamedTuple):
    context: PipelineContext
    error: Exception | None = None


@dataclass(frozen=True)
class StageOutcome:
    name: str
    status: str
    duration: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "stage": self.name,
            "status": self.status,
            "duration": round(self.duration, 3),
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class PipelineResult:
    context: PipelineContext
    stages: list[StageOutcome]
    error: Exception | None
    teardown: TeardownReport
    exit_code: int

    @property
    def failed_stage(self) -> str | None:
        for outcome in self.stages:
            if outcome.status == STATUS_FAILED:
                return outcome.name
        return None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == constants.EXIT_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "exit_code": self.exit_code,
            "failed_stage": self.failed_stage,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
            "stages": [outcome.to_dict() for outcome in self.stages],
            "containers": {
                role: handle.container_id for role, handle in self.context.containers.items()
            },
            "teardown": self.teardown.to_dict(),
        }
