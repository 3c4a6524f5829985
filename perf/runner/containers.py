# Where: perf/runner/containers.py
# What: Run-attached and run-detached container execution.
# Why: One-shot work is judged by its exit code; services must keep running for later stages.
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from perf.runner.docker_client import ContainerRuntime
from perf.runner.errors import NonZeroExitError, StageError
from perf.runner.logging import forward_output, make_prefix_printer
from perf.runner.models import ContainerHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContainerSpec:
    image: str
    command: tuple[str, ...] = ()
    environment: tuple[str, ...] = ()
    binds: tuple[str, ...] = ()
    extra_hosts: dict[str, str] = field(default_factory=dict)
    links: dict[str, str] = field(default_factory=dict)
    publish_all_ports: bool = False
    volumes_from: tuple[str, ...] = ()
    cpu_shares: int | None = None
    hostname: str | None = None
    tty: bool = False
    attach: bool = False


def reuse_container(container_id: str, *, image: str = "") -> ContainerHandle:
    """Wrap a container this process did not create; teardown leaves it alone."""
    return ContainerHandle(container_id=container_id, image=image, protected=True)


def run_attached(
    runtime: ContainerRuntime,
    spec: ContainerSpec,
    *,
    printer: Callable[[str], None] | None = None,
) -> ContainerHandle:
    """
    Create, stream output, start and block until the container exits.

    Raises NonZeroExitError for a non-zero exit status. Any error raised after
    the container exists carries its handle so teardown can still remove it.
    """
    container_id = _create(runtime, spec)
    handle = ContainerHandle(container_id=container_id, image=spec.image)
    printer = printer or make_prefix_printer(spec.image)

    try:
        output = runtime.attach_output(container_id)
        runtime.start_container(container_id)
        forward_output(output, printer)
        status_code = runtime.wait(container_id)
    except Exception as exc:
        raise StageError(
            f"Failed to run container from {spec.image}: {exc}", handle=handle, cause=exc
        ) from exc

    if status_code != 0:
        logger.error(
            "Container exited with non-zero status",
            extra={"image": spec.image, "container_id": container_id, "status_code": status_code},
        )
        raise NonZeroExitError(spec.image, status_code, handle=handle)

    return _inspect(runtime, handle)


def run_detached(runtime: ContainerRuntime, spec: ContainerSpec) -> ContainerHandle:
    """Create and start the container, inspect it and return without waiting."""
    container_id = _create(runtime, spec)
    handle = ContainerHandle(container_id=container_id, image=spec.image)

    try:
        runtime.start_container(container_id)
    except Exception as exc:
        raise StageError(
            f"Failed to start container from {spec.image}: {exc}", handle=handle, cause=exc
        ) from exc

    return _inspect(runtime, handle)


def _create(runtime: ContainerRuntime, spec: ContainerSpec) -> str:
    try:
        container_id = runtime.create_container(spec)
    except Exception as exc:
        raise StageError(
            f"Failed to create container from {spec.image}: {exc}", cause=exc
        ) from exc
    logger.debug("Created container", extra={"image": spec.image, "container_id": container_id})
    return container_id


def _inspect(runtime: ContainerRuntime, handle: ContainerHandle) -> ContainerHandle:
    try:
        data = runtime.inspect(handle.container_id)
    except Exception as exc:
        raise StageError(
            f"Failed to inspect container {handle.container_id}: {exc}", handle=handle, cause=exc
        ) from exc
    return ContainerHandle(
        container_id=handle.container_id,
        image=handle.image,
        inspect_data=data,
        protected=handle.protected,
    )
