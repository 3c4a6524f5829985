# Where: perf/runner/docker_client.py
# What: Container engine connection and the narrow runtime interface used by stages.
# Why: Keep Docker SDK calls in one place so stages and teardown can be tested with fakes.
from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Iterator
from urllib.parse import urlparse

import docker
import docker.tls

from perf.runner.config import RuntimeSettings

if TYPE_CHECKING:
    from perf.runner.containers import ContainerSpec

logger = logging.getLogger(__name__)


def create_docker_client(settings: RuntimeSettings) -> docker.DockerClient:
    if settings.is_remote:
        return _create_remote_client(settings)
    return _create_local_client(settings)


def _create_local_client(settings: RuntimeSettings) -> docker.DockerClient:
    base_url = settings.DOCKER_HOST or f"unix://{settings.DOCKER_SOCKET}"
    logger.info("Creating docker client...", extra={"base_url": base_url})
    return docker.DockerClient(base_url=base_url)


def _create_remote_client(settings: RuntimeSettings) -> docker.DockerClient:
    parsed = urlparse(settings.DOCKER_HOST or "")
    cert_path = settings.DOCKER_CERT_PATH or ""
    tls_config = docker.tls.TLSConfig(
        client_cert=(
            os.path.join(cert_path, "cert.pem"),
            os.path.join(cert_path, "key.pem"),
        ),
        ca_cert=os.path.join(cert_path, "ca.pem"),
        verify=True,
    )
    base_url = f"https://{parsed.hostname}:{parsed.port}"
    logger.info("Creating remote docker client...", extra={"base_url": base_url})
    return docker.DockerClient(base_url=base_url, tls=tls_config)


class ContainerRuntime:
    """
    The container operations the pipeline needs, addressed by container id.
    """

    def __init__(self, client: docker.DockerClient):
        self.client = client

    @property
    def api(self):
        return self.client.api

    def create_container(self, spec: "ContainerSpec") -> str:
        host_config = self.api.create_host_config(
            binds=list(spec.binds) or None,
            extra_hosts=dict(spec.extra_hosts) or None,
            links=dict(spec.links) or None,
            publish_all_ports=spec.publish_all_ports,
            volumes_from=list(spec.volumes_from) or None,
            cpu_shares=spec.cpu_shares,
        )
        created = self.api.create_container(
            spec.image,
            command=list(spec.command) if spec.command else None,
            environment=list(spec.environment) or None,
            hostname=spec.hostname,
            tty=spec.tty,
            stdin_open=spec.attach,
            host_config=host_config,
        )
        return created["Id"]

    def start_container(self, container_id: str) -> None:
        self.api.start(container_id)

    def attach_output(self, container_id: str) -> Iterator[bytes]:
        return self.api.attach(container_id, stdout=True, stderr=True, stream=True, logs=True)

    def wait(self, container_id: str) -> int:
        result = self.api.wait(container_id)
        return int(result.get("StatusCode", -1))

    def inspect(self, container_id: str) -> dict[str, Any]:
        return self.api.inspect_container(container_id)

    def remove_container(
        self, container_id: str, *, force: bool = True, remove_volumes: bool = True
    ) -> None:
        self.api.remove_container(container_id, v=remove_volumes, force=force)

    def close(self) -> None:
        self.client.close()
