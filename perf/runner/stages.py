# Where: perf/runner/stages.py
# What: The concrete pipeline stages (build, services, wait, load test, report).
# Why: Each stage only reads the context it is given and returns the next one.
from __future__ import annotations

import logging
from typing import Callable

from perf.runner import constants
from perf.runner.containers import ContainerSpec, reuse_container, run_attached, run_detached
from perf.runner.docker_client import ContainerRuntime
from perf.runner.errors import LoadTestExhaustedError, StageError
from perf.runner.load_test import run_load_tests as _run_load_tests
from perf.runner.models import ContainerHandle, PipelineContext, StageResult
from perf.runner.readiness import readiness_policy, wait_for_url
from perf.runner.reporting import KairosReporter, Reporter, build_commit_metrics, tenant_for

logger = logging.getLogger(__name__)


def _run_container(
    ctx: PipelineContext,
    role: str,
    run: Callable[[ContainerRuntime], ContainerHandle],
) -> StageResult:
    """Record the handle under ``role`` whether or not the run succeeded."""
    try:
        handle = run(ctx.require_runtime())
    except StageError as exc:
        if exc.handle is not None:
            ctx = ctx.with_container(role, exc.handle)
        return StageResult(ctx, exc)
    return StageResult(ctx.with_container(role, handle))


def _builder_id(ctx: PipelineContext) -> str:
    builder = ctx.containers.get(constants.ROLE_BUILDER)
    if builder is None:
        raise StageError("No builder container recorded; build stage has not run")
    return builder.container_id


def initialize(
    ctx: PipelineContext, *, runtime_factory: Callable[[], ContainerRuntime]
) -> StageResult:
    logger.info("Initializing...")
    try:
        runtime = runtime_factory()
    except Exception as exc:
        return StageResult(
            ctx, StageError(f"Failed to connect to the container engine: {exc}", cause=exc)
        )
    logger.info("Initialization complete.")
    return StageResult(ctx.with_runtime(runtime))


def build(ctx: PipelineContext) -> StageResult:
    options = ctx.options

    if options.builder_container:
        logger.info(
            "Reusing container with previously built application...",
            extra={"container_id": options.builder_container},
        )
        handle = reuse_container(options.builder_container, image=constants.IMAGE_APP_BUILDER)
        return StageResult(ctx.with_container(constants.ROLE_BUILDER, handle))

    spec = ContainerSpec(
        image=constants.IMAGE_APP_BUILDER,
        environment=(
            f"{constants.ENV_APP_BUILD_CMD}={options.app_build_cmd}",
            f"{constants.ENV_GITHUB_BRANCH_OR_SHA}={options.git_sha}",
            f"{constants.ENV_GITHUB_KEY}={options.github_token}",
            f"{constants.ENV_GITHUB_ORG}={options.github_org}",
            f"{constants.ENV_GITHUB_REPO}={options.github_repo}",
        ),
        tty=True,
        attach=True,
    )
    logger.info("Starting container to build application...", extra={"image": spec.image})
    result = _run_container(ctx, constants.ROLE_BUILDER, lambda rt: run_attached(rt, spec))
    if result.error is None:
        logger.info("Application successfully built.")
    return result


def start_mock_server(ctx: PipelineContext) -> StageResult:
    options = ctx.options
    try:
        builder_id = _builder_id(ctx)
    except StageError as exc:
        return StageResult(ctx, exc)

    spec = ContainerSpec(
        image=constants.IMAGE_MOCK_SERVER,
        environment=(f"{constants.ENV_MOCK_SERVER_CMD}={options.mock_server_cmd}",),
        publish_all_ports=True,
        volumes_from=(builder_id,),
        hostname=options.mock_server_hostname,
    )
    logger.info("Starting mocking server...", extra={"image": spec.image})
    return _run_container(ctx, constants.ROLE_MOCK_SERVER, lambda rt: run_detached(rt, spec))


def start_app_server(ctx: PipelineContext) -> StageResult:
    options = ctx.options
    try:
        builder_id = _builder_id(ctx)
    except StageError as exc:
        return StageResult(ctx, exc)

    mock_server = ctx.containers.get(constants.ROLE_MOCK_SERVER)
    if mock_server is not None:
        extra_hosts = {options.mock_server_hostname: mock_server.ip_address}
        links = {mock_server.name: constants.MOCK_SERVER_LINK_ALIAS}
    else:
        extra_hosts = {options.mock_server_hostname: constants.UNRESOLVED_HOST_IP}
        links = {}

    spec = ContainerSpec(
        image=constants.IMAGE_APP_SERVER,
        environment=(f"{constants.ENV_APP_SERVER_CMD}={options.app_server_cmd}",),
        extra_hosts=extra_hosts,
        links=links,
        publish_all_ports=True,
        volumes_from=(builder_id,),
    )
    logger.info("Starting application server...", extra={"image": spec.image})
    return _run_container(ctx, constants.ROLE_APP_SERVER, lambda rt: run_detached(rt, spec))


def app_server_url(handle: ContainerHandle) -> str:
    binding = handle.published_port(constants.APP_SERVER_PORT)
    if binding is None:
        raise StageError(
            f"App server container {handle.container_id} does not publish "
            f"{constants.APP_SERVER_PORT}",
            handle=handle,
        )
    host_ip, host_port = binding
    return f"http://{host_ip or '127.0.0.1'}:{host_port}"


def wait_for_app_server(ctx: PipelineContext) -> StageResult:
    handle = ctx.containers.get(constants.ROLE_APP_SERVER)
    if handle is None:
        return StageResult(ctx, StageError("No app server container recorded"))
    try:
        url = app_server_url(handle)
        wait_for_url(
            url,
            policy=readiness_policy(ctx.options.readiness_attempts),
            timeout=ctx.options.readiness_timeout,
        )
    except StageError as exc:
        logger.error("Application server failed to start!", extra={"error": str(exc)})
        return StageResult(ctx, exc)
    return StageResult(ctx)


def run_load_tests(ctx: PipelineContext) -> StageResult:
    handle = ctx.containers.get(constants.ROLE_APP_SERVER)
    if handle is None:
        return StageResult(ctx, StageError("No app server container recorded"))

    outcomes = _run_load_tests(
        ctx.require_runtime(),
        ctx.options,
        handle.ip_address,
        parallel=ctx.options.parallel_urls,
    )
    for outcome in outcomes:
        ctx = ctx.with_containers(outcome.containers())

    failures = [outcome.error for outcome in outcomes if outcome.error is not None]
    for outcome in outcomes:
        logger.info(
            "Load test finished",
            extra={
                "url": outcome.url,
                "attempts": outcome.attempts,
                "succeeded": outcome.succeeded,
            },
        )
    if not failures:
        return StageResult(ctx)
    if len(failures) == 1:
        return StageResult(ctx, failures[0])
    urls = ", ".join(f.url for f in failures if isinstance(f, LoadTestExhaustedError))
    return StageResult(
        ctx,
        StageError(f"Load tests failed for {len(failures)} URLs: {urls}", cause=failures[0]),
    )


def report(ctx: PipelineContext, *, reporter: Reporter | None = None) -> StageResult:
    options = ctx.options
    if reporter is None:
        if not options.metrics_host:
            return StageResult(ctx, StageError("No metrics host configured"))
        reporter = KairosReporter(
            options.metrics_host, prefix=options.prefix, profile=options.profile
        )

    tenant = tenant_for(options.github_org, options.github_repo)
    try:
        reporter.report(build_commit_metrics(options), tenant=tenant, timestamp=options.timestamp)
    except Exception as exc:
        return StageResult(ctx, StageError(f"Failed to report metrics: {exc}", cause=exc))
    logger.info("Metrics reported.", extra={"tenant": tenant})
    return StageResult(ctx)
