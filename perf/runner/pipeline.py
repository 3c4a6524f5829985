# Where: perf/runner/pipeline.py
# What: Waterfall orchestration of the pipeline stages plus unconditional teardown.
# Why: The first failing stage stops the run, but every container created so far is cleaned up.
from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from perf.runner import constants, stages
from perf.runner.docker_client import ContainerRuntime
from perf.runner.errors import StageError, TeardownRemovalError
from perf.runner.models import (
    STATUS_FAILED,
    STATUS_PASSED,
    STATUS_SKIPPED,
    ContainerHandle,
    PipelineContext,
    PipelineOptions,
    PipelineResult,
    StageOutcome,
    StageResult,
)
from perf.runner.reporting import Reporter
from perf.runner.teardown import TeardownReport, tear_down

logger = logging.getLogger(__name__)

TeardownFn = Callable[[ContainerRuntime | None, Mapping[str, ContainerHandle]], TeardownReport]


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[[PipelineContext], StageResult]
    skip_if: Callable[[PipelineOptions], bool] | None = None


def default_stages(
    *,
    runtime_factory: Callable[[], ContainerRuntime],
    reporter: Reporter | None = None,
) -> list[Stage]:
    return [
        Stage(
            constants.STAGE_INITIALIZE,
            functools.partial(stages.initialize, runtime_factory=runtime_factory),
        ),
        Stage(constants.STAGE_BUILD, stages.build),
        Stage(
            constants.STAGE_MOCK_SERVER,
            stages.start_mock_server,
            skip_if=lambda options: not options.mock_server_cmd,
        ),
        Stage(constants.STAGE_APP_SERVER, stages.start_app_server),
        Stage(constants.STAGE_WAIT, stages.wait_for_app_server),
        Stage(constants.STAGE_LOAD_TEST, stages.run_load_tests),
        Stage(
            constants.STAGE_REPORT,
            functools.partial(stages.report, reporter=reporter),
            skip_if=lambda options: reporter is None and not options.metrics_host,
        ),
    ]


def exit_code(stage_ok: bool, teardown_errors: int) -> int:
    if stage_ok and teardown_errors == 0:
        return constants.EXIT_SUCCESS
    return constants.EXIT_FAILURE


def _keep_superset(previous: PipelineContext, current: PipelineContext) -> PipelineContext:
    """Re-record any earlier handle a stage dropped or overwrote, by container id."""
    kept_ids = {handle.container_id for handle in current.containers.values()}
    dropped: dict[str, ContainerHandle] = {}
    for role, handle in previous.containers.items():
        if handle.container_id in kept_ids:
            continue
        key = role
        suffix = 1
        while key in current.containers or key in dropped:
            suffix += 1
            key = f"{role}_{suffix}"
        dropped[key] = handle
        kept_ids.add(handle.container_id)
    if dropped:
        logger.warning(
            "Stage dropped container handles; restoring", extra={"roles": sorted(dropped)}
        )
        current = current.with_containers(dropped)
    return current


def _record_error_handle(
    ctx: PipelineContext, stage_name: str, error: Exception
) -> PipelineContext:
    handle = getattr(error, "handle", None)
    if not isinstance(handle, ContainerHandle):
        return ctx
    known = {h.container_id for h in ctx.containers.values()}
    if handle.container_id in known:
        return ctx
    return ctx.with_container(stage_name, handle)


def _run_stage(stage: Stage, ctx: PipelineContext) -> StageResult:
    try:
        result = stage.run(ctx)
    except Exception as exc:
        result = StageResult(ctx, exc)
    next_ctx = _keep_superset(ctx, result.context)
    error = result.error
    if error is None:
        return StageResult(next_ctx)
    if not isinstance(error, StageError):
        error = StageError(f"{stage.name} failed: {error}", stage=stage.name, cause=error)
    elif error.stage is None:
        error.stage = stage.name
    return StageResult(_record_error_handle(next_ctx, stage.name, error), error)


def _safe_teardown(teardown: TeardownFn, ctx: PipelineContext) -> TeardownReport:
    try:
        return teardown(ctx.runtime, ctx.containers)
    except Exception as exc:
        logger.exception("Teardown failed unexpectedly")
        return TeardownReport(failures=[TeardownRemovalError("*", "", exc)])


def run_pipeline(
    ctx: PipelineContext,
    stage_list: list[Stage],
    *,
    teardown: TeardownFn = tear_down,
) -> PipelineResult:
    """
    Run ``stage_list`` in order, stop at the first failure, then tear down once.
    """
    outcomes: list[StageOutcome] = []
    error: Exception | None = None

    for stage in stage_list:
        if stage.skip_if is not None and stage.skip_if(ctx.options):
            logger.info(f"Skipping {stage.name}...")
            outcomes.append(StageOutcome(stage.name, STATUS_SKIPPED))
            continue

        logger.info(f"Stage {stage.name} started")
        started = time.monotonic()
        result = _run_stage(stage, ctx)
        duration = time.monotonic() - started
        ctx = result.context

        if result.error is not None:
            error = result.error
            outcomes.append(StageOutcome(stage.name, STATUS_FAILED, duration, str(error)))
            logger.error(
                f"Stage {stage.name} failed: {error}",
                extra={"stage": stage.name, "error_type": type(error).__name__},
            )
            break

        outcomes.append(StageOutcome(stage.name, STATUS_PASSED, duration))
        logger.info(f"Stage {stage.name} passed", extra={"duration": round(duration, 3)})

    report = _safe_teardown(teardown, ctx)
    if report.error_count:
        logger.warning(
            f"{report.error_count} container(s) could not be removed",
            extra={"failures": [f.container_id for f in report.failures]},
        )

    code = exit_code(error is None, report.error_count)
    return PipelineResult(
        context=ctx,
        stages=outcomes,
        error=error,
        teardown=report,
        exit_code=code,
    )
