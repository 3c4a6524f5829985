#!/usr/bin/env python3
# Where: perf/runner/main.py
# What: Entry point for one performance pipeline run.
# Why: Resolve configuration once, run the waterfall, and turn the outcome into an exit status.
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from perf.runner.cli import build_options, parse_args
from perf.runner.config import RuntimeSettings
from perf.runner.docker_client import ContainerRuntime, create_docker_client
from perf.runner.logging_config import setup_logging
from perf.runner.models import PipelineContext, PipelineResult
from perf.runner.pipeline import default_stages, run_pipeline

logger = logging.getLogger("perf.runner.main")


def write_result(result: PipelineResult, path: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(result.to_dict(), indent=2) + "\n", encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    settings = RuntimeSettings()
    setup_logging(settings.LOG_CONFIG_PATH, settings.LOG_LEVEL)

    args = parse_args(argv)
    options = build_options(args, builder_container=settings.APP_BUILDER_CONTAINER)

    def _runtime_factory() -> ContainerRuntime:
        return ContainerRuntime(create_docker_client(settings))

    result = run_pipeline(
        PipelineContext(options=options),
        default_stages(runtime_factory=_runtime_factory),
    )

    if result.error is not None:
        logger.error(f"Something went wrong! {result.error}", extra={"stage": result.failed_stage})
    summary = result.to_dict()
    logger.info("All done!", extra={"result": summary})

    if options.result_file:
        write_result(result, options.result_file)

    if result.context.runtime is not None:
        result.context.runtime.close()
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
