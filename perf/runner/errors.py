"""
Pipeline exception classes.

Stage failures abort the waterfall; removal failures are only collected.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from perf.runner.models import ContainerHandle


class PipelineError(Exception):
    """Base exception class for the performance pipeline."""

    pass


class StageError(PipelineError):
    """Raised when a stage operation fails outright."""

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        handle: "ContainerHandle | None" = None,
        cause: BaseException | None = None,
    ):
        self.stage = stage
        self.handle = handle
        self.cause = cause
        super().__init__(message)


class NonZeroExitError(StageError):
    """Raised when a run-attached container exits with a non-zero status."""

    def __init__(self, image: str, status_code: int, *, handle: "ContainerHandle | None" = None):
        self.image = image
        self.status_code = status_code
        super().__init__(
            f'Container from "{image}" image returned status code {status_code}.',
            handle=handle,
        )


class ReadinessTimeoutError(StageError):
    """Raised when the probed endpoint never answered within the attempt budget."""

    def __init__(self, url: str, attempts: int, last_error: BaseException | None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{url} did not respond after {attempts} attempts. Last error: {last_error}",
            cause=last_error,
        )


class LoadTestExhaustedError(StageError):
    """Raised when every load-test attempt for one URL failed."""

    def __init__(self, url: str, attempts: int, last_error: BaseException | None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Load test for {url} failed after {attempts} attempts: {last_error}",
            cause=last_error,
        )


class RetryExhaustedError(PipelineError):
    """Raised by retry_call when the attempt budget is spent."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


class TeardownRemovalError(PipelineError):
    """A container that could not be removed. Collected, never raised."""

    def __init__(self, role: str, container_id: str, cause: BaseException):
        self.role = role
        self.container_id = container_id
        self.cause = cause
        super().__init__(f"Failed to remove {role} container {container_id}: {cause}")
