"""Error taxonomy for the transcript pipeline and its persistence boundary."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from studio.extraction.models import Diagnostic


class StudioError(Exception):
    """Base class for all errors raised by this package."""


class EmptyInputError(StudioError, ValueError):
    """The transcript is empty or whitespace-only."""

    def __init__(self, message: str = "Transcript is empty.") -> None:
        super().__init__(message)


class StageTimeoutError(StudioError):
    """A pipeline stage exceeded its time budget on every attempt."""

    def __init__(self, stage: str, timeout: float, attempts: int = 1) -> None:
        self.stage = stage
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"Stage {stage!r} exceeded its {timeout:g}s budget "
            f"({attempts} attempt{'s' if attempts != 1 else ''})"
        )


class PartialContentError(StudioError):
    """Part of a stage's output could not be produced.

    Recorded as a diagnostic; never raised to the caller of ``submit``.
    """


class PersistenceError(StudioError):
    """The record store rejected or failed a write or read."""


class NotFoundError(StudioError):
    """No processed record exists for the requested id."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Processed transcript {record_id} not found")


class StageCancelledError(StudioError):
    """A stage observed its cancellation token at a work boundary."""


class PipelineCancelledError(StudioError):
    """The caller aborted the submission; nothing was persisted."""


class InvalidTransitionError(StudioError):
    """The pipeline state machine was asked to move backwards or skip to an unknown state."""


class PipelineFailedError(StudioError):
    """A required stage produced no usable output."""

    def __init__(
        self,
        message: str,
        diagnostics: list[Diagnostic] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.diagnostics = list(diagnostics or [])
        self.cause = cause
        super().__init__(message)
