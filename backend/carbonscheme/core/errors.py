"""Error taxonomy shared by the scheme-carbon services.

Services raise these; routers translate them with :func:`http_error_from`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from fastapi import HTTPException, status

from carbonscheme.core.logging import get_logger

logger = get_logger(__name__)


class SchemeError(Exception):
    """Base class for errors surfaced to callers."""


class ValidationError(SchemeError, ValueError):
    """A required field is missing or invalid. Raised before any write."""


class SchemeLockedError(ValidationError):
    """The scheme is locked and its editable state cannot change."""


class ScenarioCapacityError(ValidationError):
    """The scheme already holds the maximum number of scenarios."""


class ScenarioLabelLockedError(ValidationError):
    """The scenario label was already renamed and is now fixed."""


class NotFoundError(SchemeError, LookupError):
    """A referenced scheme, scenario, item or reference row does not exist."""


class ExternalServiceError(SchemeError, RuntimeError):
    """An external collaborator could not produce a usable answer."""


class RollupError(SchemeError, RuntimeError):
    """The external carbon roll-up procedure failed."""


class PartialFailureError(SchemeError, RuntimeError):
    """A multi-step mutation failed after some of its steps took effect.

    Earlier steps are not compensated; ``completed_steps`` lists them.
    """

    def __init__(self, operation: str, step: str, completed_steps: Sequence[str], cause: str):
        self.operation = operation
        self.step = step
        self.completed_steps = list(completed_steps)
        completed = ", ".join(self.completed_steps) or "none"
        super().__init__(
            f"{operation} failed at step '{step}' (completed: {completed}): {cause}"
        )


class StepTracker:
    """Names the steps of a non-atomic sequence.

    Usage::

        tracker = StepTracker("apply_snapshot")
        async with tracker.step("delete_usage"):
            ...
        async with tracker.step("insert_products"):
            ...

    A failure in the first step propagates unchanged. A failure after at
    least one step completed is re-raised as :class:`PartialFailureError`.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.completed: list[str] = []

    @asynccontextmanager
    async def step(self, name: str) -> AsyncIterator[None]:
        try:
            yield
        except Exception as exc:
            if not self.completed:
                raise
            logger.error(
                "multi_step_operation_partial_failure",
                operation=self.operation,
                step=name,
                completed_steps=self.completed,
                error=str(exc),
            )
            raise PartialFailureError(self.operation, name, self.completed, str(exc)) from exc
        self.completed.append(name)


def http_error_from(exc: SchemeError) -> HTTPException:
    """Map a service error onto the HTTP status callers expect."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (ScenarioCapacityError, ScenarioLabelLockedError, SchemeLockedError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, ExternalServiceError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
