"""Unit tests for the error taxonomy and multi-step failure reporting."""

from __future__ import annotations

import pytest
from fastapi import status

from carbonscheme.core.errors import (
    NotFoundError,
    PartialFailureError,
    RollupError,
    ScenarioCapacityError,
    ScenarioLabelLockedError,
    SchemeLockedError,
    StepTracker,
    ValidationError,
    http_error_from,
)
from carbonscheme.modules.distance import DistanceUnavailableError, UnresolvedLocationError


@pytest.mark.asyncio
async def test_failure_in_first_step_propagates_unchanged() -> None:
    tracker = StepTracker("apply_scenario")
    with pytest.raises(ValueError, match="boom"):
        async with tracker.step("delete_usage"):
            raise ValueError("boom")
    assert tracker.completed == []


@pytest.mark.asyncio
async def test_failure_after_a_step_reports_partial_state() -> None:
    tracker = StepTracker("apply_scenario")
    async with tracker.step("delete_usage"):
        pass
    async with tracker.step("delete_products"):
        pass
    with pytest.raises(PartialFailureError) as excinfo:
        async with tracker.step("insert_products"):
            raise RuntimeError("constraint violated")

    error = excinfo.value
    assert error.operation == "apply_scenario"
    assert error.step == "insert_products"
    assert error.completed_steps == ["delete_usage", "delete_products"]
    assert "constraint violated" in str(error)
    assert isinstance(error.__cause__, RuntimeError)


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (NotFoundError("Scheme x not found"), status.HTTP_404_NOT_FOUND),
        (ScenarioCapacityError("full"), status.HTTP_409_CONFLICT),
        (ScenarioLabelLockedError("renamed"), status.HTTP_409_CONFLICT),
        (SchemeLockedError("locked"), status.HTTP_409_CONFLICT),
        (ValidationError("bad"), status.HTTP_422_UNPROCESSABLE_ENTITY),
        (UnresolvedLocationError("Invalid postcode: X"), status.HTTP_422_UNPROCESSABLE_ENTITY),
        (DistanceUnavailableError("down"), status.HTTP_502_BAD_GATEWAY),
        (RollupError("failed"), status.HTTP_500_INTERNAL_SERVER_ERROR),
        (PartialFailureError("op", "step", ["a"], "cause"), status.HTTP_500_INTERNAL_SERVER_ERROR),
    ],
)
def test_http_error_mapping(error: Exception, code: int) -> None:
    exc = http_error_from(error)
    assert exc.status_code == code
    assert exc.detail == str(error)
