"""API endpoint for CO2e equivalencies."""

from __future__ import annotations

from fastapi import APIRouter, Query

from carbonscheme.db.session import DbSession
from carbonscheme.modules.equivalency.schemas import EquivalenciesResponse
from carbonscheme.modules.equivalency.service import EquivalencyService

router = APIRouter()


@router.get("", response_model=EquivalenciesResponse)
async def compute_equivalencies(
    db: DbSession,
    tonnes: float = Query(...),
) -> EquivalenciesResponse:
    result = await EquivalencyService(db).compute(tonnes)
    return EquivalenciesResponse(tonnes=tonnes, **result.as_dict())
