"""API endpoints for emission factor resolution and default flags."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from carbonscheme.core.errors import SchemeError, http_error_from
from carbonscheme.db.models import PlantMixFactor
from carbonscheme.db.session import DbSession
from carbonscheme.modules.factors.schemas import (
    FactorResolutionResponse,
    PlantMixFactorResponse,
)
from carbonscheme.modules.factors.service import FactorService

router = APIRouter()


def _to_response(row: PlantMixFactor) -> PlantMixFactorResponse:
    return PlantMixFactorResponse(
        id=row.id,
        plant_id=row.plant_id,
        mix_type_id=row.mix_type_id,
        product_id=row.product_id,
        kgco2e_per_tonne=row.kgco2e_per_tonne,
        recycled_materials_pct=row.recycled_materials_pct,
        is_default=row.is_default,
        valid_from=row.valid_from,
        valid_to=row.valid_to,
    )


@router.get("", response_model=list[PlantMixFactorResponse])
async def list_factors(
    db: DbSession,
    plant_id: UUID | None = Query(default=None),
) -> list[PlantMixFactorResponse]:
    rows = await FactorService(db).list_factors(plant_id)
    return [_to_response(row) for row in rows]


@router.get("/resolve", response_model=FactorResolutionResponse)
async def resolve_factor(
    db: DbSession,
    plant_id: UUID = Query(...),
    mix_type_id: UUID | None = Query(default=None),
    product_id: UUID | None = Query(default=None),
) -> FactorResolutionResponse:
    resolved = await FactorService(db).resolve(plant_id, mix_type_id, product_id)
    return FactorResolutionResponse(
        plant_id=plant_id,
        mix_type_id=mix_type_id,
        product_id=product_id,
        kgco2e_per_tonne=resolved.kgco2e_per_tonne,
        recycled_materials_pct=resolved.recycled_materials_pct,
        factor_level=resolved.factor_level,
        recycled_level=resolved.recycled_level,
    )


@router.post("/{factor_id:uuid}/default", response_model=PlantMixFactorResponse)
async def set_default_factor(factor_id: UUID, db: DbSession) -> PlantMixFactorResponse:
    try:
        row = await FactorService(db).set_default_factor(factor_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row)
