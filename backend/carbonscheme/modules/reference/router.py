"""Read-only reference data endpoints plus the default-fuel switch."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from carbonscheme.core.errors import SchemeError, http_error_from
from carbonscheme.db.session import DbSession
from carbonscheme.modules.reference.schemas import (
    InstallationSetupResponse,
    NamedReferenceResponse,
    PlantResponse,
)
from carbonscheme.modules.reference.service import ReferenceDataService

router = APIRouter()


@router.get("/plants", response_model=list[PlantResponse])
async def list_plants(db: DbSession) -> list[PlantResponse]:
    rows = await ReferenceDataService(db).list_plants()
    return [PlantResponse.model_validate(row) for row in rows]


@router.get("/mix-types", response_model=list[NamedReferenceResponse])
async def list_mix_types(db: DbSession) -> list[NamedReferenceResponse]:
    rows = await ReferenceDataService(db).list_mix_types()
    return [NamedReferenceResponse.model_validate(row) for row in rows]


@router.get("/products", response_model=list[NamedReferenceResponse])
async def list_products(db: DbSession) -> list[NamedReferenceResponse]:
    rows = await ReferenceDataService(db).list_products()
    return [NamedReferenceResponse.model_validate(row) for row in rows]


@router.get("/installation-setups", response_model=list[InstallationSetupResponse])
async def list_installation_setups(db: DbSession) -> list[InstallationSetupResponse]:
    rows = await ReferenceDataService(db).list_installation_setups()
    return [InstallationSetupResponse.model_validate(row) for row in rows]


@router.post(
    "/installation-setups/{setup_id:uuid}/default-fuel",
    response_model=InstallationSetupResponse,
)
async def set_default_fuel(setup_id: UUID, db: DbSession) -> InstallationSetupResponse:
    try:
        row = await ReferenceDataService(db).set_default_fuel(setup_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return InstallationSetupResponse.model_validate(row)
