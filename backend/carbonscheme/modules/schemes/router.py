"""API router for schemes, their material lines and installation items."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status

from carbonscheme.core.errors import SchemeError, http_error_from
from carbonscheme.db.models import CalculationMode, Scheme
from carbonscheme.db.session import DbSession
from carbonscheme.modules.schemes.schemas import (
    InstallationItemBulkCreate,
    InstallationItemCreate,
    InstallationItemResponse,
    MaterialTonnageUpdate,
    ModeUpdate,
    SchemeCreate,
    SchemeProductCreate,
    SchemeProductResponse,
    SchemeResponse,
    SchemeUpdate,
)
from carbonscheme.modules.schemes.service import InstallationItemInput, SchemeService

router = APIRouter()


def _to_response(row: Scheme) -> SchemeResponse:
    return SchemeResponse.model_validate(row)


# ---------------------------------------------------------------------------
# Schemes
# ---------------------------------------------------------------------------


@router.get("", response_model=list[SchemeResponse])
async def list_schemes(db: DbSession) -> list[SchemeResponse]:
    rows = await SchemeService(db).list_schemes()
    return [_to_response(row) for row in rows]


@router.post("", response_model=SchemeResponse, status_code=status.HTTP_201_CREATED)
async def create_scheme(body: SchemeCreate, db: DbSession) -> SchemeResponse:
    try:
        row = await SchemeService(db).create_scheme(
            name=body.name,
            area_m2=body.area_m2,
            site_postcode=body.site_postcode,
            base_postcode=body.base_postcode,
            distance_unit=body.distance_unit,
            plant_id=body.plant_id,
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row)


@router.get("/{scheme_id:uuid}", response_model=SchemeResponse)
async def get_scheme(scheme_id: UUID, db: DbSession) -> SchemeResponse:
    try:
        row = await SchemeService(db).get_scheme(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    return _to_response(row)


@router.patch("/{scheme_id:uuid}", response_model=SchemeResponse)
async def update_scheme(scheme_id: UUID, body: SchemeUpdate, db: DbSession) -> SchemeResponse:
    try:
        row = await SchemeService(db).update_scheme(
            scheme_id, body.model_dump(exclude_unset=True)
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row)


@router.delete("/{scheme_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scheme(scheme_id: UUID, db: DbSession) -> None:
    try:
        await SchemeService(db).delete_scheme(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()


@router.post("/{scheme_id:uuid}/lock", response_model=SchemeResponse)
async def lock_scheme(scheme_id: UUID, db: DbSession) -> SchemeResponse:
    try:
        row = await SchemeService(db).lock_scheme(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row)


@router.post("/{scheme_id:uuid}/recalculate", status_code=status.HTTP_204_NO_CONTENT)
async def recalculate_scheme(scheme_id: UUID, db: DbSession) -> None:
    try:
        await SchemeService(db).recalculate(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()


@router.put("/{scheme_id:uuid}/modes/installation", response_model=SchemeResponse)
async def set_installation_mode(
    scheme_id: UUID,
    body: ModeUpdate,
    db: DbSession,
) -> SchemeResponse:
    service = SchemeService(db)
    try:
        if body.mode is CalculationMode.AUTO:
            row = await service.enable_auto_installation(scheme_id)
        else:
            row = await service.enable_manual_installation(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row)


@router.put("/{scheme_id:uuid}/modes/materials", response_model=SchemeResponse)
async def set_materials_mode(
    scheme_id: UUID,
    body: ModeUpdate,
    db: DbSession,
) -> SchemeResponse:
    service = SchemeService(db)
    try:
        if body.mode is CalculationMode.AUTO:
            row = await service.enable_auto_materials(scheme_id)
        else:
            row = await service.enable_manual_materials(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row)


# ---------------------------------------------------------------------------
# Material lines
# ---------------------------------------------------------------------------


@router.get("/{scheme_id:uuid}/products", response_model=list[SchemeProductResponse])
async def list_products(scheme_id: UUID, db: DbSession) -> list[SchemeProductResponse]:
    try:
        rows = await SchemeService(db).list_products(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    return [SchemeProductResponse.model_validate(row) for row in rows]


@router.post(
    "/{scheme_id:uuid}/products",
    response_model=SchemeProductResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_product(
    scheme_id: UUID,
    body: SchemeProductCreate,
    db: DbSession,
) -> SchemeProductResponse:
    try:
        row = await SchemeService(db).add_product(
            scheme_id,
            product_id=body.product_id,
            plant_id=body.plant_id,
            mix_type_id=body.mix_type_id,
            tonnage=body.tonnage,
            delivery_type=body.delivery_type,
            distance=body.distance,
            distance_unit=body.distance_unit,
            transport_mode_id=body.transport_mode_id,
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return SchemeProductResponse.model_validate(row)


@router.delete(
    "/{scheme_id:uuid}/products/{line_id:uuid}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_product(scheme_id: UUID, line_id: UUID, db: DbSession) -> None:
    try:
        await SchemeService(db).delete_product(scheme_id, line_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()


# ---------------------------------------------------------------------------
# Installation items
# ---------------------------------------------------------------------------


@router.get(
    "/{scheme_id:uuid}/installation-items",
    response_model=list[InstallationItemResponse],
)
async def list_installation_items(
    scheme_id: UUID,
    db: DbSession,
) -> list[InstallationItemResponse]:
    try:
        rows = await SchemeService(db).list_installation_items(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    return [InstallationItemResponse.model_validate(row) for row in rows]


@router.post(
    "/{scheme_id:uuid}/installation-items",
    response_model=InstallationItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_installation_item(
    scheme_id: UUID,
    body: InstallationItemCreate,
    db: DbSession,
) -> InstallationItemResponse:
    try:
        row = await SchemeService(db).add_installation_item(
            scheme_id,
            setup_id=body.setup_id,
            quantity=body.quantity,
            fuel_setup_id=body.fuel_setup_id,
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return InstallationItemResponse.model_validate(row)


@router.post(
    "/{scheme_id:uuid}/installation-items/bulk",
    response_model=list[InstallationItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_installation_items(
    scheme_id: UUID,
    body: InstallationItemBulkCreate,
    db: DbSession,
) -> list[InstallationItemResponse]:
    entries = [InstallationItemInput(**entry.model_dump()) for entry in body.items]
    try:
        rows = await SchemeService(db).add_installation_items(scheme_id, entries)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return [InstallationItemResponse.model_validate(row) for row in rows]


@router.post(
    "/{scheme_id:uuid}/installation-items/auto-tonnage",
    response_model=list[InstallationItemResponse],
)
async def auto_generate_material_tonnage(
    scheme_id: UUID,
    db: DbSession,
) -> list[InstallationItemResponse]:
    try:
        rows = await SchemeService(db).auto_generate_material_tonnage(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return [InstallationItemResponse.model_validate(row) for row in rows]


@router.put(
    "/{scheme_id:uuid}/installation-items/{item_id:uuid}/tonnage",
    response_model=InstallationItemResponse,
)
async def set_material_tonnage(
    scheme_id: UUID,
    item_id: UUID,
    body: MaterialTonnageUpdate,
    db: DbSession,
) -> InstallationItemResponse:
    try:
        row = await SchemeService(db).set_material_tonnage_override(
            scheme_id, item_id, body.tonnage
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return InstallationItemResponse.model_validate(row)


@router.delete(
    "/{scheme_id:uuid}/installation-items/{item_id:uuid}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_installation_item(scheme_id: UUID, item_id: UUID, db: DbSession) -> None:
    try:
        await SchemeService(db).delete_installation_item(scheme_id, item_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
