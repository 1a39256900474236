"""API router for A5 installation usage (plant fuel and transport distance)."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status

from carbonscheme.core.errors import SchemeError, http_error_from
from carbonscheme.db.session import DbSession
from carbonscheme.modules.schemes.schemas import SchemeResponse
from carbonscheme.modules.usage.calculator import ManualUsageInput
from carbonscheme.modules.usage.schemas import (
    AutoTransportRequest,
    ManualUsageCreate,
    UsageEntryResponse,
    UsageUpdate,
)
from carbonscheme.modules.usage.service import UsageService

router = APIRouter()


@router.get("/{scheme_id:uuid}/usage", response_model=list[UsageEntryResponse])
async def list_usage(scheme_id: UUID, db: DbSession) -> list[UsageEntryResponse]:
    try:
        rows = await UsageService(db).list_usage(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    return [UsageEntryResponse.model_validate(row) for row in rows]


@router.post(
    "/{scheme_id:uuid}/usage",
    response_model=list[UsageEntryResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_manual_usage(
    scheme_id: UUID,
    body: ManualUsageCreate,
    db: DbSession,
) -> list[UsageEntryResponse]:
    entries = [
        ManualUsageInput(
            scheme_installation_item_id=entry.item_id,
            litres_used=entry.litres_used,
            distance=entry.distance,
            one_way=entry.one_way,
        )
        for entry in body.entries
    ]
    try:
        rows = await UsageService(db).add_manual_usage(
            scheme_id,
            period_start=body.period_start,
            period_end=body.period_end,
            entries=entries,
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return [UsageEntryResponse.model_validate(row) for row in rows]


@router.post("/{scheme_id:uuid}/usage/auto", response_model=list[UsageEntryResponse])
async def apply_auto_usage(
    scheme_id: UUID,
    body: AutoTransportRequest,
    db: DbSession,
) -> list[UsageEntryResponse]:
    """Switch A5 fuel to auto: transport distances plus plant fuel from tonnage."""
    try:
        rows = await UsageService(db).apply_auto_transport_usage(
            scheme_id, distance=body.distance
        )
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return [UsageEntryResponse.model_validate(row) for row in rows]


@router.post("/{scheme_id:uuid}/usage/manual-mode", response_model=SchemeResponse)
async def enable_manual_usage(scheme_id: UUID, db: DbSession) -> SchemeResponse:
    try:
        row = await UsageService(db).enable_manual_usage(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return SchemeResponse.model_validate(row)


@router.patch("/{scheme_id:uuid}/usage/{usage_id:uuid}", response_model=UsageEntryResponse)
async def update_usage(
    scheme_id: UUID,
    usage_id: UUID,
    body: UsageUpdate,
    db: DbSession,
) -> UsageEntryResponse:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("one_way") is None:
        changes.pop("one_way", None)
    try:
        row = await UsageService(db).update_usage(scheme_id, usage_id, changes)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return UsageEntryResponse.model_validate(row)


@router.delete(
    "/{scheme_id:uuid}/usage/{usage_id:uuid}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_usage(scheme_id: UUID, usage_id: UUID, db: DbSession) -> None:
    try:
        await UsageService(db).delete_usage(scheme_id, usage_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
