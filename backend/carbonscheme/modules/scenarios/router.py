"""API router for scenario snapshots of a scheme."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status

from carbonscheme.core.errors import SchemeError, http_error_from
from carbonscheme.db.models import SchemeScenario
from carbonscheme.db.session import DbSession
from carbonscheme.modules.scenarios.schemas import (
    ScenarioDetailResponse,
    ScenarioLabelUpdate,
    ScenarioResponse,
)
from carbonscheme.modules.scenarios.service import ScenarioService
from carbonscheme.modules.schemes.access import load_scheme
from carbonscheme.modules.schemes.schemas import SchemeResponse

router = APIRouter()


def _to_response(row: SchemeScenario, active_id: UUID | None) -> ScenarioResponse:
    return ScenarioResponse(
        id=row.id,
        scheme_id=row.scheme_id,
        label=row.label,
        label_locked=row.label_locked,
        revision=row.revision,
        is_active=row.id == active_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _active_id(db: DbSession, scheme_id: UUID) -> UUID | None:
    scheme = await load_scheme(db, scheme_id)
    return scheme.active_scenario_id


@router.get("/{scheme_id:uuid}/scenarios", response_model=list[ScenarioResponse])
async def list_scenarios(scheme_id: UUID, db: DbSession) -> list[ScenarioResponse]:
    try:
        rows = await ScenarioService(db).list_scenarios(scheme_id)
        active_id = await _active_id(db, scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    return [_to_response(row, active_id) for row in rows]


@router.post(
    "/{scheme_id:uuid}/scenarios",
    response_model=ScenarioResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_scenario(scheme_id: UUID, db: DbSession) -> ScenarioResponse:
    try:
        row = await ScenarioService(db).create_scenario(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row, row.id)


@router.get(
    "/{scheme_id:uuid}/scenarios/{scenario_id:uuid}",
    response_model=ScenarioDetailResponse,
)
async def get_scenario(
    scheme_id: UUID,
    scenario_id: UUID,
    db: DbSession,
) -> ScenarioDetailResponse:
    try:
        row = await ScenarioService(db).get_scenario(scheme_id, scenario_id)
        active_id = await _active_id(db, scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    summary = _to_response(row, active_id)
    return ScenarioDetailResponse(**summary.model_dump(), snapshot=row.snapshot)


@router.post(
    "/{scheme_id:uuid}/scenarios/{scenario_id:uuid}/apply",
    response_model=SchemeResponse,
)
async def apply_scenario(scheme_id: UUID, scenario_id: UUID, db: DbSession) -> SchemeResponse:
    """Overwrite the live scheme with the scenario and recalculate."""
    try:
        scheme = await ScenarioService(db).apply_scenario(scheme_id, scenario_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return SchemeResponse.model_validate(scheme)


@router.put(
    "/{scheme_id:uuid}/scenarios/{scenario_id:uuid}/snapshot",
    response_model=ScenarioResponse,
)
async def update_snapshot(scheme_id: UUID, scenario_id: UUID, db: DbSession) -> ScenarioResponse:
    """Re-capture the live scheme into this scenario."""
    try:
        row = await ScenarioService(db).update_snapshot(scheme_id, scenario_id)
        active_id = await _active_id(db, scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row, active_id)


@router.patch(
    "/{scheme_id:uuid}/scenarios/{scenario_id:uuid}/label",
    response_model=ScenarioResponse,
)
async def rename_scenario(
    scheme_id: UUID,
    scenario_id: UUID,
    body: ScenarioLabelUpdate,
    db: DbSession,
) -> ScenarioResponse:
    try:
        row = await ScenarioService(db).rename_label(scheme_id, scenario_id, body.label)
        active_id = await _active_id(db, scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _to_response(row, active_id)


@router.delete(
    "/{scheme_id:uuid}/scenarios/{scenario_id:uuid}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_scenario(scheme_id: UUID, scenario_id: UUID, db: DbSession) -> None:
    try:
        await ScenarioService(db).delete_scenario(scheme_id, scenario_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
