"""API router for lifecycle reports and scenario comparison.

Mounted under the schemes prefix; both endpoints are read-only.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from carbonscheme.core.errors import SchemeError, http_error_from
from carbonscheme.db.session import DbSession
from carbonscheme.modules.lca.schemas import ComparisonReport, LifecycleReport
from carbonscheme.modules.lca.service import LCAService

router = APIRouter()


def _split_items(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


@router.get("/{scheme_id:uuid}/lifecycle", response_model=LifecycleReport)
async def get_lifecycle(scheme_id: UUID, db: DbSession) -> LifecycleReport:
    """Lifecycle stages and cumulative bands for the scheme's last calculation."""
    try:
        return await LCAService(db).lifecycle(scheme_id)
    except SchemeError as exc:
        raise http_error_from(exc) from exc


@router.get("/{scheme_id:uuid}/compare", response_model=ComparisonReport)
async def compare_scheme(
    scheme_id: UUID,
    db: DbSession,
    items: str | None = Query(
        default=None,
        description="Comma-separated 'live' and scenario ids. Defaults to all.",
    ),
) -> ComparisonReport:
    """Compare the live scheme against stored scenarios."""
    try:
        return await LCAService(db).compare(scheme_id, _split_items(items))
    except SchemeError as exc:
        raise http_error_from(exc) from exc
