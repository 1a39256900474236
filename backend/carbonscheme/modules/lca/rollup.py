"""Invocation of the external carbon roll-up procedure.

The procedure reads a scheme's editable rows and rewrites its result rows
and summary. It is opaque here: services only ask for a recalculation.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import Uuid, bindparam, delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.config import get_settings
from carbonscheme.core.errors import RollupError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import SchemeCarbonResult, SchemeCarbonSummary

logger = get_logger(__name__)


class CarbonRollup(Protocol):
    async def recalculate(self, scheme_id: UUID) -> None: ...


class StoredProcedureRollup:
    """Calls ``SELECT <function>(:scheme_id)`` in the caller's session."""

    def __init__(self, session: AsyncSession, function_name: str | None = None) -> None:
        self._session = session
        # Validated as an identifier by Settings.
        self._function_name = function_name or get_settings().carbon_rollup_function

    async def recalculate(self, scheme_id: UUID) -> None:
        stmt = text(f"SELECT {self._function_name}(:scheme_id)").bindparams(
            bindparam("scheme_id", type_=Uuid())
        )
        await self._session.flush()
        try:
            await self._session.execute(stmt, {"scheme_id": scheme_id})
        except SQLAlchemyError as exc:
            logger.error("carbon_rollup_failed", scheme_id=str(scheme_id), error=str(exc))
            raise RollupError(f"Carbon calculation failed: {exc}") from exc
        logger.info("carbon_rollup_completed", scheme_id=str(scheme_id))


async def load_results(session: AsyncSession, scheme_id: UUID) -> list[SchemeCarbonResult]:
    result = await session.execute(
        select(SchemeCarbonResult)
        .where(SchemeCarbonResult.scheme_id == scheme_id)
        .order_by(SchemeCarbonResult.lifecycle_stage, SchemeCarbonResult.created_at)
    )
    return list(result.scalars().all())


async def load_summary(session: AsyncSession, scheme_id: UUID) -> SchemeCarbonSummary | None:
    result = await session.execute(
        select(SchemeCarbonSummary).where(SchemeCarbonSummary.scheme_id == scheme_id)
    )
    return result.scalar_one_or_none()


async def clear_results(session: AsyncSession, scheme_id: UUID) -> None:
    """Drop derived rows when there is nothing left to calculate."""
    await session.execute(
        delete(SchemeCarbonResult).where(SchemeCarbonResult.scheme_id == scheme_id)
    )
    await session.execute(
        delete(SchemeCarbonSummary).where(SchemeCarbonSummary.scheme_id == scheme_id)
    )
