"""Service layer for plant/mix emission factors."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, StepTracker
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import PlantMixFactor
from carbonscheme.modules.factors.resolver import FactorResolver, ResolvedFactor

logger = get_logger(__name__)


class FactorService:
    """Loads factor rows and maintains the per-plant default flag."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_factors(self, plant_id: UUID | None = None) -> list[PlantMixFactor]:
        stmt = select(PlantMixFactor).order_by(PlantMixFactor.created_at, PlantMixFactor.id)
        if plant_id is not None:
            stmt = stmt.where(PlantMixFactor.plant_id == plant_id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def load_resolver(
        self,
        plant_ids: Iterable[UUID | None] | None = None,
        as_of: date | None = None,
    ) -> FactorResolver:
        """Build a resolver over the factor rows for ``plant_ids`` (all plants if ``None``)."""
        stmt = select(PlantMixFactor).order_by(PlantMixFactor.created_at, PlantMixFactor.id)
        if plant_ids is not None:
            wanted = {plant_id for plant_id in plant_ids if plant_id is not None}
            if not wanted:
                return FactorResolver([], as_of=as_of)
            stmt = stmt.where(PlantMixFactor.plant_id.in_(wanted))
        result = await self._session.execute(stmt)
        return FactorResolver(result.scalars().all(), as_of=as_of)

    async def resolve(
        self,
        plant_id: UUID,
        mix_type_id: UUID | None,
        product_id: UUID | None = None,
    ) -> ResolvedFactor:
        resolver = await self.load_resolver([plant_id])
        return resolver.resolve(plant_id, mix_type_id, product_id)

    async def set_default_factor(self, factor_id: UUID) -> PlantMixFactor:
        """Make ``factor_id`` the only default row for its plant.

        Two statements, unset-all then set-one. A failure in the second
        leaves the plant without a default and raises ``PartialFailureError``.
        """
        row = await self._session.get(PlantMixFactor, factor_id)
        if row is None:
            raise NotFoundError(f"Factor {factor_id} not found")

        tracker = StepTracker("set_default_factor")
        async with tracker.step("unset_plant_defaults"):
            await self._session.execute(
                update(PlantMixFactor)
                .where(PlantMixFactor.plant_id == row.plant_id)
                .values(is_default=False)
            )
        async with tracker.step("set_default"):
            await self._session.execute(
                update(PlantMixFactor)
                .where(PlantMixFactor.id == factor_id)
                .values(is_default=True)
            )
        await self._session.flush()
        await self._session.refresh(row)
        logger.info("default_factor_set", plant_id=str(row.plant_id), factor_id=str(factor_id))
        return row
