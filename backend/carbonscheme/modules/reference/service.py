"""Reference data lookups used by the scheme services.

Reference tables are maintained elsewhere; this module only reads them,
apart from the default-fuel flag which scheme setup depends on.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, StepTracker, ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import (
    InstallationCategory,
    InstallationSetup,
    MixType,
    Plant,
    Product,
)

logger = get_logger(__name__)


class ReferenceDataService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def list_plants(self) -> list[Plant]:
        result = await self._session.execute(select(Plant).order_by(Plant.name))
        return list(result.scalars().all())

    async def list_mix_types(self) -> list[MixType]:
        result = await self._session.execute(select(MixType).order_by(MixType.name))
        return list(result.scalars().all())

    async def list_products(self) -> list[Product]:
        result = await self._session.execute(select(Product).order_by(Product.name))
        return list(result.scalars().all())

    async def list_installation_setups(self) -> list[InstallationSetup]:
        result = await self._session.execute(
            select(InstallationSetup).order_by(
                InstallationSetup.category, InstallationSetup.plant_name
            )
        )
        return list(result.scalars().all())

    async def get_plant(self, plant_id: UUID) -> Plant | None:
        return await self._session.get(Plant, plant_id)

    async def get_setup(self, setup_id: UUID) -> InstallationSetup | None:
        return await self._session.get(InstallationSetup, setup_id)

    async def setups_by_id(self, ids: Iterable[UUID | None]) -> dict[UUID, InstallationSetup]:
        wanted = {value for value in ids if value is not None}
        if not wanted:
            return {}
        result = await self._session.execute(
            select(InstallationSetup).where(InstallationSetup.id.in_(wanted))
        )
        return {row.id: row for row in result.scalars()}

    async def mix_names(self, ids: Iterable[UUID | None]) -> dict[UUID, str]:
        wanted = {value for value in ids if value is not None}
        if not wanted:
            return {}
        result = await self._session.execute(
            select(MixType.id, MixType.name).where(MixType.id.in_(wanted))
        )
        return {row.id: row.name for row in result}

    async def product_names(self, ids: Iterable[UUID | None]) -> dict[UUID, str]:
        wanted = {value for value in ids if value is not None}
        if not wanted:
            return {}
        result = await self._session.execute(
            select(Product.id, Product.name).where(Product.id.in_(wanted))
        )
        return {row.id: row.name for row in result}

    async def default_setups(
        self, categories: Iterable[InstallationCategory]
    ) -> list[InstallationSetup]:
        """Default setups whose free-text category normalizes into ``categories``."""
        wanted = set(categories)
        result = await self._session.execute(
            select(InstallationSetup)
            .where(InstallationSetup.is_default.is_(True))
            .order_by(InstallationSetup.created_at, InstallationSetup.id)
        )
        return [
            setup
            for setup in result.scalars().all()
            if InstallationCategory.parse(setup.category) in wanted
        ]

    async def default_fuel_setup(self) -> InstallationSetup | None:
        setups = await self.default_setups([InstallationCategory.FUEL])
        return setups[0] if setups else None

    # ------------------------------------------------------------------
    # Default flags
    # ------------------------------------------------------------------

    async def set_default_fuel(self, setup_id: UUID) -> InstallationSetup:
        """Make ``setup_id`` the only default fuel (unset-then-set)."""
        setup = await self.get_setup(setup_id)
        if setup is None:
            raise NotFoundError(f"Installation setup {setup_id} not found")
        if InstallationCategory.parse(setup.category) is not InstallationCategory.FUEL:
            raise ValidationError("Only fuel setups can be the default fuel")

        current = await self.default_setups([InstallationCategory.FUEL])
        tracker = StepTracker("set_default_fuel")
        async with tracker.step("unset_fuel_defaults"):
            others = [row.id for row in current if row.id != setup_id]
            if others:
                await self._session.execute(
                    update(InstallationSetup)
                    .where(InstallationSetup.id.in_(others))
                    .values(is_default=False)
                )
        async with tracker.step("set_default"):
            await self._session.execute(
                update(InstallationSetup)
                .where(InstallationSetup.id == setup_id)
                .values(is_default=True)
            )
        await self._session.flush()
        await self._session.refresh(setup)
        logger.info("default_fuel_set", setup_id=str(setup_id))
        return setup
