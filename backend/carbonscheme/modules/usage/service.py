"""Service layer for A5 installation usage entries.

Auto derivations replace existing rows by deleting them for the affected
items and inserting fresh ones. The sequence is not atomic on its own; a
failure part-way raises ``PartialFailureError`` naming the step.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, StepTracker, ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import (
    CalculationMode,
    InstallationCategory,
    Scheme,
    SchemeA5UsageEntry,
)
from carbonscheme.modules.distance import DistanceResolver
from carbonscheme.modules.lca.rollup import CarbonRollup, StoredProcedureRollup
from carbonscheme.modules.schemes.access import (
    load_editable_scheme,
    load_installation_items,
    load_products,
    load_scheme,
)
from carbonscheme.modules.units import to_km
from carbonscheme.modules.usage.calculator import (
    ManualUsageInput,
    UsageDraft,
    auto_plant_usage,
    auto_transport_usage,
    build_manual_usage,
)

logger = get_logger(__name__)

MISSING_BASE_OR_SITE = "Enter a distance or set both the base and site postcodes."


class UsageService:
    """Derive or record plant fuel and transport usage for a scheme.

    Usage::

        service = UsageService(db_session)
        await service.apply_auto_transport_usage(scheme_id, distance=12.5)
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        rollup: CarbonRollup | None = None,
        distance_resolver: DistanceResolver | None = None,
    ) -> None:
        self._session = session
        self._rollup = rollup or StoredProcedureRollup(session)
        self._distance_resolver = distance_resolver

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_usage(self, scheme_id: UUID) -> list[SchemeA5UsageEntry]:
        await load_scheme(self._session, scheme_id)
        result = await self._session.execute(
            select(SchemeA5UsageEntry)
            .where(SchemeA5UsageEntry.scheme_id == scheme_id)
            .order_by(SchemeA5UsageEntry.period_start, SchemeA5UsageEntry.created_at)
        )
        return list(result.scalars().all())

    async def apply_auto_plant_usage(
        self,
        scheme_id: UUID,
        *,
        recalculate: bool = True,
    ) -> list[SchemeA5UsageEntry]:
        """Regenerate plant fuel litres from delivered tonnage.

        Does nothing when no tonnage has been delivered or the scheme has no
        plant items.
        """
        scheme = await load_editable_scheme(self._session, scheme_id)
        products = await load_products(self._session, scheme_id)
        plant_items = await load_installation_items(
            self._session, scheme_id, InstallationCategory.PLANT
        )
        drafts = auto_plant_usage(plant_items, products, date.today())
        if not drafts:
            logger.info("auto_plant_usage_skipped", scheme_id=str(scheme_id))
            return []

        tracker = StepTracker("apply_auto_plant_usage")
        async with tracker.step("delete_usage"):
            await self._delete_usage_for_items(scheme_id, [item.id for item in plant_items])
        async with tracker.step("insert_usage"):
            rows = await self._insert_drafts(scheme_id, drafts)
        async with tracker.step("set_fuel_mode"):
            await self._set_fuel_mode(scheme, CalculationMode.AUTO)
        if recalculate:
            async with tracker.step("recalculate"):
                await self._rollup.recalculate(scheme_id)

        logger.info("auto_plant_usage_applied", scheme_id=str(scheme_id), rows=len(rows))
        return rows

    async def apply_auto_transport_usage(
        self,
        scheme_id: UUID,
        *,
        distance: float | None = None,
    ) -> list[SchemeA5UsageEntry]:
        """Apply one return-trip distance to every transport item, then plant fuel.

        ``distance`` is in the scheme's unit; without it the base and site
        postcodes are resolved.
        """
        if distance is not None and (math.isnan(distance) or distance <= 0):
            raise ValidationError("Enter a valid distance for transport items.")

        scheme = await load_editable_scheme(self._session, scheme_id)
        distance_km = await self._transport_distance_km(scheme, distance)
        transport_items = await load_installation_items(
            self._session, scheme_id, InstallationCategory.TRANSPORT
        )
        drafts = auto_transport_usage(transport_items, distance_km, date.today())

        tracker = StepTracker("apply_auto_transport_usage")
        rows: list[SchemeA5UsageEntry] = []
        if drafts:
            async with tracker.step("delete_usage"):
                await self._delete_usage_for_items(
                    scheme_id, [item.id for item in transport_items]
                )
            async with tracker.step("insert_usage"):
                rows = await self._insert_drafts(scheme_id, drafts)
        async with tracker.step("set_fuel_mode"):
            await self._set_fuel_mode(scheme, CalculationMode.AUTO)
        async with tracker.step("apply_auto_plant_usage"):
            rows.extend(await self.apply_auto_plant_usage(scheme_id, recalculate=False))
        async with tracker.step("recalculate"):
            await self._rollup.recalculate(scheme_id)

        logger.info(
            "auto_transport_usage_applied",
            scheme_id=str(scheme_id),
            distance_km=round(distance_km, 3),
            transport_items=len(drafts),
        )
        return rows

    async def enable_manual_usage(self, scheme_id: UUID) -> Scheme:
        """Switch to manual entry, dropping only auto-generated plant rows."""
        scheme = await load_editable_scheme(self._session, scheme_id)
        plant_items = await load_installation_items(
            self._session, scheme_id, InstallationCategory.PLANT
        )
        tracker = StepTracker("enable_manual_usage")
        async with tracker.step("delete_auto_usage"):
            if plant_items:
                await self._session.execute(
                    delete(SchemeA5UsageEntry).where(
                        SchemeA5UsageEntry.scheme_id == scheme_id,
                        SchemeA5UsageEntry.auto_generated.is_(True),
                        SchemeA5UsageEntry.scheme_installation_item_id.in_(
                            [item.id for item in plant_items]
                        ),
                    )
                )
        async with tracker.step("set_fuel_mode"):
            await self._set_fuel_mode(scheme, CalculationMode.MANUAL)
        async with tracker.step("recalculate"):
            await self._rollup.recalculate(scheme_id)
        return scheme

    async def add_manual_usage(
        self,
        scheme_id: UUID,
        *,
        period_start: date | None,
        period_end: date | None = None,
        entries: Sequence[ManualUsageInput],
    ) -> list[SchemeA5UsageEntry]:
        scheme = await load_editable_scheme(self._session, scheme_id)
        items = await load_installation_items(self._session, scheme_id)
        drafts = build_manual_usage(
            {item.id: item for item in items},
            entries,
            period_start=period_start,
            period_end=period_end,
            distance_unit=scheme.distance_unit,
            fuel_mode=scheme.a5_fuel_mode,
        )
        rows = await self._insert_drafts(scheme_id, drafts)
        await self._rollup.recalculate(scheme_id)
        logger.info("manual_usage_added", scheme_id=str(scheme_id), rows=len(rows))
        return rows

    async def update_usage(
        self,
        scheme_id: UUID,
        usage_id: UUID,
        changes: Mapping[str, Any],
    ) -> SchemeA5UsageEntry:
        """Partially update a usage row.

        ``changes`` may hold ``period_start``, ``period_end``, ``litres_used``,
        ``distance`` (scheme unit) and ``one_way``.
        """
        scheme = await load_editable_scheme(self._session, scheme_id)
        row = await self._get_usage(scheme_id, usage_id)

        litres = changes.get("litres_used")
        distance = changes.get("distance")
        if litres is None and distance is None and "one_way" not in changes:
            raise ValidationError("Enter litres or distance")
        if litres is not None and (math.isnan(litres) or litres <= 0):
            raise ValidationError("Litres used must be greater than 0")
        if distance is not None and (math.isnan(distance) or distance <= 0):
            raise ValidationError("Distance must be greater than 0")

        if litres is not None:
            row.litres_used = litres
        if distance is not None:
            row.distance_km_each_way = to_km(distance, scheme.distance_unit)
        if "one_way" in changes:
            row.one_way = bool(changes["one_way"])
        if changes.get("period_start") is not None:
            row.period_start = changes["period_start"]
        if "period_end" in changes:
            row.period_end = changes["period_end"]

        await self._session.flush()
        await self._rollup.recalculate(scheme_id)
        return row

    async def delete_usage(self, scheme_id: UUID, usage_id: UUID) -> None:
        await load_editable_scheme(self._session, scheme_id)
        row = await self._get_usage(scheme_id, usage_id)
        await self._session.delete(row)
        await self._session.flush()
        await self._rollup.recalculate(scheme_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get_usage(self, scheme_id: UUID, usage_id: UUID) -> SchemeA5UsageEntry:
        result = await self._session.execute(
            select(SchemeA5UsageEntry).where(
                SchemeA5UsageEntry.id == usage_id,
                SchemeA5UsageEntry.scheme_id == scheme_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Usage entry {usage_id} not found")
        return row

    async def _transport_distance_km(self, scheme: Scheme, distance: float | None) -> float:
        if distance is not None:
            return to_km(distance, scheme.distance_unit)
        if self._distance_resolver is not None:
            return await self._distance_resolver.resolve(
                scheme.base_postcode,
                scheme.site_postcode,
                missing_message=MISSING_BASE_OR_SITE,
            )
        async with DistanceResolver.from_settings() as resolver:
            return await resolver.resolve(
                scheme.base_postcode,
                scheme.site_postcode,
                missing_message=MISSING_BASE_OR_SITE,
            )

    async def _delete_usage_for_items(self, scheme_id: UUID, item_ids: Iterable[UUID]) -> None:
        ids = list(item_ids)
        if not ids:
            return
        await self._session.execute(
            delete(SchemeA5UsageEntry).where(
                SchemeA5UsageEntry.scheme_id == scheme_id,
                SchemeA5UsageEntry.scheme_installation_item_id.in_(ids),
            )
        )

    async def _insert_drafts(
        self,
        scheme_id: UUID,
        drafts: Iterable[UsageDraft],
    ) -> list[SchemeA5UsageEntry]:
        rows = [SchemeA5UsageEntry(scheme_id=scheme_id, **asdict(draft)) for draft in drafts]
        self._session.add_all(rows)
        await self._session.flush()
        return rows

    async def _set_fuel_mode(self, scheme: Scheme, mode: CalculationMode) -> None:
        scheme.a5_fuel_mode = mode
        await self._session.flush()
