"""Service layer for scenario snapshots.

A scheme holds a bounded number of scenarios, at most one of them active.
Applying a scenario overwrites the live editable rows wholesale; it is a
delete-then-insert sequence and reports the failed step on error.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.config import get_settings
from carbonscheme.core.errors import (
    NotFoundError,
    ScenarioCapacityError,
    ScenarioLabelLockedError,
    StepTracker,
)
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import (
    Scheme,
    SchemeA5UsageEntry,
    SchemeInstallationItem,
    SchemeProduct,
    SchemeScenario,
    utcnow,
)
from carbonscheme.modules.lca.rollup import (
    CarbonRollup,
    StoredProcedureRollup,
    load_results,
    load_summary,
)
from carbonscheme.modules.reference.service import ReferenceDataService
from carbonscheme.modules.scenarios.snapshot import (
    ScenarioSnapshot,
    ScenarioSnapshotV1,
    build_scenario_label,
    parse_snapshot,
)
from carbonscheme.modules.schemes.access import (
    load_editable_scheme,
    load_installation_items,
    load_products,
    load_scheme,
)

logger = get_logger(__name__)


class ScenarioService:
    """Create, apply and maintain scenario snapshots.

    Usage::

        service = ScenarioService(db_session)
        scenario = await service.create_scenario(scheme_id)
        await service.apply_scenario(scheme_id, scenario.id)
    """

    def __init__(self, session: AsyncSession, *, rollup: CarbonRollup | None = None) -> None:
        self._session = session
        self._rollup = rollup or StoredProcedureRollup(session)
        self._settings = get_settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_scenarios(self, scheme_id: UUID) -> list[SchemeScenario]:
        await load_scheme(self._session, scheme_id)
        result = await self._session.execute(
            select(SchemeScenario)
            .where(SchemeScenario.scheme_id == scheme_id)
            .order_by(SchemeScenario.created_at, SchemeScenario.id)
        )
        return list(result.scalars().all())

    async def get_scenario(self, scheme_id: UUID, scenario_id: UUID) -> SchemeScenario:
        result = await self._session.execute(
            select(SchemeScenario).where(
                SchemeScenario.id == scenario_id,
                SchemeScenario.scheme_id == scheme_id,
            )
        )
        scenario = result.scalar_one_or_none()
        if scenario is None:
            raise NotFoundError(f"Scenario {scenario_id} not found")
        return scenario

    async def create_scenario(self, scheme_id: UUID) -> SchemeScenario:
        """Capture the live scheme into a new scenario and make it active."""
        scheme = await load_scheme(self._session, scheme_id)
        count = await self._count(scheme_id)
        limit = self._settings.scenario_limit
        if count >= limit:
            raise ScenarioCapacityError(f"You can only store up to {limit} scenarios.")

        snapshot = await self.capture(scheme_id)
        label = await self._auto_label(snapshot, fallback=f"Scenario {count + 1}")
        scenario = SchemeScenario(
            scheme_id=scheme_id,
            label=label,
            label_locked=False,
            revision=1,
            snapshot=snapshot.to_document(),
        )
        self._session.add(scenario)
        await self._session.flush()

        scheme.active_scenario_id = scenario.id
        await self._session.flush()
        logger.info(
            "scenario_created",
            scheme_id=str(scheme_id),
            scenario_id=str(scenario.id),
            label=label,
        )
        return scenario

    async def apply_scenario(self, scheme_id: UUID, scenario_id: UUID) -> Scheme:
        """Replace the live editable rows with the scenario's copies."""
        scheme = await load_editable_scheme(self._session, scheme_id)
        scenario = await self.get_scenario(scheme_id, scenario_id)
        snapshot = parse_snapshot(scenario.snapshot)

        tracker = StepTracker("apply_scenario")
        # Usage references items, so it goes first.
        async with tracker.step("delete_usage"):
            await self._session.execute(
                delete(SchemeA5UsageEntry).where(SchemeA5UsageEntry.scheme_id == scheme_id)
            )
        async with tracker.step("delete_installation_items"):
            await self._session.execute(
                delete(SchemeInstallationItem).where(
                    SchemeInstallationItem.scheme_id == scheme_id
                )
            )
        async with tracker.step("delete_products"):
            await self._session.execute(
                delete(SchemeProduct).where(SchemeProduct.scheme_id == scheme_id)
            )
        async with tracker.step("insert_products"):
            self._insert_products(scheme_id, snapshot)
            await self._session.flush()
        async with tracker.step("insert_installation_items"):
            item_ids = self._insert_items(scheme_id, snapshot)
            await self._session.flush()
        async with tracker.step("insert_usage"):
            self._insert_usage(scheme_id, scenario_id, snapshot, item_ids)
            await self._session.flush()
        async with tracker.step("mark_active"):
            scheme.active_scenario_id = scenario.id
            await self._session.flush()
        async with tracker.step("recalculate"):
            await self._rollup.recalculate(scheme_id)

        logger.info("scenario_applied", scheme_id=str(scheme_id), scenario_id=str(scenario_id))
        return scheme

    async def update_snapshot(self, scheme_id: UUID, scenario_id: UUID) -> SchemeScenario:
        """Re-capture the live scheme into an existing scenario; label and id stay."""
        await load_scheme(self._session, scheme_id)
        scenario = await self.get_scenario(scheme_id, scenario_id)
        snapshot = await self.capture(scheme_id)
        scenario.snapshot = snapshot.to_document()
        scenario.revision = (scenario.revision or 0) + 1
        await self._session.flush()
        logger.info(
            "scenario_snapshot_updated",
            scenario_id=str(scenario_id),
            revision=scenario.revision,
        )
        return scenario

    async def rename_label(
        self,
        scheme_id: UUID,
        scenario_id: UUID,
        label: str | None,
    ) -> SchemeScenario:
        """Set a user label once; from then on the label is fixed."""
        scenario = await self.get_scenario(scheme_id, scenario_id)
        if scenario.label_locked:
            raise ScenarioLabelLockedError("Scenario label has already been renamed.")
        clean = (label or "").strip()
        scenario.label = clean or None
        scenario.label_locked = True
        await self._session.flush()
        return scenario

    async def delete_scenario(self, scheme_id: UUID, scenario_id: UUID) -> None:
        """Delete a scenario. Live rows are left as they are."""
        scheme = await load_scheme(self._session, scheme_id)
        scenario = await self.get_scenario(scheme_id, scenario_id)
        await self._session.delete(scenario)
        if scheme.active_scenario_id == scenario_id:
            scheme.active_scenario_id = None
        await self._session.flush()
        logger.info("scenario_deleted", scheme_id=str(scheme_id), scenario_id=str(scenario_id))

    async def capture(self, scheme_id: UUID) -> ScenarioSnapshot:
        """Copy the scheme's live rows and last results into a document."""
        usage = await self._session.execute(
            select(SchemeA5UsageEntry)
            .where(SchemeA5UsageEntry.scheme_id == scheme_id)
            .order_by(SchemeA5UsageEntry.created_at, SchemeA5UsageEntry.id)
        )
        return ScenarioSnapshotV1.capture(
            products=await load_products(self._session, scheme_id),
            installation_items=await load_installation_items(self._session, scheme_id),
            usage_entries=usage.scalars().all(),
            results=await load_results(self._session, scheme_id),
            summary=await load_summary(self._session, scheme_id),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _count(self, scheme_id: UUID) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(SchemeScenario)
            .where(SchemeScenario.scheme_id == scheme_id)
        )
        return int(result.scalar_one())

    async def _auto_label(self, snapshot: ScenarioSnapshot, *, fallback: str) -> str:
        mix_ids = [line.mix_type_id for line in snapshot.scheme_products]
        names = await ReferenceDataService(self._session).mix_names(mix_ids)
        return build_scenario_label(
            (names.get(mix_id) for mix_id in mix_ids if mix_id is not None),
            fallback,
            self._settings.scenario_label_max_length,
        )

    def _insert_products(self, scheme_id: UUID, snapshot: ScenarioSnapshot) -> None:
        # Offsets keep the snapshot's row order stable in created_at order.
        base = utcnow()
        for index, line in enumerate(snapshot.scheme_products):
            self._session.add(
                SchemeProduct(
                    **line.model_dump(exclude={"id"}),
                    scheme_id=scheme_id,
                    created_at=base + timedelta(microseconds=index),
                )
            )

    def _insert_items(self, scheme_id: UUID, snapshot: ScenarioSnapshot) -> dict[UUID, UUID]:
        """Insert item copies under new ids; returns snapshot id -> new id."""
        base = utcnow()
        id_map: dict[UUID, UUID] = {}
        for index, item in enumerate(snapshot.scheme_installation_items):
            new_id = uuid4()
            if item.id is not None:
                id_map[item.id] = new_id
            self._session.add(
                SchemeInstallationItem(
                    **item.model_dump(exclude={"id"}),
                    id=new_id,
                    scheme_id=scheme_id,
                    created_at=base + timedelta(microseconds=index),
                )
            )
        return id_map

    def _insert_usage(
        self,
        scheme_id: UUID,
        scenario_id: UUID,
        snapshot: ScenarioSnapshot,
        item_ids: dict[UUID, UUID],
    ) -> None:
        base = utcnow()
        for index, entry in enumerate(snapshot.scheme_a5_usage_entries):
            item_id = item_ids.get(entry.scheme_installation_item_id)
            if item_id is None:
                logger.warning(
                    "scenario_usage_orphaned",
                    scenario_id=str(scenario_id),
                    installation_item_id=str(entry.scheme_installation_item_id),
                )
                continue
            values = entry.model_dump(exclude={"id", "scheme_installation_item_id"})
            self._session.add(
                SchemeA5UsageEntry(
                    **values,
                    scheme_id=scheme_id,
                    scheme_installation_item_id=item_id,
                    created_at=base + timedelta(microseconds=index),
                )
            )
