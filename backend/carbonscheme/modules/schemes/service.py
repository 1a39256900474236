"""Service layer for scheme editing.

Every mutation of a scheme's editable state finishes by asking the carbon
roll-up to recalculate, so result rows always reflect the live rows.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, StepTracker, ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import (
    CalculationMode,
    DeliveryType,
    DistanceUnit,
    InstallationCategory,
    InstallationSetup,
    Scheme,
    SchemeA5UsageEntry,
    SchemeCarbonResult,
    SchemeCarbonSummary,
    SchemeInstallationItem,
    SchemeProduct,
    SchemeScenario,
)
from carbonscheme.modules.distance import DistanceResolver
from carbonscheme.modules.lca.rollup import CarbonRollup, StoredProcedureRollup, clear_results
from carbonscheme.modules.reference.service import ReferenceDataService
from carbonscheme.modules.schemes.access import (
    load_editable_scheme,
    load_installation_items,
    load_products,
    load_scheme,
)
from carbonscheme.modules.units import normalize_distance_unit, normalize_postcode
from carbonscheme.modules.usage.service import UsageService

logger = get_logger(__name__)

MISSING_SITE_OR_PLANT = (
    "Enter a distance or set both the scheme site postcode and plant postcode."
)
_FUELLED_CATEGORIES = (InstallationCategory.PLANT, InstallationCategory.TRANSPORT)
_UPDATABLE_FIELDS = frozenset(
    {"name", "area_m2", "site_postcode", "base_postcode", "distance_unit", "plant_id"}
)


def _validate_area(area_m2: float | None) -> float | None:
    if area_m2 is not None and (math.isnan(area_m2) or area_m2 < 0):
        raise ValidationError("Please enter a valid area in m2.")
    return area_m2


def _parse_delivery_type(value: DeliveryType | str | None) -> DeliveryType:
    if isinstance(value, DeliveryType):
        return value
    try:
        return DeliveryType((value or DeliveryType.DELIVERY.value).strip().lower())
    except ValueError as exc:
        raise ValidationError("Invalid delivery type") from exc


@dataclass(frozen=True)
class InstallationItemInput:
    """One row of a multi-item add; a blank quantity is ``None``."""

    setup_id: UUID
    quantity: float | None = None
    fuel_setup_id: UUID | None = None


def item_from_setup(
    scheme_id: UUID,
    setup: InstallationSetup,
    *,
    quantity: float = 1,
    fuel: InstallationSetup | None = None,
) -> SchemeInstallationItem:
    """Copy a setup's rates onto a new scheme item."""
    category = InstallationCategory.parse(setup.category)
    if category is None:
        raise ValidationError(f"Unrecognised installation category: {setup.category}")
    return SchemeInstallationItem(
        scheme_id=scheme_id,
        installation_setup_id=setup.id,
        plant_name=setup.plant_name,
        category=category,
        spread_rate_t_per_m2=setup.spread_rate_t_per_m2,
        kgco2_per_t=setup.kgco2_per_t,
        kgco2_per_ltr=setup.kgco2_per_ltr,
        kgco2e_per_km=setup.kgco2e_per_km,
        litres_per_t=setup.litres_per_t,
        litres_na=bool(setup.litres_na),
        kgco2e=setup.kgco2e,
        kgco2e_na=bool(setup.kgco2e_na),
        one_way=bool(setup.one_way),
        fuel_type_id=fuel.id if fuel is not None else None,
        fuel_kgco2_per_ltr=fuel.kgco2_per_ltr if fuel is not None else None,
        quantity=quantity,
    )


class SchemeService:
    """Create and edit schemes.

    Usage::

        service = SchemeService(db_session)
        scheme = await service.create_scheme(name="Ring road resurfacing", area_m2=1200)
        await service.add_product(scheme.id, product_id=..., plant_id=..., ...)
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
        self._reference = ReferenceDataService(session)
        self._usage = UsageService(
            session, rollup=self._rollup, distance_resolver=distance_resolver
        )

    # ------------------------------------------------------------------
    # Schemes
    # ------------------------------------------------------------------

    async def list_schemes(self) -> list[Scheme]:
        result = await self._session.execute(select(Scheme).order_by(Scheme.created_at.desc()))
        return list(result.scalars().all())

    async def get_scheme(self, scheme_id: UUID) -> Scheme:
        return await load_scheme(self._session, scheme_id)

    async def create_scheme(
        self,
        *,
        name: str,
        area_m2: float | None = None,
        site_postcode: str | None = None,
        base_postcode: str | None = None,
        distance_unit: DistanceUnit | str | None = None,
        plant_id: UUID | None = None,
    ) -> Scheme:
        """Create a scheme seeded with the default installation and material items."""
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Please enter a scheme name.")

        scheme = Scheme(
            name=clean_name,
            area_m2=_validate_area(area_m2),
            site_postcode=normalize_postcode(site_postcode),
            base_postcode=normalize_postcode(base_postcode),
            distance_unit=normalize_distance_unit(distance_unit),
            plant_id=plant_id,
            installation_mode=CalculationMode.AUTO,
            materials_mode=CalculationMode.AUTO,
            a5_fuel_mode=CalculationMode.AUTO,
        )
        self._session.add(scheme)
        await self._session.flush()

        fuel = await self._reference.default_fuel_setup()
        fuelled = await self._reference.default_setups(_FUELLED_CATEGORIES)
        if fuel is not None and fuelled:
            self._session.add_all(
                item_from_setup(scheme.id, setup, fuel=fuel) for setup in fuelled
            )
        materials = await self._reference.default_setups([InstallationCategory.MATERIAL])
        self._session.add_all(item_from_setup(scheme.id, setup) for setup in materials)
        await self._session.flush()

        logger.info("scheme_created", scheme_id=str(scheme.id), name=clean_name)
        return scheme

    async def update_scheme(self, scheme_id: UUID, changes: Mapping[str, Any]) -> Scheme:
        """Apply a partial update. Keys outside the editable set are rejected."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        scheme = await load_editable_scheme(self._session, scheme_id)
        if "name" in changes:
            clean_name = (changes["name"] or "").strip()
            if not clean_name:
                raise ValidationError("Please enter a scheme name.")
            scheme.name = clean_name
        if "area_m2" in changes:
            scheme.area_m2 = _validate_area(changes["area_m2"])
        if "site_postcode" in changes:
            scheme.site_postcode = normalize_postcode(changes["site_postcode"])
        if "base_postcode" in changes:
            scheme.base_postcode = normalize_postcode(changes["base_postcode"])
        if "distance_unit" in changes:
            scheme.distance_unit = normalize_distance_unit(changes["distance_unit"])
        if "plant_id" in changes:
            scheme.plant_id = changes["plant_id"]
        await self._session.flush()
        return scheme

    async def lock_scheme(self, scheme_id: UUID) -> Scheme:
        """Lock the scheme. Locking an already locked scheme changes nothing."""
        scheme = await load_scheme(self._session, scheme_id)
        if scheme.is_locked:
            return scheme
        scheme.is_locked = True
        scheme.locked_at = datetime.now(UTC)
        await self._session.flush()
        logger.info("scheme_locked", scheme_id=str(scheme_id))
        return scheme

    async def delete_scheme(self, scheme_id: UUID) -> None:
        scheme = await load_scheme(self._session, scheme_id)
        # Children first, usage before the items it references.
        for model in (
            SchemeA5UsageEntry,
            SchemeInstallationItem,
            SchemeProduct,
            SchemeCarbonResult,
            SchemeCarbonSummary,
            SchemeScenario,
        ):
            await self._session.execute(delete(model).where(model.scheme_id == scheme_id))
        await self._session.delete(scheme)
        await self._session.flush()
        logger.info("scheme_deleted", scheme_id=str(scheme_id))

    async def recalculate(self, scheme_id: UUID) -> None:
        await load_scheme(self._session, scheme_id)
        await self._rollup.recalculate(scheme_id)

    # ------------------------------------------------------------------
    # Material lines
    # ------------------------------------------------------------------

    async def list_products(self, scheme_id: UUID) -> list[SchemeProduct]:
        await load_scheme(self._session, scheme_id)
        return await load_products(self._session, scheme_id)

    async def add_product(
        self,
        scheme_id: UUID,
        *,
        product_id: UUID | None,
        plant_id: UUID | None,
        mix_type_id: UUID | None,
        tonnage: float | None,
        delivery_type: DeliveryType | str | None = DeliveryType.DELIVERY,
        distance: float | None = None,
        distance_unit: DistanceUnit | str | None = None,
        transport_mode_id: UUID | None = None,
    ) -> SchemeProduct:
        """Add a material line, resolving its haulage distance.

        A typed ``distance`` is read in ``distance_unit`` (or the scheme's
        unit). Otherwise the distance between the scheme site and the plant
        is looked up.
        """
        if product_id is None or plant_id is None or mix_type_id is None or tonnage is None:
            raise ValidationError("Missing required fields")
        if math.isnan(tonnage) or tonnage <= 0:
            raise ValidationError("Tonnage must be greater than 0")
        if distance is not None and math.isnan(distance):
            raise ValidationError("Invalid distance")
        kind = _parse_delivery_type(delivery_type)

        scheme = await load_editable_scheme(self._session, scheme_id)
        plant = await self._reference.get_plant(plant_id)
        if plant is None:
            raise NotFoundError(f"Plant {plant_id} not found")

        unit = (
            normalize_distance_unit(distance_unit)
            if distance_unit
            else scheme.distance_unit
        )
        distance_km = await self._resolve_distance(
            scheme.site_postcode, plant.location, unit, distance
        )

        line = SchemeProduct(
            scheme_id=scheme_id,
            product_id=product_id,
            plant_id=plant_id,
            plant_postcode=plant.location,
            mix_type_id=mix_type_id,
            transport_mode_id=transport_mode_id,
            delivery_type=kind,
            tonnage=tonnage,
            distance_km=distance_km,
            distance_unit=unit,
        )
        self._session.add(line)
        await self._session.flush()

        if scheme.a5_fuel_mode is CalculationMode.AUTO:
            await self._usage.apply_auto_plant_usage(scheme_id, recalculate=False)
        await self._rollup.recalculate(scheme_id)
        logger.info(
            "scheme_product_added",
            scheme_id=str(scheme_id),
            line_id=str(line.id),
            delivery_type=kind.value,
            distance_km=round(distance_km, 3),
        )
        return line

    async def delete_product(self, scheme_id: UUID, line_id: UUID) -> None:
        """Remove a material line; removing the last one clears the results."""
        await load_editable_scheme(self._session, scheme_id)
        line = await self._get_owned(SchemeProduct, scheme_id, line_id, "Scheme product")
        await self._session.delete(line)
        await self._session.flush()

        if not await load_products(self._session, scheme_id):
            await clear_results(self._session, scheme_id)
            logger.info("scheme_results_cleared", scheme_id=str(scheme_id))
            return
        await self._rollup.recalculate(scheme_id)

    # ------------------------------------------------------------------
    # Installation items
    # ------------------------------------------------------------------

    async def list_installation_items(self, scheme_id: UUID) -> list[SchemeInstallationItem]:
        await load_scheme(self._session, scheme_id)
        return await load_installation_items(self._session, scheme_id)

    async def add_installation_item(
        self,
        scheme_id: UUID,
        *,
        setup_id: UUID,
        quantity: float = 1,
        fuel_setup_id: UUID | None = None,
    ) -> SchemeInstallationItem:
        if quantity is None or math.isnan(quantity) or quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        await load_editable_scheme(self._session, scheme_id)

        setup = await self._reference.get_setup(setup_id)
        if setup is None:
            raise NotFoundError(f"Installation setup {setup_id} not found")
        category = InstallationCategory.parse(setup.category)

        fuel = None
        if category in _FUELLED_CATEGORIES:
            if fuel_setup_id is None:
                raise ValidationError("Select a fuel type for plant and transport items")
            fuel = await self._reference.get_setup(fuel_setup_id)
            if fuel is None:
                raise NotFoundError(f"Fuel setup {fuel_setup_id} not found")

        item = item_from_setup(scheme_id, setup, quantity=quantity, fuel=fuel)
        self._session.add(item)
        await self._session.flush()
        await self._rollup.recalculate(scheme_id)
        return item

    async def add_installation_items(
        self,
        scheme_id: UUID,
        entries: Sequence[InstallationItemInput],
    ) -> list[SchemeInstallationItem]:
        """
        Add several installation items in one go.

        Rows naming an unknown setup or an unusable quantity are skipped. A
        blank quantity means 1 for material items and skips anything else.
        A plant or transport row without a fuel fails the whole request, as
        does a fuel id that does not exist. One recalculation at the end.
        """
        if not entries:
            raise ValidationError("No installation items available")
        await load_editable_scheme(self._session, scheme_id)

        setups = await self._reference.setups_by_id(entry.setup_id for entry in entries)
        fuels = await self._reference.setups_by_id(entry.fuel_setup_id for entry in entries)

        items: list[SchemeInstallationItem] = []
        for entry in entries:
            setup = setups.get(entry.setup_id)
            if setup is None:
                continue
            category = InstallationCategory.parse(setup.category)
            if category is None:
                continue
            quantity = entry.quantity
            if quantity is None:
                quantity = 1 if category is InstallationCategory.MATERIAL else 0
            if math.isnan(quantity) or quantity <= 0:
                continue

            if category in _FUELLED_CATEGORIES and entry.fuel_setup_id is None:
                raise ValidationError(f"Fuel type is required for {setup.plant_name}")
            fuel = None
            if entry.fuel_setup_id is not None:
                fuel = fuels.get(entry.fuel_setup_id)
                if fuel is None:
                    raise NotFoundError(f"Fuel setup {entry.fuel_setup_id} not found")

            items.append(item_from_setup(scheme_id, setup, quantity=quantity, fuel=fuel))

        if not items:
            raise ValidationError("No valid items selected")

        self._session.add_all(items)
        await self._session.flush()
        logger.info(
            "installation_items_added",
            scheme_id=scheme_id,
            requested=len(entries),
            added=len(items),
        )
        await self._rollup.recalculate(scheme_id)
        return items

    async def delete_installation_item(self, scheme_id: UUID, item_id: UUID) -> None:
        await load_editable_scheme(self._session, scheme_id)
        item = await self._get_owned(
            SchemeInstallationItem, scheme_id, item_id, "Installation item"
        )
        await self._session.execute(
            delete(SchemeA5UsageEntry).where(
                SchemeA5UsageEntry.scheme_installation_item_id == item_id
            )
        )
        await self._session.delete(item)
        await self._session.flush()
        await self._rollup.recalculate(scheme_id)

    async def set_material_tonnage_override(
        self,
        scheme_id: UUID,
        item_id: UUID,
        tonnage: float | None,
    ) -> SchemeInstallationItem:
        """Set or clear the manual tonnage of a material item."""
        if tonnage is not None and (math.isnan(tonnage) or tonnage < 0):
            raise ValidationError("Tonnage must be zero or greater")
        await load_editable_scheme(self._session, scheme_id)
        item = await self._get_owned(
            SchemeInstallationItem, scheme_id, item_id, "Installation item"
        )
        if item.category is not InstallationCategory.MATERIAL:
            raise ValidationError("Only material items take a tonnage override")
        item.material_tonnage_override = tonnage
        await self._session.flush()
        await self._rollup.recalculate(scheme_id)
        return item

    async def auto_generate_material_tonnage(self, scheme_id: UUID) -> list[SchemeInstallationItem]:
        """Fill each material item's tonnage from area x spread rate x quantity."""
        scheme = await load_editable_scheme(self._session, scheme_id)
        if not scheme.area_m2 or scheme.area_m2 <= 0:
            raise ValidationError("Set the scheme area before generating material tonnage.")

        items = await load_installation_items(
            self._session, scheme_id, InstallationCategory.MATERIAL
        )
        for item in items:
            spread = item.spread_rate_t_per_m2 or 0.0
            quantity = item.quantity if item.quantity is not None else 1
            item.material_tonnage_override = scheme.area_m2 * spread * quantity / 1000
        await self._session.flush()
        await self._rollup.recalculate(scheme_id)
        return items

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def enable_auto_installation(self, scheme_id: UUID) -> Scheme:
        """Replace plant and transport items with the defaults at quantity 1."""
        scheme = await load_editable_scheme(self._session, scheme_id)
        fuel = await self._reference.default_fuel_setup()
        if fuel is None:
            raise ValidationError("Set a default fuel in Installation Setup.")
        defaults = await self._reference.default_setups(_FUELLED_CATEGORIES)
        if not defaults:
            raise ValidationError("No default plant or transport items found.")

        tracker = StepTracker("enable_auto_installation")
        async with tracker.step("delete_items"):
            await self._delete_items(scheme_id, _FUELLED_CATEGORIES)
        async with tracker.step("insert_defaults"):
            self._session.add_all(
                item_from_setup(scheme_id, setup, fuel=fuel) for setup in defaults
            )
            await self._session.flush()
        async with tracker.step("set_mode"):
            scheme.installation_mode = CalculationMode.AUTO
            await self._session.flush()
        async with tracker.step("recalculate"):
            await self._rollup.recalculate(scheme_id)
        return scheme

    async def enable_manual_installation(self, scheme_id: UUID) -> Scheme:
        scheme = await load_editable_scheme(self._session, scheme_id)
        scheme.installation_mode = CalculationMode.MANUAL
        await self._session.flush()
        return scheme

    async def enable_auto_materials(self, scheme_id: UUID) -> Scheme:
        """Replace material items with the default material setups."""
        scheme = await load_editable_scheme(self._session, scheme_id)
        defaults = await self._reference.default_setups([InstallationCategory.MATERIAL])

        tracker = StepTracker("enable_auto_materials")
        async with tracker.step("delete_items"):
            await self._delete_items(scheme_id, [InstallationCategory.MATERIAL])
        async with tracker.step("insert_defaults"):
            self._session.add_all(item_from_setup(scheme_id, setup) for setup in defaults)
            await self._session.flush()
        async with tracker.step("set_mode"):
            scheme.materials_mode = CalculationMode.AUTO
            await self._session.flush()
        async with tracker.step("recalculate"):
            await self._rollup.recalculate(scheme_id)
        return scheme

    async def enable_manual_materials(self, scheme_id: UUID) -> Scheme:
        scheme = await load_editable_scheme(self._session, scheme_id)
        scheme.materials_mode = CalculationMode.MANUAL
        await self._session.flush()
        return scheme

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get_owned(self, model: Any, scheme_id: UUID, row_id: UUID, noun: str) -> Any:
        result = await self._session.execute(
            select(model).where(model.id == row_id, model.scheme_id == scheme_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"{noun} {row_id} not found")
        return row

    async def _delete_items(
        self,
        scheme_id: UUID,
        categories: Iterable[InstallationCategory],
    ) -> None:
        result = await self._session.execute(
            select(SchemeInstallationItem.id).where(
                SchemeInstallationItem.scheme_id == scheme_id,
                SchemeInstallationItem.category.in_(list(categories)),
            )
        )
        item_ids = list(result.scalars().all())
        if not item_ids:
            return
        await self._session.execute(
            delete(SchemeA5UsageEntry).where(
                SchemeA5UsageEntry.scheme_installation_item_id.in_(item_ids)
            )
        )
        await self._session.execute(
            delete(SchemeInstallationItem).where(SchemeInstallationItem.id.in_(item_ids))
        )

    async def _resolve_distance(
        self,
        site_postcode: str | None,
        plant_postcode: str | None,
        unit: DistanceUnit,
        distance: float | None,
    ) -> float:
        if self._distance_resolver is not None:
            return await self._distance_resolver.resolve(
                site_postcode,
                plant_postcode,
                unit,
                literal_distance=distance,
                missing_message=MISSING_SITE_OR_PLANT,
            )
        async with DistanceResolver.from_settings() as resolver:
            return await resolver.resolve(
                site_postcode,
                plant_postcode,
                unit,
                literal_distance=distance,
                missing_message=MISSING_SITE_OR_PLANT,
            )
