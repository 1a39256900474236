"""Tests for UsageService against an in-memory database."""

from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, ValidationError
from carbonscheme.db.models import CalculationMode, InstallationCategory
from carbonscheme.modules.schemes.service import SchemeService
from carbonscheme.modules.units import MILES_TO_KM
from carbonscheme.modules.usage.calculator import AUTO_MODE_NO_RECORDS, ManualUsageInput
from carbonscheme.modules.usage.service import MISSING_BASE_OR_SITE, UsageService


@pytest.fixture
def schemes(db_session: AsyncSession, rollup, distance_resolver) -> SchemeService:
    return SchemeService(db_session, rollup=rollup, distance_resolver=distance_resolver)


@pytest.fixture
def usage(db_session: AsyncSession, rollup, distance_resolver) -> UsageService:
    return UsageService(db_session, rollup=rollup, distance_resolver=distance_resolver)


async def _items(schemes: SchemeService, scheme_id):
    return {
        item.category: item for item in await schemes.list_installation_items(scheme_id)
    }


async def _scheme(schemes: SchemeService, reference_data, *, with_product: bool = True):
    scheme = await schemes.create_scheme(
        name="Ring road",
        site_postcode="SW1A 1AA",
        base_postcode="LS1 1UR",
        plant_id=reference_data.plant.id,
    )
    if with_product:
        await schemes.add_product(
            scheme.id,
            product_id=reference_data.products["surface"].id,
            plant_id=reference_data.plant.id,
            mix_type_id=reference_data.mixes["AC10"].id,
            tonnage=40.0,
            distance=25.0,
        )
    return scheme


class TestAutoUsage:
    @pytest.mark.asyncio
    async def test_transport_distance_applies_to_every_transport_item(
        self, schemes: SchemeService, usage: UsageService, reference_data, rollup
    ) -> None:
        scheme = await _scheme(schemes, reference_data)
        rollup.calls.clear()

        rows = await usage.apply_auto_transport_usage(scheme.id, distance=12.0)

        items = await _items(schemes, scheme.id)
        transport = [r for r in rows if r.distance_km_each_way is not None]
        plant = [r for r in rows if r.litres_used is not None]
        assert [r.scheme_installation_item_id for r in transport] == [
            items[InstallationCategory.TRANSPORT].id
        ]
        assert transport[0].distance_km_each_way == pytest.approx(12.0)
        assert transport[0].one_way is False
        assert plant[0].litres_used == pytest.approx(20.0)
        assert all(r.auto_generated for r in rows)
        assert rollup.calls == [scheme.id]

    @pytest.mark.asyncio
    async def test_transport_distance_in_scheme_unit(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data, with_product=False)
        await schemes.update_scheme(scheme.id, {"distance_unit": "mi"})

        rows = await usage.apply_auto_transport_usage(scheme.id, distance=10.0)

        assert len(rows) == 1
        assert rows[0].distance_km_each_way == pytest.approx(10.0 * MILES_TO_KM)

    @pytest.mark.asyncio
    async def test_transport_distance_from_postcodes(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data, with_product=False)
        rows = await usage.apply_auto_transport_usage(scheme.id)
        # Leeds to London, great circle
        assert 260 < rows[0].distance_km_each_way < 285

    @pytest.mark.asyncio
    async def test_transport_distance_needs_base_postcode(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await schemes.create_scheme(name="No base", site_postcode="SW1A1AA")
        with pytest.raises(ValidationError) as excinfo:
            await usage.apply_auto_transport_usage(scheme.id)
        assert str(excinfo.value) == MISSING_BASE_OR_SITE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("distance", [0.0, -3.0])
    async def test_invalid_transport_distance(
        self, schemes: SchemeService, usage: UsageService, reference_data, distance: float
    ) -> None:
        scheme = await _scheme(schemes, reference_data, with_product=False)
        with pytest.raises(ValidationError, match="valid distance"):
            await usage.apply_auto_transport_usage(scheme.id, distance=distance)

    @pytest.mark.asyncio
    async def test_plant_usage_replaces_previous_auto_rows(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data)
        await usage.apply_auto_plant_usage(scheme.id)
        await usage.apply_auto_plant_usage(scheme.id)

        rows = await usage.list_usage(scheme.id)
        assert len(rows) == 1


class TestManualUsage:
    @pytest.mark.asyncio
    async def test_manual_mode_drops_only_auto_plant_rows(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data)
        await usage.apply_auto_transport_usage(scheme.id, distance=8.0)

        result = await usage.enable_manual_usage(scheme.id)

        items = await _items(schemes, scheme.id)
        rows = await usage.list_usage(scheme.id)
        assert result.a5_fuel_mode is CalculationMode.MANUAL
        assert [r.scheme_installation_item_id for r in rows] == [
            items[InstallationCategory.TRANSPORT].id
        ]

    @pytest.mark.asyncio
    async def test_manual_entries_are_recorded(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data)
        await usage.enable_manual_usage(scheme.id)
        await schemes.update_scheme(scheme.id, {"distance_unit": "mi"})
        items = await _items(schemes, scheme.id)

        rows = await usage.add_manual_usage(
            scheme.id,
            period_start=date(2024, 3, 1),
            period_end=date(2024, 3, 31),
            entries=[
                ManualUsageInput(items[InstallationCategory.PLANT].id, litres_used=35.0),
                ManualUsageInput(
                    items[InstallationCategory.TRANSPORT].id, distance=5.0, one_way=True
                ),
                ManualUsageInput(items[InstallationCategory.MATERIAL].id, litres_used=9.0),
            ],
        )

        assert len(rows) == 2
        plant, transport = rows
        assert plant.litres_used == 35.0
        assert plant.auto_generated is False
        assert transport.distance_km_each_way == pytest.approx(5.0 * MILES_TO_KM)
        assert transport.one_way is True
        assert transport.period_end == date(2024, 3, 31)

    @pytest.mark.asyncio
    async def test_plant_entries_ignored_in_auto_mode(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data)
        items = await _items(schemes, scheme.id)
        with pytest.raises(ValidationError) as excinfo:
            await usage.add_manual_usage(
                scheme.id,
                period_start=date(2024, 3, 1),
                entries=[ManualUsageInput(items[InstallationCategory.PLANT].id, litres_used=3.0)],
            )
        assert str(excinfo.value) == AUTO_MODE_NO_RECORDS

    @pytest.mark.asyncio
    async def test_update_and_delete(
        self, schemes: SchemeService, usage: UsageService, reference_data
    ) -> None:
        scheme = await _scheme(schemes, reference_data, with_product=False)
        rows = await usage.apply_auto_transport_usage(scheme.id, distance=4.0)
        row = rows[0]

        with pytest.raises(ValidationError, match="Enter litres or distance"):
            await usage.update_usage(scheme.id, row.id, {})
        with pytest.raises(ValidationError, match="greater than 0"):
            await usage.update_usage(scheme.id, row.id, {"distance": -1.0})

        updated = await usage.update_usage(
            scheme.id, row.id, {"distance": 6.0, "one_way": True, "period_end": date(2024, 5, 1)}
        )
        assert updated.distance_km_each_way == pytest.approx(6.0)
        assert updated.one_way is True
        assert updated.period_end == date(2024, 5, 1)

        await usage.delete_usage(scheme.id, row.id)
        assert await usage.list_usage(scheme.id) == []
        with pytest.raises(NotFoundError):
            await usage.delete_usage(scheme.id, uuid4())
