"""Unit tests for A5 usage derivation and manual entry validation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID, uuid4

import pytest

from carbonscheme.core.errors import ValidationError
from carbonscheme.db.models import (
    CalculationMode,
    DeliveryType,
    DistanceUnit,
    InstallationCategory,
)
from carbonscheme.modules.usage.calculator import (
    AUTO_MODE_NO_RECORDS,
    MANUAL_MODE_NO_RECORDS,
    ManualUsageInput,
    auto_plant_usage,
    auto_transport_usage,
    build_manual_usage,
    delivered_tonnage,
    plant_fuel_litres,
)

TODAY = date(2026, 10, 19)


@dataclass
class Item:
    category: InstallationCategory
    litres_per_t: float | None = None
    quantity: float | None = 1
    id: UUID = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.id is None:
            self.id = uuid4()


@dataclass
class Line:
    tonnage: float | None
    delivery_type: DeliveryType | str | None = DeliveryType.DELIVERY
    product_id: UUID | None = None
    plant_id: UUID | None = None
    mix_type_id: UUID | None = None


def test_delivered_tonnage_ignores_returns_and_tips() -> None:
    lines = [
        Line(100.0),
        Line(20.0, DeliveryType.RETURN),
        Line(5.0, DeliveryType.TIP),
        Line(None),
    ]
    assert delivered_tonnage(lines) == 100.0


def test_plant_fuel_litres_scales_by_quantity() -> None:
    assert plant_fuel_litres(Item(InstallationCategory.PLANT, 0.5, 2), 100.0) == 100.0
    assert plant_fuel_litres(Item(InstallationCategory.PLANT, None, 2), 100.0) == 0.0
    assert plant_fuel_litres(Item(InstallationCategory.PLANT, 0.5, None), 100.0) == 50.0


def test_auto_plant_usage_one_row_per_plant_item() -> None:
    paver = Item(InstallationCategory.PLANT, 0.5)
    lorry = Item(InstallationCategory.TRANSPORT)
    drafts = auto_plant_usage([paver, lorry], [Line(40.0)], TODAY)
    assert len(drafts) == 1
    assert drafts[0].scheme_installation_item_id == paver.id
    assert drafts[0].litres_used == 20.0
    assert drafts[0].auto_generated is True
    assert drafts[0].period_start == TODAY


def test_auto_plant_usage_without_deliveries_is_empty() -> None:
    paver = Item(InstallationCategory.PLANT, 0.5)
    assert auto_plant_usage([paver], [Line(40.0, DeliveryType.RETURN)], TODAY) == []


def test_auto_transport_usage_applies_same_distance() -> None:
    lorries = [Item(InstallationCategory.TRANSPORT), Item(InstallationCategory.TRANSPORT)]
    drafts = auto_transport_usage([*lorries, Item(InstallationCategory.PLANT)], 12.5, TODAY)
    assert [d.scheme_installation_item_id for d in drafts] == [item.id for item in lorries]
    assert all(d.distance_km_each_way == 12.5 and not d.one_way for d in drafts)


def _build(items: list[Item], entries: list[ManualUsageInput], **kwargs):
    options = {
        "period_start": TODAY,
        "period_end": None,
        "distance_unit": DistanceUnit.KM,
        "fuel_mode": CalculationMode.MANUAL,
    }
    options.update(kwargs)
    return build_manual_usage({item.id: item for item in items}, entries, **options)


def test_manual_usage_requires_start_date() -> None:
    item = Item(InstallationCategory.PLANT)
    with pytest.raises(ValidationError, match="Start date is required"):
        _build([item], [ManualUsageInput(item.id, litres_used=5)], period_start=None)


def test_manual_usage_requires_entries() -> None:
    with pytest.raises(ValidationError, match="No plant or transport items available"):
        _build([], [])


def test_manual_usage_converts_miles_and_keeps_one_way() -> None:
    lorry = Item(InstallationCategory.TRANSPORT)
    drafts = _build(
        [lorry],
        [ManualUsageInput(lorry.id, distance=10, one_way=True)],
        distance_unit=DistanceUnit.MI,
    )
    assert drafts[0].distance_km_each_way == pytest.approx(16.0934)
    assert drafts[0].one_way is True
    assert drafts[0].auto_generated is False


def test_manual_usage_rejects_non_positive_values() -> None:
    paver = Item(InstallationCategory.PLANT)
    lorry = Item(InstallationCategory.TRANSPORT)
    with pytest.raises(ValidationError, match="Litres used must be greater than 0"):
        _build([paver], [ManualUsageInput(paver.id, litres_used=0)])
    with pytest.raises(ValidationError, match="Distance must be greater than 0"):
        _build([lorry], [ManualUsageInput(lorry.id, distance=-3)])


def test_manual_usage_skips_plant_rows_in_auto_mode() -> None:
    paver = Item(InstallationCategory.PLANT)
    with pytest.raises(ValidationError, match=AUTO_MODE_NO_RECORDS):
        _build(
            [paver],
            [ManualUsageInput(paver.id, litres_used=30)],
            fuel_mode=CalculationMode.AUTO,
        )


def test_manual_usage_with_only_blanks_is_rejected() -> None:
    paver = Item(InstallationCategory.PLANT)
    with pytest.raises(ValidationError, match=MANUAL_MODE_NO_RECORDS):
        _build([paver], [ManualUsageInput(paver.id, litres_used=float("nan"))])


def test_manual_usage_ignores_unknown_and_material_items() -> None:
    paver = Item(InstallationCategory.PLANT)
    tack = Item(InstallationCategory.MATERIAL)
    drafts = _build(
        [paver, tack],
        [
            ManualUsageInput(uuid4(), litres_used=9),
            ManualUsageInput(tack.id, litres_used=9),
            ManualUsageInput(paver.id, litres_used=12),
        ],
    )
    assert [d.scheme_installation_item_id for d in drafts] == [paver.id]
    assert drafts[0].litres_used == 12
