"""Pure A5 usage derivations.

Nothing here touches the database; the service turns the returned drafts
into ``SchemeA5UsageEntry`` rows.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Protocol
from uuid import UUID

from carbonscheme.core.errors import ValidationError
from carbonscheme.db.models import CalculationMode, DistanceUnit, InstallationCategory
from carbonscheme.modules.lca.blend import MaterialLine, is_delivery
from carbonscheme.modules.units import to_km

AUTO_MODE_NO_RECORDS = "Auto plant fuel is enabled. Enter distance for transport items only."
MANUAL_MODE_NO_RECORDS = "Enter litres or distance for at least one item"


class UsageItem(Protocol):
    id: UUID
    category: InstallationCategory
    litres_per_t: float | None
    quantity: float | None


@dataclass(frozen=True)
class UsageDraft:
    scheme_installation_item_id: UUID
    period_start: date
    period_end: date | None = None
    litres_used: float | None = None
    distance_km_each_way: float | None = None
    one_way: bool = False
    auto_generated: bool = False


@dataclass(frozen=True)
class ManualUsageInput:
    """One item's values from a manual entry form; blanks are ``None``."""

    scheme_installation_item_id: UUID
    litres_used: float | None = None
    distance: float | None = None
    one_way: bool = False


def delivered_tonnage(lines: Iterable[MaterialLine]) -> float:
    """Tonnage of delivery lines only; returns and tips do not burn plant fuel."""
    return sum((line.tonnage or 0.0) for line in lines if is_delivery(line.delivery_type))


def plant_fuel_litres(item: UsageItem, tonnage: float) -> float:
    litres_per_t = item.litres_per_t or 0.0
    quantity = item.quantity if item.quantity is not None else 1
    return litres_per_t * tonnage * quantity


def auto_plant_usage(
    items: Iterable[UsageItem],
    lines: Iterable[MaterialLine],
    period_start: date,
) -> list[UsageDraft]:
    """One auto row per plant item, or nothing when no tonnage was delivered."""
    tonnage = delivered_tonnage(lines)
    if tonnage <= 0:
        return []
    return [
        UsageDraft(
            scheme_installation_item_id=item.id,
            period_start=period_start,
            litres_used=plant_fuel_litres(item, tonnage),
            auto_generated=True,
        )
        for item in items
        if item.category is InstallationCategory.PLANT
    ]


def auto_transport_usage(
    items: Iterable[UsageItem],
    distance_km: float,
    period_start: date,
) -> list[UsageDraft]:
    """The same return-trip distance on every transport item."""
    return [
        UsageDraft(
            scheme_installation_item_id=item.id,
            period_start=period_start,
            distance_km_each_way=distance_km,
            one_way=False,
            auto_generated=True,
        )
        for item in items
        if item.category is InstallationCategory.TRANSPORT
    ]


def _is_blank(value: float | None) -> bool:
    return value is None or math.isnan(value)


def build_manual_usage(
    items: Mapping[UUID, UsageItem],
    entries: Sequence[ManualUsageInput],
    *,
    period_start: date | None,
    period_end: date | None,
    distance_unit: DistanceUnit,
    fuel_mode: CalculationMode,
) -> list[UsageDraft]:
    """Validate a manual entry form and return the rows to insert.

    Plant rows are ignored while plant fuel is derived automatically.
    Entries for unknown or non plant/transport items are skipped.
    """
    if period_start is None:
        raise ValidationError("Start date is required")
    if not entries:
        raise ValidationError("No plant or transport items available")

    drafts: list[UsageDraft] = []
    for entry in entries:
        item = items.get(entry.scheme_installation_item_id)
        if item is None:
            continue
        if item.category is InstallationCategory.PLANT:
            if fuel_mode is CalculationMode.AUTO or _is_blank(entry.litres_used):
                continue
            if entry.litres_used <= 0:
                raise ValidationError("Litres used must be greater than 0")
            drafts.append(
                UsageDraft(
                    scheme_installation_item_id=item.id,
                    period_start=period_start,
                    period_end=period_end,
                    litres_used=entry.litres_used,
                )
            )
        elif item.category is InstallationCategory.TRANSPORT:
            if _is_blank(entry.distance):
                continue
            if entry.distance <= 0:
                raise ValidationError("Distance must be greater than 0")
            drafts.append(
                UsageDraft(
                    scheme_installation_item_id=item.id,
                    period_start=period_start,
                    period_end=period_end,
                    distance_km_each_way=to_km(entry.distance, distance_unit),
                    one_way=entry.one_way,
                )
            )

    if not drafts:
        raise ValidationError(
            AUTO_MODE_NO_RECORDS if fuel_mode is CalculationMode.AUTO else MANUAL_MODE_NO_RECORDS
        )
    return drafts
