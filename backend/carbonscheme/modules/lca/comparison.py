"""Descriptive text for scenario comparison columns."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from carbonscheme.db.models import DeliveryType, DistanceUnit, InstallationCategory
from carbonscheme.modules.lca.blend import MaterialLine, is_delivery
from carbonscheme.modules.units import from_km


class DistancedLine(MaterialLine, Protocol):
    distance_km: float | None


class CategorisedItem(Protocol):
    category: InstallationCategory


@dataclass
class DeliveryStats:
    deliveries: int = 0
    delivered_tonnes: float = 0.0
    returned_tonnes: float = 0.0
    tipped_tonnes: float = 0.0
    average_distance: float | None = None
    plant_items: int = 0
    transport_items: int = 0
    material_items: int = 0
    mixes: list[str] = field(default_factory=list)


def _delivery_kind(line: MaterialLine) -> DeliveryType | None:
    if is_delivery(line.delivery_type):
        return DeliveryType.DELIVERY
    try:
        return DeliveryType(str(getattr(line.delivery_type, "value", line.delivery_type)).lower())
    except ValueError:
        return None


def delivery_stats(
    lines: Iterable[DistancedLine],
    items: Iterable[CategorisedItem],
    mix_names: Mapping[UUID, str],
    unit: DistanceUnit,
) -> DeliveryStats:
    stats = DeliveryStats()
    distances: list[float] = []
    for line in lines:
        kind = _delivery_kind(line)
        tonnage = line.tonnage or 0.0
        if kind is DeliveryType.DELIVERY:
            stats.deliveries += 1
            stats.delivered_tonnes += tonnage
            if line.distance_km:
                distances.append(from_km(line.distance_km, unit))
        elif kind is DeliveryType.RETURN:
            stats.returned_tonnes += tonnage
        elif kind is DeliveryType.TIP:
            stats.tipped_tonnes += tonnage
        name = mix_names.get(line.mix_type_id) if line.mix_type_id else None
        if name and name not in stats.mixes:
            stats.mixes.append(name)
    if distances:
        stats.average_distance = sum(distances) / len(distances)

    for item in items:
        if item.category is InstallationCategory.PLANT:
            stats.plant_items += 1
        elif item.category is InstallationCategory.TRANSPORT:
            stats.transport_items += 1
        elif item.category is InstallationCategory.MATERIAL:
            stats.material_items += 1
    return stats


def _installation_text(stats: DeliveryStats) -> str:
    return (
        f"Installation items: {stats.plant_items} plant, "
        f"{stats.transport_items} transport, {stats.material_items} material"
    )


def build_narrative(title: str, stats: DeliveryStats, unit: DistanceUnit) -> str:
    mix_text = (
        f"Mixes used: {', '.join(stats.mixes)}." if stats.mixes else "No mix types recorded."
    )
    if stats.average_distance is not None:
        distance_text = f"Average delivery distance: {stats.average_distance:.1f} {unit.value}."
    else:
        distance_text = "Delivery distances not recorded."
    return (
        f"{title} includes {stats.deliveries} deliveries totaling "
        f"{stats.delivered_tonnes:.1f} t, {stats.returned_tonnes:.1f} t returned, "
        f"and {stats.tipped_tonnes:.1f} t sent to tip. "
        f"{mix_text} {distance_text} {_installation_text(stats)}."
    )


def build_bullets(stats: DeliveryStats, unit: DistanceUnit) -> list[str]:
    if stats.average_distance is not None:
        distance = f"Avg delivery distance: {stats.average_distance:.1f} {unit.value}"
    else:
        distance = "Avg delivery distance: n/a"
    return [
        f"Delivered: {stats.delivered_tonnes:.1f} t",
        f"Returned: {stats.returned_tonnes:.1f} t",
        f"Tipped: {stats.tipped_tonnes:.1f} t",
        distance,
        _installation_text(stats),
    ]


def delta_per_tonne(values: Sequence[float | None]) -> float | None:
    """Spread between the highest and lowest per-tonne figure."""
    present = [value for value in values if value is not None]
    if not present:
        return None
    return max(present) - min(present)
