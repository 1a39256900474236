"""Blended A1 factor and recycled-content share for a set of material lines.

Works on live ``SchemeProduct`` rows and on snapshot copies alike; anything
with the attributes of :class:`MaterialLine` will do.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from carbonscheme.db.models import DeliveryType
from carbonscheme.modules.factors.resolver import FactorResolver


class MaterialLine(Protocol):
    product_id: UUID | None
    plant_id: UUID | None
    mix_type_id: UUID | None
    delivery_type: DeliveryType | str | None
    tonnage: float | None


def is_delivery(delivery_type: DeliveryType | str | None) -> bool:
    """Unclassified lines count as deliveries."""
    if delivery_type is None:
        return True
    value = delivery_type.value if isinstance(delivery_type, DeliveryType) else delivery_type
    return value.strip().lower() in ("", DeliveryType.DELIVERY.value)


class A1FactorAggregator:
    """Scheme-level A1 figures derived from delivered lines.

    Usage::

        aggregator = A1FactorAggregator(resolver, default_plant_id=scheme.plant_id)
        a1 = aggregator.compute_blended_a1(products)
    """

    def __init__(self, resolver: FactorResolver, default_plant_id: UUID | None = None) -> None:
        self._resolver = resolver
        self._default_plant_id = default_plant_id

    def _plant_for(self, line: MaterialLine) -> UUID | None:
        return line.plant_id or self._default_plant_id

    def compute_blended_a1(self, lines: Iterable[MaterialLine]) -> float | None:
        """Mean factor over distinct delivered products; ``None`` if none resolve.

        One value per product (first resolvable line wins) so a product split
        across many deliveries is not over-weighted.
        """
        per_product: dict[object, float] = {}
        for index, line in enumerate(lines):
            if not is_delivery(line.delivery_type) or line.mix_type_id is None:
                continue
            factor = self._resolver.resolve_factor(
                self._plant_for(line), line.mix_type_id, line.product_id
            )
            if factor is None:
                continue
            per_product.setdefault(line.product_id or f"row-{index}", factor)

        if not per_product:
            return None
        return sum(per_product.values()) / len(per_product)

    def compute_recycled_pct(self, lines: Iterable[MaterialLine]) -> float | None:
        """Tonnage-weighted recycled percentage over delivered lines."""
        weighted = 0.0
        total_tonnage = 0.0
        for line in lines:
            if not is_delivery(line.delivery_type) or line.mix_type_id is None:
                continue
            tonnage = line.tonnage or 0.0
            if tonnage <= 0:
                continue
            pct = self._resolver.resolve_recycled_pct(
                self._plant_for(line), line.mix_type_id, line.product_id
            )
            if pct is None:
                continue
            weighted += pct * tonnage
            total_tonnage += tonnage

        if total_tonnage <= 0:
            return None
        return weighted / total_tonnage
