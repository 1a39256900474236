"""In-memory emission factor resolver.

Rows are indexed by ``(plant, mix, product)``. A lookup walks a fixed chain
and, for each value it is asked for, returns the first non-null one found:

1. exact ``(plant, mix, product)``
2. mix level ``(plant, mix, None)``
3. the plant's default row

Several rows may share a key (for example one carrying the factor and one
carrying the recycled percentage); they are consulted in load order.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from carbonscheme.db.models import PlantMixFactor

FactorKey = tuple[UUID, UUID, UUID | None]


class FactorLevel(str, Enum):
    """Which link of the fallback chain produced a value."""

    EXACT = "exact"
    MIX = "mix"
    PLANT_DEFAULT = "plant_default"


@dataclass(frozen=True)
class FactorRow:
    plant_id: UUID
    mix_type_id: UUID
    product_id: UUID | None = None
    kgco2e_per_tonne: float | None = None
    recycled_materials_pct: float | None = None
    is_default: bool = False
    valid_from: date | None = None
    valid_to: date | None = None

    @classmethod
    def from_model(cls, row: PlantMixFactor) -> FactorRow:
        return cls(
            plant_id=row.plant_id,
            mix_type_id=row.mix_type_id,
            product_id=row.product_id,
            kgco2e_per_tonne=row.kgco2e_per_tonne,
            recycled_materials_pct=row.recycled_materials_pct,
            is_default=bool(row.is_default),
            valid_from=row.valid_from,
            valid_to=row.valid_to,
        )

    def is_current(self, as_of: date) -> bool:
        if self.valid_from is not None and self.valid_from > as_of:
            return False
        if self.valid_to is not None and self.valid_to < as_of:
            return False
        return True


@dataclass(frozen=True)
class ResolvedFactor:
    kgco2e_per_tonne: float | None
    recycled_materials_pct: float | None
    factor_level: FactorLevel | None
    recycled_level: FactorLevel | None


class FactorResolver:
    """Resolve factors and recycled percentages for (plant, mix, product).

    Usage::

        resolver = FactorResolver(rows)
        factor = resolver.resolve_factor(plant_id, mix_type_id, product_id)
    """

    def __init__(
        self,
        rows: Iterable[FactorRow | PlantMixFactor],
        as_of: date | None = None,
    ) -> None:
        as_of = as_of or date.today()
        self._by_key: dict[FactorKey, list[FactorRow]] = defaultdict(list)
        self._defaults: dict[UUID, list[FactorRow]] = defaultdict(list)
        for raw in rows:
            row = raw if isinstance(raw, FactorRow) else FactorRow.from_model(raw)
            if not row.is_current(as_of):
                continue
            self._by_key[(row.plant_id, row.mix_type_id, row.product_id)].append(row)
            if row.is_default:
                self._defaults[row.plant_id].append(row)

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._by_key.values())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_factor(
        self,
        plant_id: UUID | None,
        mix_type_id: UUID | None,
        product_id: UUID | None = None,
    ) -> float | None:
        """Emission factor in kgCO2e per tonne, or ``None`` when no level has one."""
        value, _ = self._first_value("kgco2e_per_tonne", plant_id, mix_type_id, product_id)
        return value

    def resolve_recycled_pct(
        self,
        plant_id: UUID | None,
        mix_type_id: UUID | None,
        product_id: UUID | None = None,
    ) -> float | None:
        value, _ = self._first_value(
            "recycled_materials_pct", plant_id, mix_type_id, product_id
        )
        return value

    def resolve(
        self,
        plant_id: UUID | None,
        mix_type_id: UUID | None,
        product_id: UUID | None = None,
    ) -> ResolvedFactor:
        factor, factor_level = self._first_value(
            "kgco2e_per_tonne", plant_id, mix_type_id, product_id
        )
        recycled, recycled_level = self._first_value(
            "recycled_materials_pct", plant_id, mix_type_id, product_id
        )
        return ResolvedFactor(
            kgco2e_per_tonne=factor,
            recycled_materials_pct=recycled,
            factor_level=factor_level,
            recycled_level=recycled_level,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _chain(
        self,
        plant_id: UUID,
        mix_type_id: UUID | None,
        product_id: UUID | None,
    ) -> Iterator[tuple[FactorLevel, FactorRow]]:
        if mix_type_id is not None:
            if product_id is not None:
                for row in self._by_key.get((plant_id, mix_type_id, product_id), ()):
                    yield FactorLevel.EXACT, row
            for row in self._by_key.get((plant_id, mix_type_id, None), ()):
                yield FactorLevel.MIX, row
        for row in self._defaults.get(plant_id, ()):
            yield FactorLevel.PLANT_DEFAULT, row

    def _first_value(
        self,
        field: str,
        plant_id: UUID | None,
        mix_type_id: UUID | None,
        product_id: UUID | None,
    ) -> tuple[Any, FactorLevel | None]:
        if plant_id is None:
            return None, None
        for level, row in self._chain(plant_id, mix_type_id, product_id):
            value = getattr(row, field)
            if value is not None:
                return value, level
        return None, None
