"""Group flat carbon result rows into lifecycle stages.

A row without product, mix or detail label is the stage summary; every
other row of that stage is an itemised detail.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

STAGE_DESCRIPTIONS: dict[str, str] = {
    "A2": "Transport to manufacturing plant",
    "A3": "Manufacturing",
    "A4": "Transport to site",
    "A5": "Installation",
}
A4_WITH_TIP_DESCRIPTION = "Transport to site/Landfill"

# Band code -> stages summed. The roll-up folds raw material supply into
# the manufacturing figure, so bands start at A2.
AGGREGATE_BANDS: dict[str, tuple[str, ...]] = {
    "A1-A3": ("A2", "A3"),
    "A1-A4": ("A2", "A3", "A4"),
    "A1-A5": ("A2", "A3", "A4", "A5"),
}

_MISSING = "-"


class ResultRow(Protocol):
    lifecycle_stage: str
    product_id: UUID | None
    mix_type_id: UUID | None
    detail_label: str | None
    total_kgco2e: float | None
    kgco2e_per_tonne: float | None


@dataclass
class StageDetail:
    label: str
    mix: str
    total_kgco2e: float | None
    kgco2e_per_tonne: float | None


@dataclass
class StageGroup:
    stage: str
    description: str
    total_kgco2e: float
    kgco2e_per_tonne: float | None
    details: list[StageDetail] = field(default_factory=list)


@dataclass
class AggregateBand:
    code: str
    stages: tuple[str, ...]
    total_kgco2e: float | None
    kgco2e_per_tonne: float | None


def _is_summary(row: ResultRow) -> bool:
    return row.product_id is None and row.mix_type_id is None and not row.detail_label


class LifecycleAggregator:
    """Build the stage hierarchy shown on scheme pages and reports.

    Args:
        product_names: product id -> display name.
        mix_names: mix type id -> display name.
        stage_descriptions: overrides for :data:`STAGE_DESCRIPTIONS`.
    """

    def __init__(
        self,
        product_names: Mapping[UUID, str] | None = None,
        mix_names: Mapping[UUID, str] | None = None,
        stage_descriptions: Mapping[str, str] | None = None,
    ) -> None:
        self._product_names = product_names or {}
        self._mix_names = mix_names or {}
        self._descriptions = {**STAGE_DESCRIPTIONS, **(stage_descriptions or {})}

    def describe(self, stage: str, *, has_tip: bool = False) -> str:
        if stage == "A4" and has_tip:
            return A4_WITH_TIP_DESCRIPTION
        return self._descriptions.get(stage, stage)

    def group_by_stage(
        self,
        rows: Iterable[ResultRow],
        *,
        has_tip: bool = False,
    ) -> list[StageGroup]:
        summaries: dict[str, ResultRow] = {}
        details: dict[str, list[StageDetail]] = {}
        for row in rows:
            stage = row.lifecycle_stage
            details.setdefault(stage, [])
            if _is_summary(row):
                summaries.setdefault(stage, row)
                continue
            details[stage].append(self._detail(row))

        groups = []
        for stage in sorted(details):
            summary = summaries.get(stage)
            stage_details = details[stage]
            if summary is not None and summary.total_kgco2e is not None:
                total = float(summary.total_kgco2e)
            else:
                total = sum(d.total_kgco2e or 0.0 for d in stage_details)
            groups.append(
                StageGroup(
                    stage=stage,
                    description=self.describe(stage, has_tip=has_tip),
                    total_kgco2e=total,
                    kgco2e_per_tonne=summary.kgco2e_per_tonne if summary else None,
                    details=stage_details,
                )
            )
        return groups

    @staticmethod
    def aggregate_bands(
        groups: Iterable[StageGroup],
        total_tonnage: float | None,
    ) -> list[AggregateBand]:
        """Sum stage totals into the cumulative bands; never stored."""
        totals = {group.stage: group.total_kgco2e for group in groups}
        bands = []
        for code, stages in AGGREGATE_BANDS.items():
            present = [totals[stage] for stage in stages if stage in totals]
            band_total = sum(present) if present else None
            per_tonne = None
            if band_total is not None and total_tonnage and total_tonnage > 0:
                per_tonne = band_total / total_tonnage
            bands.append(
                AggregateBand(
                    code=code,
                    stages=stages,
                    total_kgco2e=band_total,
                    kgco2e_per_tonne=per_tonne,
                )
            )
        return bands

    def _detail(self, row: ResultRow) -> StageDetail:
        if row.detail_label:
            label = row.detail_label
        elif row.product_id is not None:
            label = self._product_names.get(row.product_id, str(row.product_id))
        else:
            label = _MISSING
        if row.mix_type_id is not None:
            mix = self._mix_names.get(row.mix_type_id, str(row.mix_type_id))
        else:
            mix = _MISSING
        return StageDetail(
            label=label,
            mix=mix,
            total_kgco2e=row.total_kgco2e,
            kgco2e_per_tonne=row.kgco2e_per_tonne,
        )
