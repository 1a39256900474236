"""Pydantic schemas for lifecycle reports and scenario comparison."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carbonscheme.modules.equivalency.schemas import EquivalenciesResponse


class StageDetailSchema(BaseModel):
    """One itemised row within a lifecycle stage."""

    model_config = ConfigDict(from_attributes=True)

    label: str
    mix: str
    total_kgco2e: float | None = None
    kgco2e_per_tonne: float | None = None


class StageGroupSchema(BaseModel):
    """A lifecycle stage with its summary figures and itemised rows."""

    model_config = ConfigDict(from_attributes=True)

    stage: str
    description: str
    total_kgco2e: float
    kgco2e_per_tonne: float | None = None
    details: list[StageDetailSchema] = Field(default_factory=list)


class AggregateBandSchema(BaseModel):
    """Cumulative band such as A1-A3, derived on read."""

    model_config = ConfigDict(from_attributes=True)

    code: str
    stages: list[str]
    total_kgco2e: float | None = None
    kgco2e_per_tonne: float | None = None


class LifecycleReport(BaseModel):
    """Stage breakdown of a scheme's last computed results."""

    scheme_id: UUID
    total_tonnage: float
    total_kgco2e: float | None = None
    kgco2e_per_tonne: float | None = None
    a1_factor: float | None = None
    recycled_pct: float | None = None
    stages: list[StageGroupSchema] = Field(default_factory=list)
    bands: list[AggregateBandSchema] = Field(default_factory=list)


class ComparisonColumn(BaseModel):
    """One column of a comparison: the live scheme or a stored scenario."""

    id: str
    kind: Literal["live", "scenario"]
    title: str
    subtitle: str
    total_kgco2e: float | None = None
    kgco2e_per_tonne: float | None = None
    a1_factor: float | None = None
    recycled_pct: float | None = None
    narrative: str
    bullets: list[str] = Field(default_factory=list)
    stages: list[StageGroupSchema] = Field(default_factory=list)


class ComparisonReport(BaseModel):
    """Side-by-side comparison of the live scheme and selected scenarios."""

    scheme_id: UUID
    columns: list[ComparisonColumn] = Field(default_factory=list)
    delta_per_tonne: float | None = None
    equivalencies: EquivalenciesResponse
