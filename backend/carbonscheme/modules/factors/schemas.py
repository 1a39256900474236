"""Schemas for emission factor lookups."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from pydantic import BaseModel

from carbonscheme.modules.factors.resolver import FactorLevel


class PlantMixFactorResponse(BaseModel):
    id: UUID
    plant_id: UUID
    mix_type_id: UUID
    product_id: UUID | None
    kgco2e_per_tonne: float | None
    recycled_materials_pct: float | None
    is_default: bool
    valid_from: date | None
    valid_to: date | None


class FactorResolutionResponse(BaseModel):
    """Resolved factor and recycled share with the chain level that supplied each."""

    plant_id: UUID
    mix_type_id: UUID | None
    product_id: UUID | None
    kgco2e_per_tonne: float | None
    recycled_materials_pct: float | None
    factor_level: FactorLevel | None
    recycled_level: FactorLevel | None
