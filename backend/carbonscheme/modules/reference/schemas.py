"""Schemas for reference data listings."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PlantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    location: str | None


class NamedReferenceResponse(BaseModel):
    """Mix types and products."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class InstallationSetupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plant_name: str
    category: str
    spread_rate_t_per_m2: float | None
    kgco2_per_t: float | None
    kgco2_per_ltr: float | None
    kgco2e_per_km: float | None
    litres_per_t: float | None
    litres_na: bool
    kgco2e: float | None
    kgco2e_na: bool
    one_way: bool
    is_default: bool
