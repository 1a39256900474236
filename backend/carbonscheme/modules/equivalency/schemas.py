"""Schemas for equivalency responses."""

from __future__ import annotations

from pydantic import BaseModel


class EquivalenciesResponse(BaseModel):
    tonnes: float
    flights: float | None
    cars: float | None
    homes: float | None
    trees: float | None
    people: float | None
    energy: float | None
    stadium: float | None
    times_around_world: float | None
