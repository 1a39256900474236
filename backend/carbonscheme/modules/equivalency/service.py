"""Equivalencies computed against the active report metrics."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.config import get_settings
from carbonscheme.db.models import ReportMetric
from carbonscheme.modules.equivalency.converter import (
    AliasCatalog,
    Equivalencies,
    EquivalencyConverter,
    EquivalencyMetric,
)

EQUIVALENCY_METRIC_KIND = "equivalency"

# Module-level singleton catalog (loaded once, reused across requests)
_catalog: AliasCatalog | None = None


def _get_catalog() -> AliasCatalog:
    global _catalog  # noqa: PLW0603
    if _catalog is None:
        _catalog = AliasCatalog.load(get_settings().equivalency_alias_path)
    return _catalog


class EquivalencyService:
    def __init__(self, session: AsyncSession, catalog: AliasCatalog | None = None) -> None:
        self._session = session
        self._converter = EquivalencyConverter(catalog or _get_catalog())

    async def active_metrics(self) -> list[EquivalencyMetric]:
        result = await self._session.execute(
            select(ReportMetric)
            .where(
                ReportMetric.kind == EQUIVALENCY_METRIC_KIND,
                ReportMetric.is_active.is_(True),
            )
            .order_by(ReportMetric.sort_order, ReportMetric.label)
        )
        return [EquivalencyMetric.from_model(row) for row in result.scalars().all()]

    async def compute(self, tonnes: float) -> Equivalencies:
        return self._converter.compute(tonnes, await self.active_metrics())
