"""Lifecycle reporting and scenario comparison for a scheme.

Reads only: results come from the roll-up tables for the live scheme and
from the embedded copies for stored scenarios.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import DeliveryType, Scheme
from carbonscheme.modules.equivalency.schemas import EquivalenciesResponse
from carbonscheme.modules.equivalency.service import EquivalencyService
from carbonscheme.modules.factors.resolver import FactorResolver
from carbonscheme.modules.factors.service import FactorService
from carbonscheme.modules.lca.blend import A1FactorAggregator
from carbonscheme.modules.lca.comparison import (
    build_bullets,
    build_narrative,
    delivery_stats,
    delta_per_tonne,
)
from carbonscheme.modules.lca.lifecycle import LifecycleAggregator
from carbonscheme.modules.lca.rollup import load_results, load_summary
from carbonscheme.modules.lca.schemas import (
    AggregateBandSchema,
    ComparisonColumn,
    ComparisonReport,
    LifecycleReport,
    StageGroupSchema,
)
from carbonscheme.modules.reference.service import ReferenceDataService
from carbonscheme.modules.scenarios.snapshot import parse_snapshot
from carbonscheme.modules.scenarios.service import ScenarioService
from carbonscheme.modules.schemes.access import (
    load_installation_items,
    load_products,
    load_scheme,
)

logger = get_logger(__name__)

LIVE_ITEM_ID = "live"


@dataclass
class _Column:
    """Rows behind one comparison column, live or snapshot."""

    id: str
    kind: str
    title: str
    subtitle: str
    products: Sequence[Any]
    items: Sequence[Any]
    results: Sequence[Any]
    summary: Any | None


def _total_tonnage(products: Iterable[Any]) -> float:
    return sum(product.tonnage or 0.0 for product in products)


def _has_tip(products: Iterable[Any]) -> bool:
    return any(product.delivery_type == DeliveryType.TIP for product in products)


class LCAService:
    """Lifecycle and comparison reports.

    Usage::

        service = LCAService(db_session)
        report = await service.lifecycle(scheme_id)
        comparison = await service.compare(scheme_id, ["live", str(scenario_id)])
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._reference = ReferenceDataService(session)
        self._factors = FactorService(session)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def lifecycle(self, scheme_id: UUID) -> LifecycleReport:
        """Stage groups, cumulative bands and A1 figures for the live scheme."""
        scheme = await load_scheme(self._session, scheme_id)
        products = await load_products(self._session, scheme_id)
        results = await load_results(self._session, scheme_id)
        summary = await load_summary(self._session, scheme_id)

        aggregator = await self._lifecycle_aggregator(products, results)
        groups = aggregator.group_by_stage(results, has_tip=_has_tip(products))
        total_tonnage = _total_tonnage(products)
        bands = LifecycleAggregator.aggregate_bands(groups, total_tonnage)

        a1 = A1FactorAggregator(await self._resolver(scheme, products), scheme.plant_id)
        return LifecycleReport(
            scheme_id=scheme.id,
            total_tonnage=total_tonnage,
            total_kgco2e=summary.total_kgco2e if summary else None,
            kgco2e_per_tonne=summary.kgco2e_per_tonne if summary else None,
            a1_factor=a1.compute_blended_a1(products),
            recycled_pct=a1.compute_recycled_pct(products),
            stages=[StageGroupSchema.model_validate(group) for group in groups],
            bands=[AggregateBandSchema.model_validate(band) for band in bands],
        )

    async def compare(self, scheme_id: UUID, item_ids: Sequence[str]) -> ComparisonReport:
        """Compare the live scheme and/or stored scenarios side by side.

        ``item_ids`` holds ``"live"`` and scenario ids, in display order. An
        empty selection compares the live scheme against every scenario.
        Equivalencies are computed for the per-tonne spread between columns.
        """
        scheme = await load_scheme(self._session, scheme_id)
        columns = await self._load_columns(scheme, item_ids)

        all_products = [product for column in columns for product in column.products]
        resolver = await self._resolver(scheme, all_products)
        a1 = A1FactorAggregator(resolver, scheme.plant_id)
        aggregator = await self._lifecycle_aggregator(
            all_products,
            [row for column in columns for row in column.results],
        )
        mix_names = await self._reference.mix_names(p.mix_type_id for p in all_products)

        rendered: list[ComparisonColumn] = []
        for column in columns:
            stats = delivery_stats(column.products, column.items, mix_names, scheme.distance_unit)
            groups = aggregator.group_by_stage(column.results, has_tip=_has_tip(column.products))
            rendered.append(
                ComparisonColumn(
                    id=column.id,
                    kind=column.kind,
                    title=column.title,
                    subtitle=column.subtitle,
                    total_kgco2e=column.summary.total_kgco2e if column.summary else None,
                    kgco2e_per_tonne=(
                        column.summary.kgco2e_per_tonne if column.summary else None
                    ),
                    a1_factor=a1.compute_blended_a1(column.products),
                    recycled_pct=a1.compute_recycled_pct(column.products),
                    narrative=build_narrative(column.title, stats, scheme.distance_unit),
                    bullets=build_bullets(stats, scheme.distance_unit),
                    stages=[StageGroupSchema.model_validate(group) for group in groups],
                )
            )

        delta = delta_per_tonne([column.kgco2e_per_tonne for column in rendered])
        equivalencies = await EquivalencyService(self._session).compute(delta or 0.0)
        logger.info(
            "scheme_comparison_built",
            scheme_id=str(scheme_id),
            columns=len(rendered),
            delta_per_tonne=delta,
        )
        return ComparisonReport(
            scheme_id=scheme.id,
            columns=rendered,
            delta_per_tonne=delta,
            equivalencies=EquivalenciesResponse(tonnes=delta or 0.0, **equivalencies.as_dict()),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load_columns(self, scheme: Scheme, item_ids: Sequence[str]) -> list[_Column]:
        scenarios = await ScenarioService(self._session).list_scenarios(scheme.id)
        by_id = {str(scenario.id): scenario for scenario in scenarios}
        if not item_ids:
            item_ids = [LIVE_ITEM_ID, *by_id]

        columns: list[_Column] = []
        seen: set[str] = set()
        for raw in item_ids:
            item_id = raw.strip().lower()
            if not item_id or item_id in seen:
                continue
            seen.add(item_id)
            if item_id == LIVE_ITEM_ID:
                columns.append(await self._live_column(scheme))
                continue
            try:
                item_id = str(UUID(item_id))
            except ValueError as exc:
                raise ValidationError(f"Invalid comparison item: {raw}") from exc
            scenario = by_id.get(item_id)
            if scenario is None:
                raise NotFoundError(f"Scenario {item_id} not found")
            snapshot = parse_snapshot(scenario.snapshot)
            index = list(by_id).index(item_id)
            columns.append(
                _Column(
                    id=item_id,
                    kind="scenario",
                    title=(scenario.label or "").strip() or f"Scenario {index + 1}",
                    subtitle="Scenario snapshot",
                    products=snapshot.scheme_products,
                    items=snapshot.scheme_installation_items,
                    results=snapshot.scheme_carbon_results,
                    summary=snapshot.scheme_carbon_summary,
                )
            )
        return columns

    async def _live_column(self, scheme: Scheme) -> _Column:
        return _Column(
            id=LIVE_ITEM_ID,
            kind="live",
            title="Live scheme",
            subtitle=scheme.name,
            products=await load_products(self._session, scheme.id),
            items=await load_installation_items(self._session, scheme.id),
            results=await load_results(self._session, scheme.id),
            summary=await load_summary(self._session, scheme.id),
        )

    async def _resolver(self, scheme: Scheme, products: Iterable[Any]) -> FactorResolver:
        plant_ids = {product.plant_id for product in products}
        plant_ids.add(scheme.plant_id)
        return await self._factors.load_resolver(plant_ids)

    async def _lifecycle_aggregator(
        self,
        products: Iterable[Any],
        results: Iterable[Any],
    ) -> LifecycleAggregator:
        products = list(products)
        results = list(results)
        product_ids = [p.product_id for p in products] + [r.product_id for r in results]
        mix_ids = [p.mix_type_id for p in products] + [r.mix_type_id for r in results]
        return LifecycleAggregator(
            product_names=await self._reference.product_names(product_ids),
            mix_names=await self._reference.mix_names(mix_ids),
        )
