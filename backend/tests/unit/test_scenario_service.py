"""Tests for ScenarioService against an in-memory database."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import (
    NotFoundError,
    ScenarioCapacityError,
    ScenarioLabelLockedError,
    SchemeLockedError,
)
from carbonscheme.db.models import Scheme
from carbonscheme.modules.scenarios.service import ScenarioService
from carbonscheme.modules.scenarios.snapshot import parse_snapshot
from carbonscheme.modules.schemes.service import SchemeService
from carbonscheme.modules.usage.service import UsageService


@pytest.fixture
def schemes(db_session: AsyncSession, rollup, distance_resolver) -> SchemeService:
    return SchemeService(db_session, rollup=rollup, distance_resolver=distance_resolver)


@pytest.fixture
def scenarios(db_session: AsyncSession, rollup) -> ScenarioService:
    return ScenarioService(db_session, rollup=rollup)


async def _add_line(
    schemes: SchemeService, scheme: Scheme, reference_data, mix: str, tonnage: float
):
    return await schemes.add_product(
        scheme.id,
        product_id=reference_data.products["surface"].id,
        plant_id=reference_data.plant.id,
        mix_type_id=reference_data.mixes[mix].id,
        tonnage=tonnage,
        distance=15.0,
    )


def _comparable(rows, *exclude: str) -> list[dict]:
    return [row.model_dump(exclude={"id", *exclude}) for row in rows]


@pytest.mark.asyncio
async def test_create_labels_from_mix_names_and_activates(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road", site_postcode="SW1A1AA")
    await _add_line(schemes, scheme, reference_data, "AC10", 50.0)
    await _add_line(schemes, scheme, reference_data, "AC20", 30.0)

    scenario = await scenarios.create_scenario(scheme.id)

    assert scenario.label == "AC10 Surface, AC20 Binder"
    assert scenario.label_locked is False
    assert scenario.revision == 1
    assert scheme.active_scenario_id == scenario.id
    snapshot = parse_snapshot(scenario.snapshot)
    assert [line.tonnage for line in snapshot.scheme_products] == [50.0, 30.0]
    assert len(snapshot.scheme_installation_items) == 3


@pytest.mark.asyncio
async def test_label_falls_back_to_position(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road")
    await scenarios.create_scenario(scheme.id)
    second = await scenarios.create_scenario(scheme.id)
    assert second.label == "Scenario 2"


@pytest.mark.asyncio
async def test_capacity_is_enforced(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road")
    for _ in range(5):
        await scenarios.create_scenario(scheme.id)

    with pytest.raises(ScenarioCapacityError, match="up to 5"):
        await scenarios.create_scenario(scheme.id)
    assert len(await scenarios.list_scenarios(scheme.id)) == 5


@pytest.mark.asyncio
async def test_apply_restores_captured_rows(
    db_session: AsyncSession,
    schemes: SchemeService,
    scenarios: ScenarioService,
    reference_data,
    rollup,
) -> None:
    scheme = await schemes.create_scheme(name="Ring road", site_postcode="SW1A1AA")
    await _add_line(schemes, scheme, reference_data, "AC10", 50.0)
    await UsageService(db_session, rollup=rollup).apply_auto_transport_usage(
        scheme.id, distance=9.0
    )
    scenario = await scenarios.create_scenario(scheme.id)
    before = parse_snapshot(scenario.snapshot)

    # Diverge the live scheme, then restore.
    await _add_line(schemes, scheme, reference_data, "AC20", 70.0)
    rollup.calls.clear()

    applied = await scenarios.apply_scenario(scheme.id, scenario.id)
    after = await scenarios.capture(scheme.id)

    assert applied.active_scenario_id == scenario.id
    assert rollup.calls == [scheme.id]
    assert _comparable(after.scheme_products) == _comparable(before.scheme_products)
    assert _comparable(after.scheme_installation_items) == _comparable(
        before.scheme_installation_items
    )
    assert _comparable(after.scheme_a5_usage_entries, "scheme_installation_item_id") == (
        _comparable(before.scheme_a5_usage_entries, "scheme_installation_item_id")
    )
    # Usage rows point at the re-inserted items.
    item_ids = {item.id for item in after.scheme_installation_items}
    usage_item_ids = {entry.scheme_installation_item_id for entry in after.scheme_a5_usage_entries}
    assert usage_item_ids <= item_ids


@pytest.mark.asyncio
async def test_apply_rejected_on_locked_scheme(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road")
    scenario = await scenarios.create_scenario(scheme.id)
    await schemes.lock_scheme(scheme.id)
    with pytest.raises(SchemeLockedError):
        await scenarios.apply_scenario(scheme.id, scenario.id)


@pytest.mark.asyncio
async def test_update_snapshot_bumps_revision_and_keeps_label(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road", site_postcode="SW1A1AA")
    scenario = await scenarios.create_scenario(scheme.id)
    await _add_line(schemes, scheme, reference_data, "AC10", 20.0)

    updated = await scenarios.update_snapshot(scheme.id, scenario.id)

    assert updated.id == scenario.id
    assert updated.revision == 2
    assert updated.label == "Scenario 1"
    assert len(parse_snapshot(updated.snapshot).scheme_products) == 1


@pytest.mark.asyncio
async def test_rename_locks_label(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road")
    scenario = await scenarios.create_scenario(scheme.id)

    renamed = await scenarios.rename_label(scheme.id, scenario.id, "  Cheaper binder  ")
    assert renamed.label == "Cheaper binder"
    assert renamed.label_locked is True

    with pytest.raises(ScenarioLabelLockedError, match="already been renamed"):
        await scenarios.rename_label(scheme.id, scenario.id, "Second")
    assert renamed.label == "Cheaper binder"


@pytest.mark.asyncio
async def test_blank_rename_clears_and_locks_label(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road")
    scenario = await scenarios.create_scenario(scheme.id)

    cleared = await scenarios.rename_label(scheme.id, scenario.id, "   ")
    assert cleared.label is None
    assert cleared.label_locked is True


@pytest.mark.asyncio
async def test_delete_clears_active_pointer_only(
    schemes: SchemeService, scenarios: ScenarioService, reference_data
) -> None:
    scheme = await schemes.create_scheme(name="Ring road", site_postcode="SW1A1AA")
    await _add_line(schemes, scheme, reference_data, "AC10", 20.0)
    first = await scenarios.create_scenario(scheme.id)
    second = await scenarios.create_scenario(scheme.id)

    await scenarios.delete_scenario(scheme.id, first.id)
    assert scheme.active_scenario_id == second.id

    await scenarios.delete_scenario(scheme.id, second.id)
    assert scheme.active_scenario_id is None
    assert len(await schemes.list_products(scheme.id)) == 1

    with pytest.raises(NotFoundError):
        await scenarios.get_scenario(scheme.id, uuid4())
