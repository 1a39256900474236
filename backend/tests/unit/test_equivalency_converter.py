"""Unit tests for CO2e equivalency conversion and label aliasing."""

from __future__ import annotations

from pathlib import Path

import pytest

from carbonscheme.modules.equivalency.converter import (
    CAR_MILES_AROUND_WORLD,
    STADIUM_CONSTANT,
    AliasCatalog,
    EquivalencyConverter,
    EquivalencyKind,
    EquivalencyMetric,
    apply_calc,
    normalize_label,
    per_unit_tonnes,
)


@pytest.fixture(scope="module")
def converter() -> EquivalencyConverter:
    return EquivalencyConverter(AliasCatalog.load())


def test_normalize_label() -> None:
    assert normalize_label("  People’s Carbon-Footprint ") == "peoples carbon footprint"
    assert normalize_label(None) == ""


@pytest.mark.parametrize(
    ("label", "kind"),
    [
        ("Return Flights between the UK & Sydney", EquivalencyKind.FLIGHTS),
        ("miles a car can travel in a year", EquivalencyKind.CARS),
        ("UK HOMES HEATED", EquivalencyKind.HOMES),
        ("People's Carbon Footprint", EquivalencyKind.PEOPLE),
        ("Light bulbs used for 8 hours", EquivalencyKind.ENERGY),
        ("Times we could fill the national stadium", EquivalencyKind.STADIUM),
        ("Wembley arena", EquivalencyKind.STADIUM),
        ("Bananas", None),
    ],
)
def test_bundled_aliases_classify_labels(label: str, kind: EquivalencyKind | None) -> None:
    assert AliasCatalog.load().classify(label) is kind


def test_catalog_loads_custom_yaml(tmp_path: Path) -> None:
    path = tmp_path / "aliases.yaml"
    path.write_text(
        "version: test\n"
        "kinds:\n"
        "  trees:\n"
        "    - Saplings\n"
        "  unicorns:\n"
        "    - Sparkles\n"
    )
    catalog = AliasCatalog.load(path)
    assert catalog.classify("saplings") is EquivalencyKind.TREES
    assert catalog.classify("Sparkles") is None


@pytest.mark.parametrize(
    ("op", "factor", "expected"),
    [
        ("+", 2.0, 12.0),
        ("-", 2.0, 8.0),
        ("x", 2.0, 20.0),
        ("*", 2.0, 20.0),
        ("/", 2.0, 5.0),
        ("/", 0.0, None),
        ("^", 2.0, 10.0),
        (None, 2.0, 10.0),
        ("+", None, 10.0),
    ],
)
def test_apply_calc(op: str | None, factor: float | None, expected: float | None) -> None:
    assert apply_calc(10.0, op, factor) == expected


def test_per_unit_is_normalized_to_tonnes_before_transform() -> None:
    metric = EquivalencyMetric(label="Trees", value=500.0, unit="kg", calc_op="x", calc_factor=2)
    assert per_unit_tonnes(metric) == pytest.approx(1.0)
    assert per_unit_tonnes(EquivalencyMetric(label="Trees", value=None)) is None


def test_standard_equivalencies_divide_by_per_unit(converter: EquivalencyConverter) -> None:
    metrics = [
        EquivalencyMetric(label="Flights UK to Sydney", value=2.0, unit="tonnes"),
        EquivalencyMetric(label="Cars", value=249.0, unit="kg"),
        EquivalencyMetric(label="Homes", value=0.0, unit="t"),
    ]
    result = converter.compute(10.0, metrics)
    assert result.flights == pytest.approx(5.0)
    assert result.cars == pytest.approx(10.0 / 0.249)
    assert result.times_around_world == pytest.approx(result.cars / CAR_MILES_AROUND_WORLD)
    assert result.homes is None
    assert result.trees is None


def test_stadium_is_inverse_in_tonnes(converter: EquivalencyConverter) -> None:
    metrics = [EquivalencyMetric(label="Wembley Stadium could be filled", value=2.0, unit="t")]
    small = converter.compute(10.0, metrics).stadium
    large = converter.compute(20.0, metrics).stadium
    assert small == pytest.approx(STADIUM_CONSTANT / 20.0)
    assert large == pytest.approx(small / 2)


def test_earliest_listed_alias_wins_regardless_of_order(converter: EquivalencyConverter) -> None:
    generic = EquivalencyMetric(label="Trees", value=1.0, unit="t")
    canonical = EquivalencyMetric(label="Trees to offset", value=4.0, unit="t")
    assert converter.compute(8.0, [generic, canonical]).trees == pytest.approx(2.0)
    assert converter.compute(8.0, [canonical, generic]).trees == pytest.approx(2.0)


def test_same_label_twice_keeps_the_first(converter: EquivalencyConverter) -> None:
    metrics = [
        EquivalencyMetric(label="UK Homes Heated", value=2.0, unit="t"),
        EquivalencyMetric(label="uk homes heated", value=4.0, unit="t"),
    ]
    assert converter.compute(8.0, metrics).homes == pytest.approx(4.0)


def test_keyword_stadium_label_ranks_below_listed_aliases(
    converter: EquivalencyConverter,
) -> None:
    metrics = [
        EquivalencyMetric(label="Times we could fill the national stadium", value=10.0, unit="t"),
        EquivalencyMetric(label="Stadium", value=100.0, unit="t"),
    ]
    assert converter.compute(1.0, metrics).stadium == pytest.approx(11_391.0)


def test_zero_tonnes_produces_no_infinities(converter: EquivalencyConverter) -> None:
    metrics = [
        EquivalencyMetric(label="Cars", value=1.0, unit="t"),
        EquivalencyMetric(label="Stadium", value=1.0, unit="t"),
    ]
    result = converter.compute(0.0, metrics)
    assert result.cars == 0.0
    assert result.stadium is None
    assert result.times_around_world is None
    assert set(result.as_dict()) == {
        "flights",
        "cars",
        "homes",
        "trees",
        "people",
        "energy",
        "stadium",
        "times_around_world",
    }
