"""Equivalency conversion.

Every equivalency is ``tonnes / per_unit_tonnes`` except the stadium one,
which answers "how many schemes of this size would fill the stadium" and is
therefore inverse in tonnes.

When several metrics map to one kind, the alias list decides: the metric
whose label is listed earliest for that kind wins, whatever order the
metrics arrive in. Keyword-matched stadium labels rank below every listed
alias. Ties (the same label twice, or two keyword matches) keep the first.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from enum import Enum
from importlib import resources as importlib_resources
from pathlib import Path
from typing import Any

import yaml

from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import ReportMetric
from carbonscheme.modules.units import to_tonnes

logger = get_logger(__name__)

STADIUM_CONSTANT = 1_139_100
CAR_MILES_AROUND_WORLD = 24_900

_APOSTROPHES_RE = re.compile(r"['’]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
# Rank of labels matched by keyword rather than by a listed alias
_KEYWORD_RANK = 1_000_000


class EquivalencyKind(str, Enum):
    FLIGHTS = "flights"
    CARS = "cars"
    HOMES = "homes"
    TREES = "trees"
    PEOPLE = "people"
    ENERGY = "energy"
    STADIUM = "stadium"


@dataclass(frozen=True)
class EquivalencyMetric:
    label: str
    value: float | None
    unit: str | None = None
    calc_op: str | None = None
    calc_factor: float | None = None

    @classmethod
    def from_model(cls, row: ReportMetric) -> EquivalencyMetric:
        return cls(
            label=row.label,
            value=row.value,
            unit=row.unit,
            calc_op=row.calc_op,
            calc_factor=row.calc_factor,
        )


@dataclass
class Equivalencies:
    flights: float | None = None
    cars: float | None = None
    homes: float | None = None
    trees: float | None = None
    people: float | None = None
    energy: float | None = None
    stadium: float | None = None
    times_around_world: float | None = None

    def as_dict(self) -> dict[str, float | None]:
        return asdict(self)


def normalize_label(label: str | None) -> str:
    text = _APOSTROPHES_RE.sub("", (label or "").lower())
    return _NON_ALNUM_RE.sub(" ", text).strip()


def apply_calc(value: float, op: str | None, factor: float | None) -> float | None:
    """Apply the optional linear transform configured on a metric.

    Unknown operators and a missing factor leave the value unchanged;
    division by zero yields ``None``.
    """
    if factor is None or not op:
        return value
    op = op.strip().lower()
    if op == "+":
        return value + factor
    if op == "-":
        return value - factor
    if op in ("x", "*"):
        return value * factor
    if op == "/":
        return value / factor if factor != 0 else None
    return value


def per_unit_tonnes(metric: EquivalencyMetric) -> float | None:
    if metric.value is None:
        return None
    return apply_calc(to_tonnes(metric.value, metric.unit), metric.calc_op, metric.calc_factor)


class AliasCatalog:
    """Maps normalized metric labels onto equivalency kinds.

    Usage::

        catalog = AliasCatalog.load()
        kind = catalog.classify("Return Flight To Sydney")
    """

    def __init__(self, aliases: Mapping[EquivalencyKind, Iterable[str]]) -> None:
        self._aliases: dict[str, tuple[EquivalencyKind, int]] = {}
        for kind, labels in aliases.items():
            for rank, label in enumerate(labels):
                # First kind to claim an alias keeps it.
                self._aliases.setdefault(normalize_label(label), (kind, rank))

    @classmethod
    def load(cls, yaml_path: str | Path | None = None) -> AliasCatalog:
        """Load from ``yaml_path`` or the bundled ``aliases.yaml``."""
        if yaml_path is not None:
            with open(yaml_path, encoding="utf-8") as fh:
                raw: dict[str, Any] = yaml.safe_load(fh) or {}
        else:
            ref = importlib_resources.files("carbonscheme.modules.equivalency").joinpath(
                "aliases.yaml"
            )
            raw = yaml.safe_load(ref.read_text(encoding="utf-8")) or {}

        aliases: dict[EquivalencyKind, list[str]] = {}
        for key, labels in (raw.get("kinds") or {}).items():
            try:
                kind = EquivalencyKind(str(key).lower())
            except ValueError:
                logger.warning("equivalency_alias_kind_unknown", kind=key)
                continue
            aliases[kind] = [str(label) for label in labels or []]

        catalog = cls(aliases)
        logger.info(
            "equivalency_aliases_loaded",
            aliases=len(catalog._aliases),
            version=raw.get("version", "unknown"),
        )
        return catalog

    def classify(self, label: str | None) -> EquivalencyKind | None:
        match = self.match(label)
        return match[0] if match is not None else None

    def match(self, label: str | None) -> tuple[EquivalencyKind, int] | None:
        """Kind and priority rank of ``label``; lower ranks win."""
        normalized = normalize_label(label)
        if not normalized:
            return None
        found = self._aliases.get(normalized)
        if found is not None:
            return found
        if "wembley" in normalized or ("stadium" in normalized and "fill" in normalized):
            return EquivalencyKind.STADIUM, _KEYWORD_RANK
        return None


class EquivalencyConverter:
    """Turn a CO2e tonnage into relatable counts.

    Each kind takes its denominator from the highest-priority metric that
    maps to it; see the module docstring for the ranking.
    """

    def __init__(self, catalog: AliasCatalog) -> None:
        self._catalog = catalog

    def compute(self, tonnes: float, metrics: Iterable[EquivalencyMetric]) -> Equivalencies:
        chosen: dict[EquivalencyKind, tuple[int, EquivalencyMetric]] = {}
        for metric in metrics:
            match = self._catalog.match(metric.label)
            if match is None:
                continue
            kind, rank = match
            current = chosen.get(kind)
            if current is None or rank < current[0]:
                chosen[kind] = (rank, metric)
        denominators = {kind: per_unit_tonnes(metric) for kind, (_, metric) in chosen.items()}

        values: dict[str, float | None] = {}
        for kind in EquivalencyKind:
            per_unit = denominators.get(kind)
            if kind is EquivalencyKind.STADIUM:
                values[kind.value] = stadium_count(tonnes, per_unit)
            else:
                values[kind.value] = standard_count(tonnes, per_unit)

        cars = values[EquivalencyKind.CARS.value]
        times_around_world = cars / CAR_MILES_AROUND_WORLD if cars and cars > 0 else None
        return Equivalencies(**values, times_around_world=times_around_world)


def standard_count(tonnes: float, per_unit: float | None) -> float | None:
    if per_unit is None or per_unit <= 0:
        return None
    return tonnes / per_unit


def stadium_count(tonnes: float, per_unit: float | None) -> float | None:
    if not per_unit or tonnes <= 0:
        return None
    return STADIUM_CONSTANT / (tonnes * per_unit)
