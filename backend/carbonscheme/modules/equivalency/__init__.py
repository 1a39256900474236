"""CO2e equivalencies: translate tonnes into relatable counts."""

from carbonscheme.modules.equivalency.converter import (
    Equivalencies,
    EquivalencyConverter,
    EquivalencyKind,
    EquivalencyMetric,
)

__all__ = ["Equivalencies", "EquivalencyConverter", "EquivalencyKind", "EquivalencyMetric"]
