"""Plant/mix/product emission factor resolution."""

from carbonscheme.modules.factors.resolver import (
    FactorLevel,
    FactorResolver,
    FactorRow,
    ResolvedFactor,
)

__all__ = ["FactorLevel", "FactorResolver", "FactorRow", "ResolvedFactor"]
