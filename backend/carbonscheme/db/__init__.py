"""Database package."""

from carbonscheme.db.models import (
    Base,
    CalculationMode,
    DeliveryType,
    DistanceUnit,
    InstallationCategory,
    Scheme,
    SchemeA5UsageEntry,
    SchemeInstallationItem,
    SchemeProduct,
    SchemeScenario,
)
from carbonscheme.db.session import DbSession, close_db, get_db_session, init_db

__all__ = [
    "DbSession",
    "get_db_session",
    "init_db",
    "close_db",
    "Base",
    "CalculationMode",
    "DeliveryType",
    "DistanceUnit",
    "InstallationCategory",
    "Scheme",
    "SchemeProduct",
    "SchemeInstallationItem",
    "SchemeA5UsageEntry",
    "SchemeScenario",
]
