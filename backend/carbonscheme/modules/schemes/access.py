"""Scheme lookups shared by the services that edit scheme state."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonscheme.core.errors import NotFoundError, SchemeLockedError
from carbonscheme.db.models import (
    InstallationCategory,
    Scheme,
    SchemeInstallationItem,
    SchemeProduct,
)


async def load_scheme(session: AsyncSession, scheme_id: UUID) -> Scheme:
    scheme = await session.get(Scheme, scheme_id)
    if scheme is None:
        raise NotFoundError(f"Scheme {scheme_id} not found")
    return scheme


async def load_editable_scheme(session: AsyncSession, scheme_id: UUID) -> Scheme:
    """Load a scheme whose editable state is about to change."""
    scheme = await load_scheme(session, scheme_id)
    if scheme.is_locked:
        raise SchemeLockedError(f"Scheme {scheme.name} is locked")
    return scheme


async def load_products(session: AsyncSession, scheme_id: UUID) -> list[SchemeProduct]:
    result = await session.execute(
        select(SchemeProduct)
        .where(SchemeProduct.scheme_id == scheme_id)
        .order_by(SchemeProduct.created_at, SchemeProduct.id)
    )
    return list(result.scalars().all())


async def load_installation_items(
    session: AsyncSession,
    scheme_id: UUID,
    category: InstallationCategory | None = None,
) -> list[SchemeInstallationItem]:
    stmt = (
        select(SchemeInstallationItem)
        .where(SchemeInstallationItem.scheme_id == scheme_id)
        .order_by(SchemeInstallationItem.created_at, SchemeInstallationItem.id)
    )
    if category is not None:
        stmt = stmt.where(SchemeInstallationItem.category == category)
    result = await session.execute(stmt)
    return list(result.scalars().all())
