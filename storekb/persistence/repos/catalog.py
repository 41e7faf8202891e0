from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.domain.models import Category, Product, StoreSettings


async def list_products(
    session: AsyncSession, tenant_id: str, *, active: bool = True, limit: int = 200
) -> list[Product]:
    # Most recently updated first so bounded runs pick up fresh edits.
    result = await session.execute(
        select(Product)
        .where(Product.tenant_id == tenant_id, Product.is_active.is_(active))
        .order_by(Product.updated_at.desc(), Product.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_categories(
    session: AsyncSession, tenant_id: str, *, active: bool = True, limit: int = 200
) -> list[Category]:
    result = await session.execute(
        select(Category)
        .where(Category.tenant_id == tenant_id, Category.is_active.is_(active))
        .order_by(Category.updated_at.desc(), Category.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_store_settings(session: AsyncSession, tenant_id: str) -> StoreSettings | None:
    result = await session.execute(select(StoreSettings).where(StoreSettings.tenant_id == tenant_id))
    return result.scalar_one_or_none()
