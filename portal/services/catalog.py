"""
Lookups shared by the name-keyed catalogues (cities and menu types).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def name_taken(
    db: AsyncSession, model: Any, name: str, *, exclude_id: int | None = None
) -> bool:
    """True when another ``model`` row already uses ``name`` (case-insensitive)."""
    stmt = select(model.id).where(func.lower(model.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None
