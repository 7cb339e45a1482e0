"""
Account helpers shared by registration and user management.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.city import City
from portal.models.user import User


async def find_conflicts(
    db: AsyncSession,
    email: str | None,
    cpf: str | None,
    *,
    exclude_id: int | None = None,
) -> dict[str, bool]:
    """Report which of ``email`` / ``cpf`` already belong to another user."""
    clauses = []
    if email:
        clauses.append(User.email == email)
    if cpf:
        clauses.append(User.cpf == cpf)
    if not clauses:
        return {"email": False, "cpf": False}

    stmt = select(User.email, User.cpf).where(or_(*clauses))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    rows = (await db.execute(stmt)).all()
    return {
        "email": bool(email) and any(row.email == email for row in rows),
        "cpf": bool(cpf) and any(row.cpf == cpf for row in rows),
    }


async def resolve_cities(
    db: AsyncSession, city_ids: Iterable[int]
) -> tuple[list[City], set[int]]:
    """Load the cities for ``city_ids``; also return the ids that do not exist."""
    wanted = set(city_ids)
    if not wanted:
        return [], set()
    result = await db.execute(select(City).where(City.id.in_(sorted(wanted))))
    cities = list(result.scalars().all())
    return cities, wanted - {c.id for c in cities}
