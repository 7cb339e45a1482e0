"""
City-scoped visibility.

Administrators and global managers see everything. Everyone else is limited
to their assigned cities; an empty assignment list matches nothing rather
than falling back to an unfiltered query.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import ColumnElement, Select, false, or_

from portal.core.roles import Identity
from portal.models.announcement import Announcement

_S = TypeVar("_S", bound="Select[Any]")


def city_clause(identity: Identity, city_column: Any) -> ColumnElement[bool] | None:
    """Return the restricting clause, or ``None`` for full visibility."""
    if identity.is_elevated:
        return None
    if not identity.city_ids:
        return false()
    return city_column.in_(sorted(identity.city_ids))


def scope(identity: Identity, stmt: _S, city_column: Any) -> _S:
    clause = city_clause(identity, city_column)
    if clause is None:
        return stmt
    return stmt.where(clause)


def can_access_city(identity: Identity, city_id: int | None) -> bool:
    return identity.is_elevated or (city_id is not None and city_id in identity.city_ids)


def announcement_visibility(identity: Identity) -> ColumnElement[bool] | None:
    """Clause selecting the announcements ``identity`` may read."""
    if identity.is_elevated:
        return None
    if identity.city_ids:
        return or_(
            Announcement.city_id.in_(sorted(identity.city_ids)),
            Announcement.is_public.is_(True),
        )
    return or_(
        Announcement.created_by == identity.id,
        Announcement.is_public.is_(True),
    )


def can_read_announcement(identity: Identity, announcement: Announcement) -> bool:
    """Post-fetch counterpart of ``announcement_visibility``."""
    if identity.is_elevated or announcement.is_public:
        return True
    if identity.city_ids:
        return announcement.city_id in identity.city_ids
    return announcement.created_by == identity.id
