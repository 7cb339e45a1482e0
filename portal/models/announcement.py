"""
Announcement model — city-bound notices, optionally public.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from portal.db.base import Base


class Announcement(Base):
    __tablename__ = "announcements"
    __table_args__ = (Index("ix_announcements_city_public", "city_id", "is_public"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    title: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    message: str = Column(Text, nullable=False)  # type: ignore[assignment]
    background_color: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    text_color: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    icon: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    created_by: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_public: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]
    city_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=False
    )
