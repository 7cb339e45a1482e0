"""
Menu & MenuType models — per-city navigation entries grouped by type.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from portal.db.base import Base


class MenuType(Base):
    __tablename__ = "menu_types"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class Menu(Base):
    __tablename__ = "menus"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    city_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("menu_types.id", ondelete="CASCADE"), nullable=False
    )
    item: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    title: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    text: str | None = Column(String(2000), nullable=True)  # type: ignore[assignment]
    link: str = Column(String(1000), nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    city = relationship("City", lazy="selectin")
    menu_type = relationship("MenuType", lazy="selectin")
