"""Pydantic schemas for announcements.

``cidadeId`` and ``isPublic`` keep the wire names the portal front-end uses.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnnouncementCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    message: str
    background_color: str
    text_color: str
    icon: str
    date: datetime | None = None
    is_public: bool = Field(default=False, alias="isPublic")
    city_id: int = Field(alias="cidadeId")

    @field_validator("title", "message", "background_color", "text_color", "icon")
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("All fields are required")
        return v


class AnnouncementUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    message: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    icon: str | None = None
    date: datetime | None = None
    is_public: bool | None = Field(default=None, alias="isPublic")
    city_id: int | None = Field(default=None, alias="cidadeId")


class AnnouncementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    title: str
    message: str
    background_color: str
    text_color: str
    icon: str
    date: datetime | None = None
    created_at: datetime | None = None
    created_by: int
    is_public: bool = Field(alias="isPublic")
    city_id: int = Field(alias="cidadeId")


class AnnouncementEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    data: AnnouncementRead


class AnnouncementList(BaseModel):
    success: bool = True
    data: list[AnnouncementRead]
