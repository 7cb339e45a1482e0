"""Pydantic schemas for menu items."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from portal.schemas.city import CityRef


class MenuWrite(BaseModel):
    city_id: int | None = None
    type_id: int | None = None
    item: str | None = None
    title: str | None = None
    text: str | None = None
    link: str | None = None

    @field_validator("item", "title", "text", "link")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v


class MenuRead(BaseModel):
    id: int
    city: CityRef
    menu_type: CityRef
    item: str
    title: str | None = None
    text: str | None = None
    link: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class MenuEnvelope(BaseModel):
    success: bool = True
    message: str
    menu: MenuRead


class MenuList(BaseModel):
    success: bool = True
    data: list[MenuRead]


class MenuDetail(BaseModel):
    success: bool = True
    data: MenuRead
