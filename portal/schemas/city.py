"""Pydantic schemas for cities and menu types (name + description records)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class CityRef(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class NamedRecordWrite(BaseModel):
    name: str | None = None
    description: str | None = None

    @field_validator("name", "description")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v


class CityWrite(NamedRecordWrite):
    pass


class MenuTypeWrite(NamedRecordWrite):
    pass


class CityRead(BaseModel):
    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class MenuTypeRead(CityRead):
    pass


class CityEnvelope(BaseModel):
    success: bool = True
    message: str
    city: CityRead


class MenuTypeEnvelope(BaseModel):
    success: bool = True
    message: str
    menu_type: MenuTypeRead


class CityList(BaseModel):
    success: bool = True
    data: list[CityRead]


class PublicCityList(BaseModel):
    success: bool = True
    data: list[CityRef]


class MenuTypeList(BaseModel):
    success: bool = True
    data: list[MenuTypeRead]


class MenuTypeDetail(BaseModel):
    success: bool = True
    data: MenuTypeRead
