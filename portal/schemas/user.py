"""Pydantic schemas for User CRUD and account self-service."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, field_validator

from portal.core.roles import Role
from portal.schemas.city import CityRef

_CPF_RE = re.compile(r"^\d{11}$")


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


def _normalise_cpf(v: str) -> str:
    v = re.sub(r"\D", "", v)
    if not _CPF_RE.match(v):
        raise ValueError("CPF must contain exactly 11 digits")
    return v


def _require_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Must not be empty")
    return v


class UserCreate(BaseModel):
    name: str
    email: str
    password: str
    cpf: str
    role: Role = Role.USER
    cities: list[int] = []
    address: str | None = None
    phone: str | None = None
    photo: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _require_text(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("cpf")
    @classmethod
    def _cpf(cls, v: str) -> str:
        return _normalise_cpf(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    cpf: str | None = None
    role: Role | None = None
    cities: list[int] | None = None
    address: str | None = None
    phone: str | None = None
    photo: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return _require_text(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v) if v is not None else v

    @field_validator("cpf")
    @classmethod
    def _cpf(cls, v: str | None) -> str | None:
        return _normalise_cpf(v) if v is not None else v


class SelfUpdate(BaseModel):
    """Fields a user may change on their own account."""

    name: str | None = None
    email: str | None = None
    address: str | None = None
    phone: str | None = None
    photo: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return _require_text(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v) if v is not None else v


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    cpf: str
    role: str
    cities: list[CityRef] = []
    address: str | None = None
    phone: str | None = None
    photo: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    data: UserRead


class UserTokenResponse(BaseModel):
    success: bool = True
    user: UserRead
    token: str


class UserList(BaseModel):
    success: bool = True
    data: list[UserRead]
