"""Pydantic schemas for login, tokens and password flows."""

from __future__ import annotations

from pydantic import BaseModel


class LoginRequest(BaseModel):
    login: str | None = None  # email or CPF
    password: str | None = None


class TokenResponse(BaseModel):
    token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class RecoverPasswordRequest(BaseModel):
    email: str | None = None


class RecoverPasswordConfirm(BaseModel):
    token: str
    password: str


class ResetPasswordRequest(BaseModel):
    user_id: int | None = None
    password: str | None = None


class AreaUser(BaseModel):
    id: int
    name: str
    email: str
    role: str


class AreaResponse(BaseModel):
    success: bool = True
    message: str
    user: AreaUser
