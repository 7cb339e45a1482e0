"""Response envelopes shared by several endpoint modules."""

from __future__ import annotations

from pydantic import BaseModel


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    success: bool = True
    status: str
    environment: str
    timestamp: str
    database: bool
