"""
Pydantic models for request / response validation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ---- Auth ----

class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class IdentityResponse(BaseModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    role: str


class AuthResponse(BaseModel):
    status: str = "ok"
    user: IdentityResponse


# ---- Users ----

class UserProfile(BaseModel):
    """Outward view of a user record. There is deliberately no password field."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    role: str
    account_status: str
    is_email_verified: bool
    created_at: datetime
    updated_at: datetime


class UserUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=320)


class MessageResponse(BaseModel):
    status: str = "ok"
    message: str


# ---- Health ----

class HealthResponse(BaseModel):
    status: str
    database: bool
