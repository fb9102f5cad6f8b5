"""Pydantic schemas for User CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from app.models.user import ROLE_ADMIN, ROLE_EMPLOYEE

_VALID_ROLES = {ROLE_ADMIN, ROLE_EMPLOYEE}


class UserCreate(BaseModel):
    email: str
    password: str
    name: str
    role: str = ROLE_EMPLOYEE

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        v = v.upper()
        if v not in _VALID_ROLES:
            raise ValueError(f"Role must be one of: {sorted(_VALID_ROLES)}")
        return v

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        if len(v) > 200:
            raise ValueError("Name must not exceed 200 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must have at least 6 characters")
        return v


class UserRead(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}
