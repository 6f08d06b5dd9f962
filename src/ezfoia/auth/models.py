"""Authentication data models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AuthenticatedUser(BaseModel):
    """The signed-in user as seen by the request builder."""

    user_id: str
    email: str
    display_name: str = ""
    is_admin: bool = False


class AuthCredentials(BaseModel):
    username: str
    code: str


class AuthResult(BaseModel):
    success: bool
    token: str | None = None
    user: AuthenticatedUser | None = None
    error: str | None = None


class TokenValidation(BaseModel):
    valid: bool
    user: AuthenticatedUser | None = None
    expires_at: datetime | None = None
