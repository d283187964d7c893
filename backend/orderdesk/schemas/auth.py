"""
OrderDesk Backend — Auth Request/Response Schemas
===================================================

What:  Pydantic models for registration, login, password reset and the dashboard.
How:   Presence checks only (non-empty strings); no email format validation.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """Body of POST /register and POST /login."""
    email: str = Field(min_length=1, description="Account email, used as the login key")
    password: str = Field(min_length=1, description="Plaintext password (hashed before storage)")


class PasswordUpdate(BaseModel):
    """Body of PATCH /update-password."""
    password: str = Field(min_length=1, description="New password")


class RegisterResponse(BaseModel):
    message: str = "User registered"
    email: str


class TokenResponse(BaseModel):
    token: str = Field(description="Bearer token; send as 'Authorization: Bearer <token>'")


class MessageResponse(BaseModel):
    message: str


class DashboardResponse(BaseModel):
    message: str = "Welcome to the dashboard"
    user: Dict[str, Any] = Field(description="Decoded token claims of the caller")
