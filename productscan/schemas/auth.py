"""
==============================================================================
Authentication Schemas Module
==============================================================================

Request and response schemas for authentication endpoints.

==============================================================================
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LoginRequest(BaseModel):
    """Login credentials."""
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.lower().strip()


class RegisterRequest(BaseModel):
    """Self-service account creation."""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.lower().strip()
        if not v.replace("_", "").replace("-", "").replace(".", "").isalnum():
            raise ValueError(
                "Username can only contain letters, numbers, dots, underscores, and hyphens"
            )
        if not v[0].isalpha():
            raise ValueError("Username must start with a letter")
        return v


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    """Public user details."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    is_active: bool
    created_at: datetime


class TokenResponse(BaseModel):
    """Token response after authentication."""
    success: bool = Field(default=True)
    access_token: str
    refresh_token: str
    token_type: str = Field(default="bearer")
    expires_in: int
    user: UserInfo


class CurrentUserResponse(BaseModel):
    success: bool = Field(default=True)
    user: UserInfo
