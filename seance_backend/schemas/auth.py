from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)


class UserSummary(BaseModel):
    id: str
    email: str


class CurrentUser(UserSummary):
    groups: list[str] = Field(default_factory=list)


class AuthResponse(BaseModel):
    success: bool
    token: str
    user: UserSummary


class LogoutResponse(BaseModel):
    success: bool
