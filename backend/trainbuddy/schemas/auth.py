"""Pydantic schemas for sign-up / sign-in."""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from trainbuddy.schemas.user import UserProfile


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    display_name: str = Field(min_length=1, max_length=100)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class FederatedAssertion(BaseModel):
    """Claims handed back by the federated provider after its redirect."""

    subject: str = Field(min_length=1)
    email: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: UserProfile
    degraded: bool = False


class AuthErrorOut(BaseModel):
    error: Optional[str] = None
