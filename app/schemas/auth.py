# app/schemas/auth.py
import uuid

from pydantic import ConfigDict, EmailStr
from sqlmodel import SQLModel, Field


class Credentials(SQLModel):
    """
    Email/password pair for Supabase Auth sign-up and sign-in.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=6)


class AuthSession(SQLModel):
    """
    Tokens issued by Supabase Auth.

    `access_token` is None after sign-up when email confirmation is on.
    """

    user_id: uuid.UUID
    email: EmailStr
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None


class LogoutResponse(SQLModel):
    message: str
