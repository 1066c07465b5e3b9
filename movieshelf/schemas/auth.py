# movieshelf/schemas/auth.py

from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from movieshelf.schemas.base import CamelModel


# ──────────────── Register ────────────────
class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


# ──────────────── Login ────────────────
class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


# ──────────────── Responses ────────────────
class AuthUser(CamelModel):
    id: UUID
    email: str
    name: str


class AuthResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUser
