from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.entities.user import User


@dataclass(frozen=True, slots=True)
class AuthResult:
    user: User
    token: str


@dataclass(frozen=True, slots=True)
class Session:
    """Identity and credential, always set and cleared together."""

    user: User
    token: str


@dataclass(frozen=True, slots=True)
class RegistrationDTO:
    username: str
    email: str
    password: str
    full_name: str


@dataclass(frozen=True, slots=True)
class ProfileUpdateDTO:
    full_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
