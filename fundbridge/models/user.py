"""User directory models."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

import sqlalchemy as sa
from pydantic import BaseModel
from sqlalchemy import Column, DateTime, String, Uuid
from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    STARTUP = "startup"
    INVESTOR = "investor"
    ADMIN = "admin"


class UserProfile(BaseModel):
    """The subset of a user record the core needs."""

    id: UUID
    role: UserRole
    name: str
    email: str | None = None
    domain: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(SQLModel, table=True):
    """ORM model for directory users."""

    __tablename__ = "users"
    __table_args__ = (sa.Index("ix_users_role", "role"),)

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    role: str = Field(sa_column=Column(String(length=32), nullable=False))
    name: str = Field(sa_column=Column(String(length=255), nullable=False))
    email: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    domain: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    @classmethod
    def from_profile(cls, profile: UserProfile) -> UserRecord:
        return cls(
            id=profile.id,
            role=profile.role.value,
            name=profile.name,
            email=profile.email,
            domain=profile.domain,
        )

    def to_profile(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            role=UserRole(self.role),
            name=self.name,
            email=self.email,
            domain=self.domain,
        )
