"""User directory lookups."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from threading import Lock
from typing import Protocol
from uuid import UUID

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from fundbridge.core import database
from fundbridge.core.database import session_scope
from fundbridge.models.user import UserProfile, UserRecord
from fundbridge.services.errors import PersistenceError

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    def get(self, user_id: UUID) -> UserProfile | None:
        ...

    def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        ...

    def add(self, profile: UserProfile) -> UserProfile:
        ...


class InMemoryUserDirectory(UserDirectory):
    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._profiles: dict[UUID, UserProfile] = {profile.id: profile for profile in profiles}
        self._lock = Lock()

    def get(self, user_id: UUID) -> UserProfile | None:
        with self._lock:
            return self._profiles.get(user_id)

    def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        with self._lock:
            return {uid: self._profiles[uid] for uid in set(user_ids) if uid in self._profiles}

    def add(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            self._profiles[profile.id] = profile
        return profile


class SqlUserDirectory(UserDirectory):
    """Reads users from the ``users`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, user_id: UUID) -> UserProfile | None:
        try:
            with session_scope(self._engine) as session:
                record = session.get(UserRecord, user_id)
                return record.to_profile() if record else None
        except SQLAlchemyError as exc:
            logger.exception("users.persistence.error", extra={"user_id": str(user_id)})
            raise PersistenceError("Failed to load user.") from exc

    def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        try:
            with session_scope(self._engine) as session:
                records = session.exec(select(UserRecord).where(UserRecord.id.in_(ids))).all()
                return {record.id: record.to_profile() for record in records}
        except SQLAlchemyError as exc:
            logger.exception("users.persistence.error", extra={"count": len(ids)})
            raise PersistenceError("Failed to load users.") from exc

    def add(self, profile: UserProfile) -> UserProfile:
        try:
            with session_scope(self._engine) as session:
                session.merge(UserRecord.from_profile(profile))
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("users.persistence.error", extra={"user_id": str(profile.id)})
            raise PersistenceError("Failed to save user.") from exc
        return profile


def build_user_directory(engine: Engine | None = None) -> UserDirectory:
    resolved = engine or database.init_database()
    if resolved is None:
        logger.info("users.directory.initialized", extra={"backend": "memory"})
        return InMemoryUserDirectory()
    logger.info("users.directory.initialized", extra={"backend": resolved.dialect.name})
    return SqlUserDirectory(resolved)


_DIRECTORY_INSTANCE: UserDirectory | None = None


def get_user_directory() -> UserDirectory:
    """Singleton accessor used by API routes."""
    global _DIRECTORY_INSTANCE  # noqa: PLW0603
    if _DIRECTORY_INSTANCE is None:
        _DIRECTORY_INSTANCE = build_user_directory()
    return _DIRECTORY_INSTANCE
