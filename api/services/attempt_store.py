"""
Keyed store of in-progress attempts, persisted per browser-tab session.

The store keeps records in memory and mirrors each one under
``<prefix><attemptId>`` in a session-scoped key/value storage so a reload
of the same tab resumes every attempt that was in progress.
"""
from __future__ import annotations

import logging
from typing import Iterator, Protocol

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from api.config import ATTEMPT_STORAGE_PREFIX
from api.models.attempts import AttemptRecord
from api.models.db.session_storage import SessionStorageEntry

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    """Minimal key/value interface of per-tab browser storage."""

    def keys(self) -> list[str]: ...

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemorySessionStorage:
    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def keys(self) -> list[str]:
        return list(self._items)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class DatabaseSessionStorage:
    """Session storage rows in SQL, partitioned by tab session id."""

    def __init__(self, session_factory: sessionmaker, session_id: str):
        self.session_factory = session_factory
        self.session_id = session_id

    def keys(self) -> list[str]:
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(SessionStorageEntry.key)
                    .where(SessionStorageEntry.session_id == self.session_id)
                    .order_by(SessionStorageEntry.id)
                ).scalars()
            )

    def get_item(self, key: str) -> str | None:
        with self.session_factory() as db:
            return db.execute(
                select(SessionStorageEntry.value).where(
                    SessionStorageEntry.session_id == self.session_id,
                    SessionStorageEntry.key == key,
                )
            ).scalar_one_or_none()

    def set_item(self, key: str, value: str) -> None:
        with self.session_factory() as db:
            entry = db.execute(
                select(SessionStorageEntry).where(
                    SessionStorageEntry.session_id == self.session_id,
                    SessionStorageEntry.key == key,
                )
            ).scalar_one_or_none()
            if entry is None:
                entry = SessionStorageEntry(session_id=self.session_id, key=key, value=value)
                db.add(entry)
            else:
                entry.value = value
            db.commit()

    def remove_item(self, key: str) -> None:
        with self.session_factory() as db:
            db.execute(
                delete(SessionStorageEntry).where(
                    SessionStorageEntry.session_id == self.session_id,
                    SessionStorageEntry.key == key,
                )
            )
            db.commit()


def _parse_record(raw: str | None) -> AttemptRecord | None:
    if not raw:
        return None
    try:
        return AttemptRecord.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Dropping unreadable attempt record: %s", exc.errors()[:1])
        return None


class AttemptSessionStore:
    def __init__(self, storage: SessionStorage, prefix: str = ATTEMPT_STORAGE_PREFIX):
        self.storage = storage
        self.prefix = prefix
        self._by_id: dict[str, AttemptRecord] = self._load_all()

    def _key(self, attempt_id: str) -> str:
        return f"{self.prefix}{attempt_id}"

    def _namespaced_keys(self) -> list[str]:
        return [k for k in self.storage.keys() if k.startswith(self.prefix)]

    def _load_all(self) -> dict[str, AttemptRecord]:
        loaded: dict[str, AttemptRecord] = {}
        try:
            keys = self._namespaced_keys()
            for key in keys:
                record = _parse_record(self.storage.get_item(key))
                if record is not None:
                    loaded[record.attemptId] = record
        except SQLAlchemyError as exc:
            logger.warning("Could not restore attempts from session storage: %s", exc)
        if loaded:
            logger.info("Restored %d attempt(s) from session storage", len(loaded))
        return loaded

    def __contains__(self, attempt_id: str) -> bool:
        return attempt_id in self._by_id

    def __iter__(self) -> Iterator[AttemptRecord]:
        return iter(list(self._by_id.values()))

    def set(self, record: AttemptRecord) -> None:
        """Upsert by attempt id and write the persisted copy."""
        self._by_id[record.attemptId] = record
        try:
            self.storage.set_item(self._key(record.attemptId), record.model_dump_json())
        except SQLAlchemyError as exc:
            logger.warning("Failed to persist attempt %s: %s", record.attemptId, exc)

    def get(self, attempt_id: str) -> AttemptRecord | None:
        record = self._by_id.get(attempt_id)
        if record is not None:
            return record
        try:
            record = _parse_record(self.storage.get_item(self._key(attempt_id)))
        except SQLAlchemyError as exc:
            logger.warning("Failed to read attempt %s: %s", attempt_id, exc)
            return None
        if record is None:
            return None
        self._by_id[record.attemptId] = record
        return record

    def clear(self, attempt_id: str | None = None) -> None:
        """Remove one attempt, or every attempt under this store's prefix."""
        try:
            if attempt_id is None:
                for key in self._namespaced_keys():
                    self.storage.remove_item(key)
            else:
                self.storage.remove_item(self._key(attempt_id))
        except SQLAlchemyError as exc:
            logger.warning("Failed to clear session storage: %s", exc)

        if attempt_id is None:
            self._by_id = {}
        else:
            self._by_id.pop(attempt_id, None)
