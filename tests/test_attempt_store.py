import json
import logging
from datetime import datetime, timedelta, timezone

from api.dependencies import session as session_deps
from api.models import AttemptRecord
from api.models.db import SessionStorageEntry
from api.services.attempt_service import AttemptService
from api.services.attempt_store import (
    AttemptSessionStore,
    DatabaseSessionStorage,
    MemorySessionStorage,
)
from api.services.autosave_service import AutoSaveScheduler
from api.services.cleanup_service import cleanup_expired_sessions, run_session_cleanup


def _record(attempt_payload: dict, attempt_id: str = "att-1") -> AttemptRecord:
    return AttemptRecord.model_validate({**attempt_payload, "attemptId": attempt_id})


def test_set_persists_under_prefixed_key(attempt_payload: dict) -> None:
    storage = MemorySessionStorage()
    store = AttemptSessionStore(storage)
    store.set(_record(attempt_payload))

    assert storage.keys() == ["attempt:att-1"]
    persisted = json.loads(storage.get_item("attempt:att-1"))
    assert persisted["attemptId"] == "att-1"
    assert persisted["paper"]["sections"][0]["id"] == "sec-1"


def test_new_store_restores_every_attempt(attempt_payload: dict) -> None:
    storage = MemorySessionStorage()
    first = AttemptSessionStore(storage)
    first.set(_record(attempt_payload, "att-1"))
    first.set(_record(attempt_payload, "att-2"))

    reloaded = AttemptSessionStore(storage)

    assert "att-1" in reloaded
    assert sorted(r.attemptId for r in reloaded) == ["att-1", "att-2"]
    assert reloaded.get("att-2").paper.title == "Reading Test 1"


def test_get_falls_back_to_storage(attempt_payload: dict) -> None:
    storage = MemorySessionStorage()
    store = AttemptSessionStore(storage)
    # written by another store instance after this one loaded
    storage.set_item("attempt:att-9", _record(attempt_payload, "att-9").model_dump_json())

    assert "att-9" not in store
    assert store.get("att-9").attemptId == "att-9"
    assert "att-9" in store
    assert store.get("missing") is None


def test_upsert_replaces_record(attempt_payload: dict) -> None:
    store = AttemptSessionStore(MemorySessionStorage())
    store.set(_record(attempt_payload))
    store.set(AttemptRecord.model_validate({**attempt_payload, "timeLeft": 10}))

    assert store.get("att-1").timeLeft == 10
    assert len(list(store)) == 1


def test_clear_one_and_all_keeps_foreign_keys(attempt_payload: dict) -> None:
    storage = MemorySessionStorage({"theme": "dark"})
    store = AttemptSessionStore(storage)
    store.set(_record(attempt_payload, "att-1"))
    store.set(_record(attempt_payload, "att-2"))

    store.clear("att-1")
    assert store.get("att-1") is None
    assert sorted(storage.keys()) == ["attempt:att-2", "theme"]

    store.clear()
    assert list(store) == []
    assert storage.keys() == ["theme"]


def test_unreadable_entries_are_skipped(attempt_payload: dict, caplog) -> None:
    storage = MemorySessionStorage(
        {
            "attempt:broken": "{not json",
            "attempt:no-id": json.dumps({"attemptId": "", "paper": {}}),
            "attempt:att-1": _record(attempt_payload).model_dump_json(),
        }
    )

    with caplog.at_level(logging.WARNING):
        store = AttemptSessionStore(storage)

    assert [r.attemptId for r in store] == ["att-1"]
    assert "unreadable attempt record" in caplog.text


def test_database_storage_is_partitioned_by_session(session_factory, attempt_payload: dict) -> None:
    tab_a = AttemptSessionStore(DatabaseSessionStorage(session_factory, "tab-a"))
    tab_b = AttemptSessionStore(DatabaseSessionStorage(session_factory, "tab-b"))

    tab_a.set(_record(attempt_payload, "att-1"))
    tab_a.set(AttemptRecord.model_validate({**attempt_payload, "timeLeft": 42}))

    assert tab_b.get("att-1") is None
    restored = AttemptSessionStore(DatabaseSessionStorage(session_factory, "tab-a"))
    assert restored.get("att-1").timeLeft == 42

    with session_factory() as db:
        assert db.query(SessionStorageEntry).count() == 1

    restored.clear()
    assert AttemptSessionStore(DatabaseSessionStorage(session_factory, "tab-a")).get("att-1") is None


def test_cleanup_removes_only_idle_sessions(session_factory) -> None:
    now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    with session_factory() as db:
        db.add_all(
            [
                SessionStorageEntry(
                    session_id="idle", key="attempt:a", value="{}",
                    updated_at=now - timedelta(days=2),
                ),
                SessionStorageEntry(
                    session_id="idle", key="attempt:b", value="{}",
                    updated_at=now - timedelta(days=1),
                ),
                SessionStorageEntry(
                    session_id="active", key="attempt:a", value="{}",
                    updated_at=now - timedelta(days=3),
                ),
                SessionStorageEntry(
                    session_id="active", key="attempt:b", value="{}",
                    updated_at=now - timedelta(minutes=5),
                ),
            ]
        )
        db.commit()

    assert cleanup_expired_sessions(session_factory, now=now) == ["idle"]

    with session_factory() as db:
        remaining = {e.session_id for e in db.query(SessionStorageEntry).all()}
    assert remaining == {"active"}


def test_expired_session_is_dropped_from_service_cache(
    session_factory, fake_client, attempt_payload: dict, monkeypatch
) -> None:
    monkeypatch.setattr(session_deps, "SessionLocal", session_factory)
    monkeypatch.setattr(session_deps, "_services", {})

    cached = session_deps.get_attempt_service("tab-1", fake_client)
    cached.start(attempt_payload)
    session_deps.get_attempt_service("tab-2", fake_client)
    assert session_deps.get_attempt_service("tab-1", fake_client) is cached

    later = datetime.now(timezone.utc) + timedelta(days=2)
    expired = run_session_cleanup(session_deps.drop_services, session_factory, now=later)

    assert expired == ["tab-1"]
    assert set(session_deps._services) == {"tab-2"}
    fresh = session_deps.get_attempt_service("tab-1", fake_client)
    assert fresh is not cached
    assert fresh.get("att-1") is None


def test_drop_services_cancels_pending_saves(fake_client, fake_timers, monkeypatch) -> None:
    service = AttemptService(
        AttemptSessionStore(MemorySessionStorage()),
        fake_client,
        lambda attempt_id: AutoSaveScheduler(attempt_id, fake_client.autosave, timer_factory=fake_timers),
    )
    service.scheduler("att-1").schedule({"q1": "river"}, {}.get)
    monkeypatch.setattr(session_deps, "_services", {"tab-1": service})

    session_deps.drop_services(["tab-1", "unknown"])

    assert session_deps._services == {}
    assert fake_timers.active == []
