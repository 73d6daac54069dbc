"""Service for cleanup operations."""
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from sqlalchemy import delete, func, select

from api.config import SESSION_CLEANUP_INTERVAL_SECONDS, SESSION_STORAGE_TTL_MINUTES
from api.database import SessionLocal
from api.models.db.session_storage import SessionStorageEntry

ExpiredCallback = Callable[[Iterable[str]], None]


def cleanup_expired_sessions(session_factory=SessionLocal, now: datetime | None = None) -> list[str]:
    """Remove storage of tab sessions idle for longer than the TTL.

    Returns the ids of the sessions whose storage was removed.
    """
    if SESSION_STORAGE_TTL_MINUTES <= 0:
        return []

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=SESSION_STORAGE_TTL_MINUTES)
    logger = logging.getLogger(__name__)

    try:
        with session_factory() as db:
            expired = list(
                db.execute(
                    select(SessionStorageEntry.session_id)
                    .group_by(SessionStorageEntry.session_id)
                    .having(func.max(SessionStorageEntry.updated_at) < cutoff)
                ).scalars()
            )
            if not expired:
                return []
            result = db.execute(
                delete(SessionStorageEntry)
                .where(SessionStorageEntry.session_id.in_(expired))
                .execution_options(synchronize_session=False)
            )
            db.commit()
            logger.info(
                f"Cleaned up {result.rowcount} session storage entries "
                f"of {len(expired)} expired session(s)"
            )
            return expired
    except Exception as e:
        logger.error(f"Failed to cleanup session storage: {e}")
        return []


def run_session_cleanup(
    on_expired: Optional[ExpiredCallback] = None,
    session_factory=SessionLocal,
    now: datetime | None = None,
) -> list[str]:
    """One cleanup pass; ``on_expired`` gets the removed session ids."""
    expired = cleanup_expired_sessions(session_factory, now=now)
    if expired and on_expired is not None:
        on_expired(expired)
    return expired


def schedule_session_cleanup(on_expired: Optional[ExpiredCallback] = None) -> None:
    """Schedule periodic cleanup of expired session storage."""

    def _worker() -> None:
        # Initial delay before first cleanup
        time.sleep(60)
        while True:
            run_session_cleanup(on_expired)
            time.sleep(SESSION_CLEANUP_INTERVAL_SECONDS)

    thread = threading.Thread(
        target=_worker,
        name="session_storage_cleanup",
        daemon=True,
    )
    thread.start()
