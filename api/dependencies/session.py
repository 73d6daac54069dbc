"""Per-tab session dependencies for FastAPI."""
import threading
from typing import Annotated, Iterable

from fastapi import Depends, Header, HTTPException, status

from api.database import SessionLocal
from api.services.attempt_client import AttemptApiClient
from api.services.attempt_service import AttemptService
from api.services.attempt_store import AttemptSessionStore, DatabaseSessionStorage
from api.utils.validation import validate_id

_services: dict[str, AttemptService] = {}
_services_lock = threading.Lock()
_client: AttemptApiClient | None = None


def get_session_id(
    x_session_id: Annotated[str | None, Header()] = None,
) -> str:
    """Get the browser-tab session id.

    Raises:
        HTTPException: 400 if the header is missing or malformed.
    """
    if not x_session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Session-Id header is required",
        )
    return validate_id("sessionId", x_session_id)


def get_api_client() -> AttemptApiClient:
    global _client
    if _client is None:
        _client = AttemptApiClient()
    return _client


def get_attempt_service(
    session_id: Annotated[str, Depends(get_session_id)],
    client: Annotated[AttemptApiClient, Depends(get_api_client)],
) -> AttemptService:
    """Attempt service of a tab session; created and restored on first use."""
    with _services_lock:
        service = _services.get(session_id)
        if service is None:
            store = AttemptSessionStore(DatabaseSessionStorage(SessionLocal, session_id))
            service = AttemptService(store, client)
            _services[session_id] = service
        return service


def reset_services() -> None:
    """Cancel pending saves and drop cached services (the stores stay persisted)."""
    with _services_lock:
        for service in _services.values():
            service.cancel_pending()
        _services.clear()


def drop_services(session_ids: Iterable[str]) -> None:
    """Forget cached services of sessions whose storage expired."""
    with _services_lock:
        for session_id in session_ids:
            service = _services.pop(session_id, None)
            if service is not None:
                service.cancel_pending()
