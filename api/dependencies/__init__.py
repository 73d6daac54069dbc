"""FastAPI dependencies."""
from api.dependencies.session import drop_services, get_attempt_service, get_session_id

__all__ = ["drop_services", "get_attempt_service", "get_session_id"]
