"""Database models."""
from api.models.db.session_storage import SessionStorageEntry

__all__ = ["SessionStorageEntry"]
