"""API route modules."""
from api.routes import attempts

__all__ = ["attempts"]
