"""Utility modules."""
from api.utils.validation import validate_id

__all__ = ["validate_id"]
