"""Contest backend application package."""

# Re-export the common database helpers for convenience.
from .database import Base, get_db  # noqa: F401

__all__ = ["Base", "get_db"]
