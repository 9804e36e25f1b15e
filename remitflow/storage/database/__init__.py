"""Database layer."""

from .base import Base, get_db, get_session, init_db

__all__ = ["Base", "get_db", "get_session", "init_db"]
