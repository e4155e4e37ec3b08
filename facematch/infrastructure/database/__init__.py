"""Database package for the SQL identity store."""
from .identity_store import SqlAlchemyIdentityStore
from .session import create_engine, create_session_factory, create_tables

__all__ = ["SqlAlchemyIdentityStore", "create_engine", "create_session_factory", "create_tables"]
