"""
Database package for VirtuLab.

Simple database setup for storing practical completions.
"""

from .models import Base, LabCompletion
from .database import engine, SessionLocal, build_engine, init_db, get_session, check_db_connection
from .profile_store import SqlProfileStore

__all__ = [
    "Base",
    "LabCompletion",
    "engine",
    "SessionLocal",
    "build_engine",
    "init_db",
    "get_session",
    "check_db_connection",
    "SqlProfileStore"
]
