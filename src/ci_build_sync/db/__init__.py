"""Database module for CI Build Sync."""

from ci_build_sync.db.engine import (
    create_tables,
    dispose_engine,
    get_engine,
    get_session,
    get_session_factory,
)
from ci_build_sync.db.models import Base, Build
from ci_build_sync.db.repositories import BaseRepository, BuildRepository

__all__ = [
    # Models
    "Base",
    "Build",
    # Engine
    "create_tables",
    "dispose_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    # Repositories
    "BaseRepository",
    "BuildRepository",
]
