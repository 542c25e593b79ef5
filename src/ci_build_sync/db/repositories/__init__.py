"""Repository pattern implementation for database access."""

from .base import BaseRepository
from .build import BuildRepository

__all__ = [
    "BaseRepository",
    "BuildRepository",
]
