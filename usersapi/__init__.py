"""Users CRUD service."""

from __future__ import annotations

from typing import Any

from .config import Settings, resolve_database_path
from .database import Database
from .models import Found, NotFound, User


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the users API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "Found",
    "NotFound",
    "Settings",
    "User",
    "create_app",
    "resolve_database_path",
]
