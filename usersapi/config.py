"""Configuration management for the users service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8081
DEFAULT_DATABASE_NAME = "users"


def resolve_database_path(env_value: Optional[str], database_name: Optional[str] = None) -> Path:
    """Resolve the on-disk path for the users database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    name = (database_name or "").strip() or DEFAULT_DATABASE_NAME
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / f"{name}.sqlite3").resolve(strict=False)


def _parse_port(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_PORT
    try:
        port = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"PORT must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ValueError(f"PORT must be between 1 and 65535, got {port}")
    return port


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def _parse_log_level(raw: Optional[str]) -> str:
    level = (raw or "").strip().upper() or "INFO"
    level = _LOG_LEVEL_ALIASES.get(level, level)
    if level not in _LOG_LEVELS:
        raise ValueError(
            f"LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}, got {raw!r}"
        )
    return level


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the process environment."""

    database_path: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    environment: str = "production"
    log_level: str = "INFO"

    @property
    def development(self) -> bool:
        return self.environment == "development"

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "Settings":
        """Create :class:`Settings` from ``os.environ`` or the supplied mapping."""
        env = os.environ if environ is None else environ

        return Settings(
            database_path=resolve_database_path(env.get("USERS_DB_PATH"), env.get("DATABASE")),
            host=(env.get("HOST") or DEFAULT_HOST).strip() or DEFAULT_HOST,
            port=_parse_port(env.get("PORT")),
            environment=(env.get("USERS_ENV") or "production").strip().lower(),
            log_level=_parse_log_level(env.get("LOG_LEVEL")),
        )


__all__ = ["DEFAULT_PORT", "Settings", "resolve_database_path"]
