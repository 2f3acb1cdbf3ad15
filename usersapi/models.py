"""Domain models for the users service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class User:
    """Represents a row of the ``users`` table."""

    id: int
    first_name: str
    last_name: str
    created: datetime


@dataclass(frozen=True)
class Found(Generic[T]):
    """A lookup or write that matched a row."""

    value: T


@dataclass(frozen=True)
class NotFound:
    """A lookup or write that matched no row."""


Result = Union[Found[T], NotFound]


__all__ = ["Found", "NotFound", "Result", "User"]
