from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

import aiosqlite

T = TypeVar("T")


class BaseService(ABC, Generic[T]):
    """Base class for SQLite-backed stores. One connection per operation."""

    def __init__(self, sqlite_path: str) -> None:
        self._path = sqlite_path
        self._logger = logging.getLogger(f"masquerade.{self.__class__.__name__.lower()}")

    async def init(self) -> None:
        """Initialize the database schema."""
        async with aiosqlite.connect(self._path) as db:
            await self._create_tables(db)
            await db.commit()

    @abstractmethod
    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        """Create the necessary database tables."""

    @abstractmethod
    def _from_row(self, row: aiosqlite.Row) -> T:
        """Convert a database row to the service's data type."""

    @property
    @abstractmethod
    def _get_query(self) -> str:
        """SQL query for getting a row by its primary key."""

    async def get(self, key: Any) -> Optional[T]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(self._get_query, (key,)) as cur:
                row = await cur.fetchone()
        if row is None:
            return None
        return self._from_row(row)
