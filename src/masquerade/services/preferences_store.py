from __future__ import annotations

import aiosqlite

from ..constants import DEFAULT_SUPPRESSION_SALT
from ..errors import IntegrationFailure
from .base import BaseService
from .suppression_store import hash_identity


class PreferencesStore(BaseService[bool]):
    """Per-identity anon preferences, keyed by the same one-way hash as the suppression ledger."""

    def __init__(self, sqlite_path: str, salt: str = DEFAULT_SUPPRESSION_SALT) -> None:
        super().__init__(sqlite_path)
        self._salt = salt

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS anon_preferences (
              hashed TEXT PRIMARY KEY,
              direct_messages_disabled INTEGER NOT NULL DEFAULT 0
            )
            """
        )

    def _from_row(self, row: aiosqlite.Row) -> bool:
        return bool(row["direct_messages_disabled"])

    @property
    def _get_query(self) -> str:
        return "SELECT direct_messages_disabled FROM anon_preferences WHERE hashed = ?"

    async def direct_messages_disabled(self, real_id: int) -> bool:
        try:
            return bool(await self.get(hash_identity(real_id, self._salt)))
        except aiosqlite.Error as e:
            raise IntegrationFailure("direct_messages_disabled", e) from e

    async def set_direct_messages_disabled(self, real_id: int, disabled: bool) -> None:
        try:
            async with aiosqlite.connect(self._path) as db:
                await db.execute(
                    """
                    INSERT INTO anon_preferences (hashed, direct_messages_disabled) VALUES (?, ?)
                    ON CONFLICT(hashed) DO UPDATE SET direct_messages_disabled = excluded.direct_messages_disabled
                    """,
                    (hash_identity(real_id, self._salt), 1 if disabled else 0),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise IntegrationFailure("set_direct_messages_disabled", e) from e
