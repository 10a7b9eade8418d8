from __future__ import annotations

import base64
import hashlib
import time
import uuid
from typing import Optional

import aiosqlite

from ..anon.models import SuppressionRecord
from ..constants import DEFAULT_SUPPRESSION_SALT
from ..errors import AlreadySuppressed, IntegrationFailure, SuppressionNotFound
from .base import BaseService


def hash_identity(real_id: int, salt: str) -> str:
    """Salted one-way hash of a real identity. Never store anything reversible here."""
    digest = hashlib.sha256(f"{int(real_id)}{salt}".encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


class SuppressionLedger(BaseService[SuppressionRecord]):
    """Blacklisted and timed-out identities, keyed by salted hash.

    The ledger can answer "is this person suppressed" but not "who is behind
    suppression X"; that comes from the audit log.
    """

    def __init__(self, sqlite_path: str, salt: str = DEFAULT_SUPPRESSION_SALT) -> None:
        super().__init__(sqlite_path)
        self._salt = salt

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS anon_suppressions (
              suppression_id TEXT PRIMARY KEY,
              hashed TEXT NOT NULL UNIQUE,
              expires_at_ts INTEGER NULL,
              created_at_ts INTEGER NOT NULL
            )
            """
        )

    def _from_row(self, row: aiosqlite.Row) -> SuppressionRecord:
        return SuppressionRecord(
            suppression_id=str(row["suppression_id"]),
            hashed=str(row["hashed"]),
            expires_at=(int(row["expires_at_ts"]) if row["expires_at_ts"] is not None else None),
            created_at=int(row["created_at_ts"]),
        )

    @property
    def _get_query(self) -> str:
        return "SELECT suppression_id, hashed, expires_at_ts, created_at_ts FROM anon_suppressions WHERE suppression_id = ?"

    def hash(self, real_id: int) -> str:
        return hash_identity(real_id, self._salt)

    async def is_suppressed(self, real_id: int) -> Optional[SuppressionRecord]:
        try:
            async with aiosqlite.connect(self._path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(
                    "SELECT suppression_id, hashed, expires_at_ts, created_at_ts FROM anon_suppressions WHERE hashed = ?",
                    (self.hash(real_id),),
                ) as cur:
                    row = await cur.fetchone()
        except aiosqlite.Error as e:
            raise IntegrationFailure("is_suppressed", e) from e
        return self._from_row(row) if row is not None else None

    async def suppress(self, real_id: int, expires_at: Optional[int] = None) -> str:
        if await self.is_suppressed(real_id) is not None:
            raise AlreadySuppressed()
        suppression_id = str(uuid.uuid4())
        try:
            async with aiosqlite.connect(self._path) as db:
                await db.execute(
                    "INSERT INTO anon_suppressions (suppression_id, hashed, expires_at_ts, created_at_ts) VALUES (?, ?, ?, ?)",
                    (suppression_id, self.hash(real_id), (int(expires_at) if expires_at is not None else None), int(time.time())),
                )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            # Lost a race with another suppress for the same identity.
            raise AlreadySuppressed() from e
        except aiosqlite.Error as e:
            raise IntegrationFailure("suppress", e) from e
        self._logger.info("Suppression %s recorded (expires_at=%s)", suppression_id, expires_at)
        return suppression_id

    async def unsuppress(self, suppression_id: str) -> None:
        try:
            async with aiosqlite.connect(self._path) as db:
                cur = await db.execute("DELETE FROM anon_suppressions WHERE suppression_id = ?", (suppression_id,))
                await db.commit()
                removed = cur.rowcount
        except aiosqlite.Error as e:
            raise IntegrationFailure("unsuppress", e) from e
        if removed == 0:
            raise SuppressionNotFound(suppression_id)
        self._logger.info("Suppression %s lifted", suppression_id)

    async def exists_by_id(self, suppression_id: str) -> bool:
        try:
            return await self.get(suppression_id) is not None
        except aiosqlite.Error as e:
            raise IntegrationFailure("exists_by_id", e) from e
