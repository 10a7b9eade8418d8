from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import aiosqlite

from ..anon.models import Record
from .base import BaseService

Notifier = Callable[["AuditEntry"], Awaitable[None]]


@dataclass(frozen=True)
class AuditEntry:
    id: int
    action: str
    actor_id: Optional[int]
    target: Optional[str]
    description: str
    created_at_ts: int
    details_json: str

    @property
    def details(self) -> dict[str, Any]:
        return json.loads(self.details_json)


class AuditLog(BaseService[AuditEntry]):
    """Append-only log of moderation actions on anonymous users.

    Writes are fire-and-forget: a failure is logged and swallowed so it never
    changes the outcome of the action being audited.
    """

    def __init__(self, sqlite_path: str, notifier: Optional[Notifier] = None) -> None:
        super().__init__(sqlite_path)
        self._notifier = notifier

    def set_notifier(self, notifier: Optional[Notifier]) -> None:
        self._notifier = notifier

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS anon_actions (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              action TEXT NOT NULL,
              actor_id INTEGER,
              target TEXT,
              description TEXT NOT NULL,
              created_at_ts INTEGER NOT NULL,
              details_json TEXT NOT NULL
            )
            """
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_anon_actions_target ON anon_actions(target, id)")

    def _from_row(self, row: aiosqlite.Row) -> AuditEntry:
        return AuditEntry(
            id=int(row["id"]),
            action=str(row["action"]),
            actor_id=(int(row["actor_id"]) if row["actor_id"] is not None else None),
            target=(str(row["target"]) if row["target"] is not None else None),
            description=str(row["description"]),
            created_at_ts=int(row["created_at_ts"]),
            details_json=str(row["details_json"]),
        )

    @property
    def _get_query(self) -> str:
        return "SELECT id, action, actor_id, target, description, created_at_ts, details_json FROM anon_actions WHERE id = ?"

    async def record(
        self,
        action: str,
        actor_id: Optional[int],
        description: str,
        related: Optional[Record] = None,
        *,
        target: Optional[str] = None,
    ) -> None:
        # The real identity behind a record stays out of the log; alias and message are enough to find it.
        details: dict[str, Any] = {}
        if related is not None:
            details = {
                "alias": related.alias,
                "channel_id": related.channel_id,
                "message_id": related.delivered_message_id,
            }
        try:
            async with aiosqlite.connect(self._path) as db:
                cur = await db.execute(
                    "INSERT INTO anon_actions (action, actor_id, target, description, created_at_ts, details_json) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        action,
                        actor_id,
                        target,
                        description,
                        int(time.time()),
                        json.dumps(details, separators=(",", ":"), ensure_ascii=False),
                    ),
                )
                await db.commit()
                entry_id = int(cur.lastrowid)
        except Exception:
            self._logger.exception("Failed to write audit entry %s for %s", action, target)
            return

        if self._notifier is None:
            return
        try:
            entry = await self.get(entry_id)
            if entry is not None:
                await self._notifier(entry)
        except Exception:
            self._logger.exception("Audit notifier failed for entry %d", entry_id)

    async def latest_actor(self, actions: tuple[str, ...], target: str) -> Optional[int]:
        if not actions:
            return None
        placeholders = ", ".join("?" for _ in actions)
        async with aiosqlite.connect(self._path) as db:
            async with db.execute(
                f"SELECT actor_id FROM anon_actions WHERE target = ? AND action IN ({placeholders}) ORDER BY id DESC LIMIT 1",
                (target, *actions),
            ) as cur:
                row = await cur.fetchone()
        if row is None or row[0] is None:
            return None
        return int(row[0])

    async def recent(self, limit: int = 20) -> list[AuditEntry]:
        limit = max(1, min(100, int(limit)))
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT id, action, actor_id, target, description, created_at_ts, details_json FROM anon_actions ORDER BY id DESC LIMIT ?",
                (limit,),
            ) as cur:
                rows = await cur.fetchall()
        return [self._from_row(r) for r in rows]
