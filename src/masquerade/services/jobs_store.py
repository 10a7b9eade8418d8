from __future__ import annotations

from dataclasses import dataclass

import aiosqlite

from .base import BaseService


@dataclass(frozen=True)
class ScheduledJob:
    id: int
    namespace: str
    due_ts: int
    event: str
    payload: str


class JobsStore(BaseService[ScheduledJob]):
    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS scheduled_jobs (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              namespace TEXT NOT NULL,
              due_ts INTEGER NOT NULL,
              event TEXT NOT NULL,
              payload TEXT NOT NULL
            )
            """
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_scheduled_jobs_due ON scheduled_jobs(due_ts)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_scheduled_jobs_content ON scheduled_jobs(event, payload)")

    def _from_row(self, row: aiosqlite.Row) -> ScheduledJob:
        return ScheduledJob(
            id=int(row["id"]),
            namespace=str(row["namespace"]),
            due_ts=int(row["due_ts"]),
            event=str(row["event"]),
            payload=str(row["payload"]),
        )

    @property
    def _get_query(self) -> str:
        return "SELECT id, namespace, due_ts, event, payload FROM scheduled_jobs WHERE id = ?"

    async def add(self, namespace: str, due_ts: int, event: str, payload: str) -> int:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                "INSERT INTO scheduled_jobs (namespace, due_ts, event, payload) VALUES (?, ?, ?, ?)",
                (namespace, int(due_ts), event, payload),
            )
            await db.commit()
            return int(cur.lastrowid)

    async def due(self, now_ts: int, limit: int = 50) -> list[ScheduledJob]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT id, namespace, due_ts, event, payload FROM scheduled_jobs WHERE due_ts <= ? ORDER BY due_ts ASC, id ASC LIMIT ?",
                (int(now_ts), int(limit)),
            ) as cur:
                rows = await cur.fetchall()
        return [self._from_row(r) for r in rows]

    async def delete(self, job_id: int) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute("DELETE FROM scheduled_jobs WHERE id = ?", (int(job_id),))
            await db.commit()

    async def delete_by_content(self, event: str, payload: str) -> int:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute("DELETE FROM scheduled_jobs WHERE event = ? AND payload = ?", (event, payload))
            await db.commit()
            return int(cur.rowcount)
