from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import aiosqlite

from ..errors import IntegrationFailure
from .jobs_store import JobsStore
from .stats import RuntimeStats

log = logging.getLogger("masquerade.scheduler")

EventHandler = Callable[[str, str], Awaitable[None]]


class JobScheduler:
    """Persistent delayed events.

    Jobs survive restarts; anything that came due while the bot was offline
    fires on the first tick. A job is deleted only after its handler returns,
    so a failing handler is retried on the next tick.
    """

    def __init__(self, store: JobsStore, stats: RuntimeStats, poll_seconds: int = 15) -> None:
        self._store = store
        self._stats = stats
        self._poll_seconds = max(1, int(poll_seconds))
        self._handlers: dict[str, EventHandler] = {}
        self._runner: Optional[asyncio.Task[None]] = None

    def register(self, namespace: str, handler: EventHandler) -> None:
        self._handlers[namespace] = handler

    async def schedule_after(self, namespace: str, when_ts: int, event: str, payload: str) -> int:
        try:
            job_id = await self._store.add(namespace, int(when_ts), event, payload)
        except aiosqlite.Error as e:
            raise IntegrationFailure("schedule_after", e) from e
        log.info("Scheduled job %d: %s/%s at %d", job_id, namespace, event, int(when_ts))
        return job_id

    async def cancel_by_content(self, event: str, payload: str) -> int:
        try:
            removed = await self._store.delete_by_content(event, payload)
        except aiosqlite.Error as e:
            raise IntegrationFailure("cancel_by_content", e) from e
        if removed:
            log.info("Cancelled %d job(s) for %s", removed, event)
        return removed

    async def run_due(self, now_ts: Optional[int] = None) -> int:
        now_ts = int(time.time()) if now_ts is None else int(now_ts)
        fired = 0
        for job in await self._store.due(now_ts):
            handler = self._handlers.get(job.namespace)
            if handler is None:
                log.warning("No handler registered for job %d in namespace %s", job.id, job.namespace)
                continue
            try:
                await handler(job.event, job.payload)
            except Exception:
                self._stats.jobs_failed += 1
                log.exception("Job %d for %s with event %s failed to fire", job.id, job.namespace, job.event)
                continue
            await self._store.delete(job.id)
            self._stats.jobs_fired += 1
            fired += 1
        return fired

    def start(self) -> None:
        if self._runner and not self._runner.done():
            return
        self._runner = asyncio.create_task(self._loop(), name="masquerade-scheduler")
        log.info("Scheduler started (poll_seconds=%s)", self._poll_seconds)

    async def stop(self) -> None:
        if self._runner:
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
            self._runner = None
        log.info("Scheduler stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_due()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Scheduler tick failed")
            await asyncio.sleep(self._poll_seconds)
