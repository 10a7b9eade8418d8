from __future__ import annotations

import pytest

from masquerade.errors import IntegrationFailure
from masquerade.services.jobs_store import JobsStore
from masquerade.services.scheduler import JobScheduler
from masquerade.services.stats import RuntimeStats


async def _scheduler(db_path: str) -> tuple[JobScheduler, JobsStore, RuntimeStats]:
    store = JobsStore(db_path)
    await store.init()
    stats = RuntimeStats()
    return JobScheduler(store, stats), store, stats


@pytest.mark.asyncio
async def test_job_fires_once_when_due(db_path):
    scheduler, store, stats = await _scheduler(db_path)
    fired: list[tuple[str, str]] = []

    async def handler(event: str, payload: str) -> None:
        fired.append((event, payload))

    scheduler.register("anon", handler)
    await scheduler.schedule_after("anon", 1_000, "ANON_TIMEOUT_END", "abc")

    assert await scheduler.run_due(999) == 0
    assert fired == []

    assert await scheduler.run_due(1_000) == 1
    assert fired == [("ANON_TIMEOUT_END", "abc")]
    assert await store.due(10_000) == []
    assert stats.jobs_fired == 1

    assert await scheduler.run_due(2_000) == 0


@pytest.mark.asyncio
async def test_failing_handler_keeps_the_job(db_path):
    scheduler, store, stats = await _scheduler(db_path)
    calls = 0

    async def handler(event: str, payload: str) -> None:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")

    scheduler.register("anon", handler)
    await scheduler.schedule_after("anon", 1_000, "ANON_TIMEOUT_END", "abc")

    assert await scheduler.run_due(1_000) == 0
    assert stats.jobs_failed == 1
    assert len(await store.due(1_000)) == 1

    assert await scheduler.run_due(1_015) == 1
    assert await store.due(1_015) == []


@pytest.mark.asyncio
async def test_unregistered_namespace_is_left_alone(db_path):
    scheduler, store, _ = await _scheduler(db_path)
    await scheduler.schedule_after("other", 1_000, "SOMETHING", "x")
    assert await scheduler.run_due(1_000) == 0
    assert len(await store.due(1_000)) == 1


@pytest.mark.asyncio
async def test_cancel_by_content(db_path):
    scheduler, store, _ = await _scheduler(db_path)
    await scheduler.schedule_after("anon", 1_000, "ANON_TIMEOUT_END", "abc")
    await scheduler.schedule_after("anon", 1_000, "ANON_TIMEOUT_END", "def")

    assert await scheduler.cancel_by_content("ANON_TIMEOUT_END", "abc") == 1
    assert await scheduler.cancel_by_content("ANON_TIMEOUT_END", "abc") == 0
    assert [j.payload for j in await store.due(1_000)] == ["def"]


@pytest.mark.asyncio
async def test_jobs_survive_a_new_scheduler(db_path):
    scheduler, _, _ = await _scheduler(db_path)
    await scheduler.schedule_after("anon", 1_000, "ANON_TIMEOUT_END", "abc")

    restarted, _, _ = await _scheduler(db_path)
    fired: list[str] = []

    async def handler(event: str, payload: str) -> None:
        fired.append(payload)

    restarted.register("anon", handler)
    assert await restarted.run_due(5_000) == 1
    assert fired == ["abc"]


@pytest.mark.asyncio
async def test_storage_failure_is_an_integration_failure(tmp_path):
    scheduler = JobScheduler(JobsStore(str(tmp_path / "missing" / "jobs.sqlite3")), RuntimeStats())
    with pytest.raises(IntegrationFailure):
        await scheduler.schedule_after("anon", 1_000, "ANON_TIMEOUT_END", "abc")
    with pytest.raises(IntegrationFailure):
        await scheduler.cancel_by_content("ANON_TIMEOUT_END", "abc")
