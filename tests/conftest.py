from __future__ import annotations

import random

import pytest
import pytest_asyncio

from masquerade.anon.aliases import AliasRegistry
from masquerade.anon.content_filter import ContentFilter
from masquerade.anon.coordinator import AnonCoordinator
from masquerade.anon.proxy_pool import ProxyPool
from masquerade.anon.records import RecordStore
from masquerade.services.preferences_store import PreferencesStore
from masquerade.services.stats import RuntimeStats
from masquerade.services.suppression_store import SuppressionLedger
from masquerade.testing.fakes import FakeAudit, FakeDelivery, FakeScheduler


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "masquerade-test.sqlite3")


@pytest.fixture
def delivery() -> FakeDelivery:
    return FakeDelivery()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def audit() -> FakeAudit:
    return FakeAudit()


@pytest_asyncio.fixture
async def ledger(db_path) -> SuppressionLedger:
    store = SuppressionLedger(db_path, salt="test-salt")
    await store.init()
    return store


@pytest_asyncio.fixture
async def preferences(db_path) -> PreferencesStore:
    store = PreferencesStore(db_path, salt="test-salt")
    await store.init()
    return store


@pytest.fixture
def coordinator(ledger, preferences, delivery, scheduler, audit, clock) -> AnonCoordinator:
    stats = RuntimeStats()
    return AnonCoordinator(
        registry=AliasRegistry(1000, rng=random.Random(7)),
        records=RecordStore(max_inactive_records=1000, lifetime_seconds=43200),
        pool=ProxyPool(delivery, max_endpoints_per_channel=3, stats=stats),
        ledger=ledger,
        delivery=delivery,
        scheduler=scheduler,
        audit=audit,
        preferences=preferences,
        content_filter=ContentFilter(["ass", "badword"]),
        stats=stats,
        clock=clock,
    )
