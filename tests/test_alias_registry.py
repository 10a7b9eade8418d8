from __future__ import annotations

import logging
import random

import pytest

from masquerade.anon.aliases import AliasRegistry
from masquerade.anon.models import SuppressionRecord
from masquerade.errors import AliasCooldown, AliasOutOfRange, AliasTaken, Suppressed


def _registry(max_alias: int = 1000, **kwargs) -> AliasRegistry:
    return AliasRegistry(max_alias, rng=random.Random(1), **kwargs)


def test_resolve_creates_once_and_returns_same_session():
    reg = _registry()
    first = reg.resolve(1, now=0)
    again = reg.resolve(1, now=5)
    assert first is again
    assert 0 <= first.alias < 1000
    assert 0 <= first.color <= 0xFFFFFF
    assert len(reg) == 1


def test_aliases_stay_unique_under_churn():
    reg = _registry(max_alias=50)
    sessions = [reg.resolve(i, now=0) for i in range(49)]
    for _ in range(5):
        for session in sessions:
            reg.reassign_random(session, now=0)
    aliases = [s.alias for s in reg]
    assert len(aliases) == len(set(aliases))
    assert all(0 <= a < 50 for a in aliases)


def test_overflow_alias_when_range_is_full(caplog):
    reg = _registry(max_alias=2)
    reg.resolve(1, now=0)
    reg.resolve(2, now=0)
    with caplog.at_level(logging.WARNING, logger="masquerade.anon.aliases"):
        third = reg.resolve(3, now=0)
        fourth = reg.resolve(4, now=0)
    assert third.alias == 3
    assert fourth.alias == 4
    assert "overflow" in caplog.text

    reg.release_all()
    assert len(reg) == 0
    assert reg.resolve(5, now=0).alias in (0, 1)


def test_manual_alias_bounds_are_inclusive():
    reg = _registry(max_alias=10)
    session = reg.resolve(1, now=0)
    with pytest.raises(AliasOutOfRange):
        reg.reassign_manual(session, -1, now=0)
    with pytest.raises(AliasOutOfRange):
        reg.reassign_manual(session, 11, now=0)
    assert reg.reassign_manual(session, 10, now=0) == 10


def test_manual_alias_taken_by_someone_else():
    reg = _registry()
    a = reg.resolve(1, now=0)
    b = reg.resolve(2, now=0)
    reg.reassign_manual(a, 42, now=0)
    with pytest.raises(AliasTaken):
        reg.reassign_manual(b, 42, now=0)
    # Re-requesting your own alias is fine.
    assert reg.reassign_manual(a, 42, now=0) == 42


def test_reassign_changes_color_and_frees_old_alias():
    reg = _registry()
    session = reg.resolve(1, now=0)
    old_color = session.color
    reg.reassign_manual(session, 7, now=0)
    assert session.color != old_color
    assert reg.by_alias(7) is session
    reg.reassign_manual(session, 8, now=0)
    assert reg.by_alias(7) is None


def test_cooldown_between_alias_changes():
    reg = _registry(cooldown_seconds=60)
    session = reg.resolve(1, now=0)
    reg.reassign_random(session, now=100)
    with pytest.raises(AliasCooldown) as exc:
        reg.reassign_random(session, now=130)
    assert exc.value.remaining_seconds == 30
    with pytest.raises(AliasCooldown):
        reg.reassign_manual(session, 5, now=159)
    assert reg.reassign_manual(session, 5, now=161) == 5


def test_resolve_refuses_suppressed_identity_and_drops_session(caplog):
    reg = _registry()
    reg.resolve(1, now=0)
    suppression = SuppressionRecord(suppression_id="abc", hashed="h", expires_at=None, created_at=0)
    with caplog.at_level(logging.WARNING, logger="masquerade.anon.aliases"):
        with pytest.raises(Suppressed) as exc:
            reg.resolve(1, suppression, now=0)
    assert exc.value.message == "You are blacklisted"
    assert reg.get(1) is None
    assert "still active" in caplog.text


def test_resolve_reports_remaining_timeout():
    reg = _registry()
    suppression = SuppressionRecord(suppression_id="abc", hashed="h", expires_at=3600, created_at=0)
    with pytest.raises(Suppressed) as exc:
        reg.resolve(1, suppression, now=0)
    assert exc.value.remaining_seconds == 3600
    assert exc.value.message == "You are timed out for 1 hour"
    assert reg.get(1) is None


def test_release_by_id():
    reg = _registry()
    reg.resolve(1, now=0)
    assert reg.release_by_id(1) is True
    assert reg.release_by_id(1) is False
