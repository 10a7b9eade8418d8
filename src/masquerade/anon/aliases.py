from __future__ import annotations

import logging
import random
from typing import Iterator, Optional

from ..constants import MAX_COLOR
from ..errors import AliasCooldown, AliasOutOfRange, AliasTaken, Suppressed
from .models import Session, SuppressionRecord

log = logging.getLogger("masquerade.anon.aliases")


class AliasRegistry:
    """Active sessions keyed by real identity.

    Sessions live only in memory, so a restart resets every alias.
    """

    def __init__(self, max_alias: int, cooldown_seconds: int = 0, rng: Optional[random.Random] = None) -> None:
        self.max_alias = max(0, int(max_alias))
        self.cooldown_seconds = max(0, int(cooldown_seconds))
        self._rng = rng or random.Random()
        self._sessions: dict[int, Session] = {}
        self._overflow = self.max_alias

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def get(self, real_id: int) -> Optional[Session]:
        return self._sessions.get(real_id)

    def resolve(
        self,
        real_id: int,
        suppression: Optional[SuppressionRecord] = None,
        *,
        now: float,
        message_suppressed: bool = False,
    ) -> Session:
        """Return the live session for ``real_id``, creating one unless it is suppressed."""
        if suppression is not None:
            if self._sessions.pop(real_id, None) is not None:
                log.warning("Session for a suppressed identity was still active; dropping it (suppression=%s)", suppression.suppression_id)
            raise Suppressed(suppression.remaining_seconds(now))

        session = self._sessions.get(real_id)
        if session is None:
            session = Session(
                real_id=real_id,
                alias=self._random_free_alias(exclude=None),
                color=self.random_color(),
                message_suppressed=message_suppressed,
            )
            self._sessions[real_id] = session
        return session

    def random_color(self) -> int:
        return self._rng.randrange(MAX_COLOR)

    def by_alias(self, alias: int) -> Optional[Session]:
        for session in self._sessions.values():
            if session.alias == alias:
                return session
        return None

    def alias_taken(self, alias: int, exclude: Optional[Session] = None) -> bool:
        for session in self._sessions.values():
            if session is not exclude and session.alias == alias:
                return True
        return False

    def _random_free_alias(self, exclude: Optional[Session]) -> int:
        taken = {
            s.alias
            for s in self._sessions.values()
            if s is not exclude and 0 <= s.alias < self.max_alias
        }
        if len(taken) >= self.max_alias:
            self._overflow += 1
            log.warning(
                "All %d aliases are in use, handing out overflow alias %d; aliases should be reset",
                self.max_alias,
                self._overflow,
            )
            return self._overflow
        # Reject and redraw rather than scanning forward so low aliases aren't favoured.
        alias = self._rng.randrange(self.max_alias)
        while alias in taken:
            alias = self._rng.randrange(self.max_alias)
        return alias

    def _check_cooldown(self, session: Session, now: float) -> None:
        if not self.cooldown_seconds or session.last_alias_change_at is None:
            return
        elapsed = now - session.last_alias_change_at
        if elapsed < self.cooldown_seconds:
            raise AliasCooldown(int(self.cooldown_seconds - elapsed + 0.999))

    def reassign_random(self, session: Session, *, now: float) -> int:
        self._check_cooldown(session, now)
        session.alias = self._random_free_alias(exclude=session)
        session.color = self.random_color()
        session.last_alias_change_at = now
        return session.alias

    def reassign_manual(self, session: Session, requested_alias: int, *, now: float) -> int:
        if requested_alias < 0 or requested_alias > self.max_alias:
            raise AliasOutOfRange(requested_alias, self.max_alias)
        if self.alias_taken(requested_alias, exclude=session):
            raise AliasTaken(requested_alias)
        self._check_cooldown(session, now)
        session.alias = requested_alias
        session.color = self.random_color()
        session.last_alias_change_at = now
        return session.alias

    def release_by_id(self, real_id: int) -> bool:
        return self._sessions.pop(real_id, None) is not None

    def release_all(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        self._overflow = self.max_alias
        return count
