from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from ..constants import (
    ACTION_BLACKLIST,
    ACTION_RESET,
    ACTION_TIMEOUT,
    ACTION_UNBLACKLIST,
    ANON_NAMESPACE,
    ANON_TIMEOUT_END,
)
from ..errors import IntegrationFailure, RecipientNotFound, RecordNotFound, SuppressionNotFound
from ..services.preferences_store import PreferencesStore
from ..services.stats import RuntimeStats
from ..services.suppression_store import SuppressionLedger
from ..utils import format_interval
from .aliases import AliasRegistry
from .content_filter import ContentFilter
from .interfaces import Audit, Delivery, Scheduler
from .models import DeliveredMessage, DeliveryOutcome, ProxyLabel, Record, Session, SuppressionResult, Target
from .proxy_pool import ProxyPool
from .records import RecordStore

log = logging.getLogger("masquerade.anon.coordinator")


class AnonCoordinator:
    """Entry point for everything the anonymous relay does.

    Per real identity the state is implicit: no session (unsessioned), a live
    session in the registry (active), or a row in the suppression ledger
    (suppressed). Suppression wins whenever both are present.
    """

    def __init__(
        self,
        *,
        registry: AliasRegistry,
        records: RecordStore,
        pool: ProxyPool,
        ledger: SuppressionLedger,
        delivery: Delivery,
        scheduler: Scheduler,
        audit: Audit,
        preferences: Optional[PreferencesStore] = None,
        content_filter: Optional[ContentFilter] = None,
        merge_window_seconds: int = 0,
        stats: Optional[RuntimeStats] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.records = records
        self.pool = pool
        self.ledger = ledger
        self.delivery = delivery
        self.scheduler = scheduler
        self.audit = audit
        self.preferences = preferences
        self.content_filter = content_filter
        self.merge_window_seconds = max(0, int(merge_window_seconds))
        self.stats = stats or RuntimeStats()
        self._clock = clock
        self._channel_locks: dict[int, asyncio.Lock] = {}

    # Sessions

    async def resolve_session(self, real_id: int) -> Session:
        suppression = await self.ledger.is_suppressed(real_id)
        now = self._clock()
        if suppression is not None and suppression.expires_at is not None and suppression.expires_at <= now:
            log.info("Suppression %s expired without being lifted; lifting it now", suppression.suppression_id)
            await self._lift(suppression.suppression_id, cancel_jobs=True)
            suppression = None

        if suppression is not None:
            self.pool.disown(real_id)
            return self.registry.resolve(real_id, suppression, now=now)

        disabled = False
        if self.registry.get(real_id) is None and self.preferences is not None:
            disabled = await self.preferences.direct_messages_disabled(real_id)
        return self.registry.resolve(real_id, None, now=self._clock(), message_suppressed=disabled)

    async def new_alias(self, real_id: int) -> Session:
        session = await self.resolve_session(real_id)
        self.registry.reassign_random(session, now=self._clock())
        return session

    async def set_alias(self, real_id: int, alias: int) -> Session:
        session = await self.resolve_session(real_id)
        self.registry.reassign_manual(session, alias, now=self._clock())
        return session

    async def set_direct_messages_disabled(self, real_id: int, disabled: bool) -> None:
        if self.preferences is not None:
            await self.preferences.set_direct_messages_disabled(real_id, disabled)
        session = self.registry.get(real_id)
        if session is not None:
            session.message_suppressed = disabled

    async def reset_all_sessions(self, actor_id: Optional[int] = None) -> int:
        count = self.registry.release_all()
        self.pool.disown_all()
        log.info("Reset %d anonymous session(s)", count)
        await self.audit.record(ACTION_RESET, actor_id, f"Reset {count} anonymous IDs")
        return count

    # Delivery

    async def deliver_utterance(self, real_id: int, target: Target, content: str) -> DeliveryOutcome:
        if self.content_filter is not None:
            self.content_filter.check(content)

        session = await self.resolve_session(real_id)
        label = ProxyLabel(alias=session.alias, color=session.color)

        recipient: Optional[Session] = None
        if target.kind == "direct":
            alias = -1 if target.alias is None else int(target.alias)
            recipient = self.registry.by_alias(alias)
            if recipient is None:
                raise RecipientNotFound(alias)
            if recipient.message_suppressed:
                self.stats.messages_skipped += 1
                return DeliveryOutcome(status="skipped", alias=session.alias)
            channel_id = await self._integration("direct_channel_id", self.delivery.direct_channel_id(recipient.real_id))
        else:
            channel_id = int(target.channel_id)  # type: ignore[arg-type]

        # Merge check, edit and append must not interleave with another delivery to the same channel.
        async with self._channel_lock(channel_id):
            now = self._clock()
            last = self.records.last_record_for_channel(channel_id)
            if last is not None and await self._can_merge(last, session, now):
                try:
                    await self.delivery.edit_message(
                        channel_id, last.delivered_message_id, content, label, handle=last.handle
                    )
                except IntegrationFailure as e:
                    log.warning("Merging into message %s failed, sending a new one instead: %s", last.delivered_message_id, e)
                else:
                    self.records.touch_for_merge(last, now)
                    self.stats.messages_merged += 1
                    return DeliveryOutcome(
                        status="merged",
                        alias=session.alias,
                        message=DeliveredMessage(message_id=last.delivered_message_id, channel_id=channel_id),
                    )

            handle = None
            if recipient is not None:
                message = await self._integration(
                    "send_direct", self.delivery.send_direct(recipient.real_id, content, label)
                )
            else:
                handle = await self._integration(
                    "acquire_endpoint", self.pool.acquire(channel_id, real_id, session.alias, session.color)
                )
                message = await self._integration("send_via_proxy", self.delivery.send_via_proxy(handle, content, label))

            self.records.append(
                real_id,
                session.alias,
                message.message_id,
                message.channel_id,
                now,
                color=session.color,
                handle=handle,
            )
        self.stats.messages_sent += 1
        return DeliveryOutcome(status="sent", alias=session.alias, message=message)

    def _channel_lock(self, channel_id: int) -> asyncio.Lock:
        lock = self._channel_locks.get(channel_id)
        if lock is None:
            lock = self._channel_locks[channel_id] = asyncio.Lock()
        return lock

    async def _can_merge(self, last: Record, session: Session, now: float) -> bool:
        if last.real_id != session.real_id or last.alias != session.alias or last.color != session.color:
            return False
        if self.merge_window_seconds and now - last.created_at > self.merge_window_seconds:
            return False
        # An evicted record can't be traced any more, so nothing new may be attached to its message.
        if not self.records.contains(last):
            return False
        try:
            return await self.delivery.is_most_recent_delivered_message(last.channel_id, last.delivered_message_id)
        except IntegrationFailure as e:
            log.debug("Could not check latest message in %s: %s", last.channel_id, e)
            return False

    async def _integration(self, operation: str, awaitable):
        try:
            return await awaitable
        except IntegrationFailure:
            log.exception("Anonymous delivery step %s failed", operation)
            raise

    # Moderation

    async def suppress_by_delivered_message_id(
        self, message_id: int, actor_id: int, duration_seconds: Optional[int] = None
    ) -> SuppressionResult:
        record = self.records.find_by_delivered_message_id(message_id)
        if record is None:
            raise RecordNotFound()

        expires_at = None
        if duration_seconds is not None:
            expires_at = int(self._clock() + int(duration_seconds))

        suppression_id = await self.ledger.suppress(record.real_id, expires_at)
        if expires_at is not None:
            try:
                await self.scheduler.schedule_after(ANON_NAMESPACE, expires_at, ANON_TIMEOUT_END, suppression_id)
            except Exception:
                # resolve_session lifts expired suppressions itself, so a missing job only delays the lift.
                log.exception("Could not schedule the end of timeout %s", suppression_id)

        self.registry.release_by_id(record.real_id)
        self.pool.disown(record.real_id)
        self.stats.suppressions += 1

        if expires_at is not None:
            action = ACTION_TIMEOUT
            description = (
                f"Timed out anon {record.alias} for {format_interval(int(duration_seconds or 0))} "
                f"because of message {record.delivered_message_id}"
            )
        else:
            action = ACTION_BLACKLIST
            description = f"Blacklisted anon {record.alias} because of message {record.delivered_message_id}"
        await self.audit.record(action, actor_id, description, record, target=suppression_id)

        return SuppressionResult(suppression_id=suppression_id, alias=record.alias, expires_at=expires_at)

    async def lift_suppression(self, suppression_id: str, actor_id: Optional[int] = None) -> None:
        if not await self.ledger.exists_by_id(suppression_id):
            raise SuppressionNotFound(suppression_id)
        if not await self._lift(suppression_id, cancel_jobs=True):
            # Lifted concurrently by the timeout ending.
            return
        await self.audit.record(
            ACTION_UNBLACKLIST,
            actor_id,
            f"Lifted suppression {suppression_id}",
            target=suppression_id,
        )

    async def _lift(self, suppression_id: str, *, cancel_jobs: bool) -> bool:
        # Cancel the pending auto-lift before deleting the row so it can never fire against a later suppression.
        if cancel_jobs:
            await self.scheduler.cancel_by_content(ANON_TIMEOUT_END, suppression_id)
        try:
            await self.ledger.unsuppress(suppression_id)
        except SuppressionNotFound:
            log.info("Suppression %s was already lifted", suppression_id)
            return False
        self.stats.lifts += 1
        return True

    async def suppressed_by(self, suppression_id: str) -> Optional[int]:
        return await self.audit.latest_actor((ACTION_BLACKLIST, ACTION_TIMEOUT), suppression_id)

    async def event(self, name: str, payload: str) -> None:
        """Scheduler callback for the ``anon`` namespace."""
        if name != ANON_TIMEOUT_END:
            log.warning("Ignoring unknown anon event %s", name)
            return
        if await self._lift(payload, cancel_jobs=False):
            await self.audit.record(ACTION_UNBLACKLIST, None, f"Timeout {payload} ended", target=payload)

    async def shutdown(self) -> None:
        errors = await self.pool.release_all()
        if errors:
            log.warning("Proxy pool teardown had %d error(s)", len(errors))
