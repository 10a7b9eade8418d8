from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterator, Optional

from .models import Record

log = logging.getLogger("masquerade.anon.records")


class RecordStore:
    """In-memory ledger of anonymous messages and who sent them.

    Every record is kept for at least ``lifetime_seconds``. Once expired, a
    record is only kept while the store holds more than
    ``max_inactive_records`` entries; an unexpired record at the head is never
    evicted, so the store may grow past the limit and shrinks back as records
    expire.
    """

    def __init__(self, max_inactive_records: int, lifetime_seconds: int) -> None:
        self.max_inactive_records = max(0, int(max_inactive_records))
        self.lifetime_seconds = max(0, int(lifetime_seconds))
        self._records: deque[Record] = deque()
        # Stale entries are fine here: only used to decide whether to merge.
        self._last_by_channel: dict[int, Record] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records))

    def append(
        self,
        real_id: int,
        alias: int,
        delivered_message_id: int,
        channel_id: int,
        now: float,
        *,
        color: int = 0,
        handle: Any = None,
    ) -> Record:
        record = Record(
            real_id=real_id,
            delivered_message_id=delivered_message_id,
            channel_id=channel_id,
            alias=alias,
            color=color,
            created_at=now,
            lifetime_seconds=self.lifetime_seconds,
            handle=handle,
        )
        self._records.append(record)
        self._last_by_channel[channel_id] = record
        self.prune(now)
        return record

    def prune(self, now: float) -> int:
        evicted = 0
        while len(self._records) > self.max_inactive_records and self._records[0].expired(now):
            self._records.popleft()
            evicted += 1
        if evicted:
            log.debug("Evicted %d expired records (%d retained)", evicted, len(self._records))
        return evicted

    def find_by_delivered_message_id(self, message_id: int) -> Optional[Record]:
        for record in self._records:
            if record.delivered_message_id == message_id:
                return record
        return None

    def last_record_for_channel(self, channel_id: int) -> Optional[Record]:
        return self._last_by_channel.get(channel_id)

    def contains(self, record: Record) -> bool:
        return any(r is record for r in self._records)

    def touch_for_merge(self, record: Record, now: float) -> None:
        record.created_at = now
