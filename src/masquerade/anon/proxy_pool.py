from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ..errors import IntegrationFailure, PoolExhausted
from ..services.stats import RuntimeStats
from .interfaces import Delivery
from .models import ProxyEndpoint, ProxyLabel

log = logging.getLogger("masquerade.anon.proxy_pool")


class ProxyPool:
    """Per-channel pool of reusable send-as endpoints, most recently used first.

    Acquisition is serialised per channel: the read, evict, relabel and
    reinsert steps suspend on platform calls, and two interleaved acquisitions
    would otherwise both claim the same least-recently-used endpoint. Pool
    state only changes after the platform call succeeds.
    """

    def __init__(self, delivery: Delivery, max_endpoints_per_channel: int, stats: Optional[RuntimeStats] = None) -> None:
        self._delivery = delivery
        self.max_endpoints_per_channel = max(0, int(max_endpoints_per_channel))
        self._stats = stats or RuntimeStats()
        self._channels: dict[int, list[ProxyEndpoint]] = {}
        self._locks: dict[int, asyncio.Lock] = {}

    def _lock(self, channel_id: int) -> asyncio.Lock:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = self._locks[channel_id] = asyncio.Lock()
        return lock

    def endpoints(self, channel_id: int) -> list[ProxyEndpoint]:
        return list(self._channels.get(channel_id, ()))

    async def acquire(self, channel_id: int, real_id: int, alias: int, color: int) -> Any:
        label = ProxyLabel(alias=alias, color=color)
        async with self._lock(channel_id):
            endpoints = self._channels.setdefault(channel_id, [])

            owned = next((e for e in endpoints if e.owner_id == real_id), None)
            if owned is not None:
                if owned.label != label:
                    await self._relabel(owned.handle, label)
                    owned.label = label
                endpoints.remove(owned)
                endpoints.insert(0, owned)
                return owned.handle

            if len(endpoints) < self.max_endpoints_per_channel:
                handle = await self._delivery.create_proxy_endpoint(channel_id, label)
                endpoints.insert(0, ProxyEndpoint(handle=handle, owner_id=real_id, label=label))
                log.debug("Created endpoint %d/%d in channel %s", len(endpoints), self.max_endpoints_per_channel, channel_id)
                return handle

            if not endpoints:
                raise PoolExhausted(channel_id)

            victim = endpoints[-1]
            await self._relabel(victim.handle, label)
            endpoints.pop()
            victim.owner_id = real_id
            victim.label = label
            endpoints.insert(0, victim)
            self._stats.endpoint_evictions += 1
            return victim.handle

    async def _relabel(self, handle: Any, label: ProxyLabel) -> None:
        # Relabelling is idempotent, so one retry is safe.
        try:
            await self._delivery.relabel(handle, label)
        except IntegrationFailure:
            log.warning("Relabel to %r failed, retrying once", label.name)
            await self._delivery.relabel(handle, label)
        self._stats.relabels += 1

    def disown(self, real_id: int) -> int:
        """Detach an identity from its endpoints so its next session can't be linked to them."""
        count = 0
        for endpoints in self._channels.values():
            for endpoint in endpoints:
                if endpoint.owner_id == real_id:
                    endpoint.owner_id = None
                    count += 1
        return count

    def disown_all(self) -> None:
        for endpoints in self._channels.values():
            for endpoint in endpoints:
                endpoint.owner_id = None

    async def release_all_for_channel(self, channel_id: int) -> list[Exception]:
        errors: list[Exception] = []
        async with self._lock(channel_id):
            endpoints = self._channels.pop(channel_id, [])
            for endpoint in endpoints:
                try:
                    await self._delivery.delete_proxy_endpoint(endpoint.handle)
                except Exception as e:
                    errors.append(e)
        if errors:
            log.warning("Channel %s teardown finished with %d error(s): %s", channel_id, len(errors), errors[0])
        return errors

    async def release_all(self) -> list[Exception]:
        errors: list[Exception] = []
        for channel_id in list(self._channels):
            errors.extend(await self.release_all_for_channel(channel_id))
        return errors
