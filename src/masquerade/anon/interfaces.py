"""
Collaborator contracts for the anonymous relay.

The coordinator only talks to the platform, the scheduler and the audit log
through these interfaces, so the Discord adapter and the in-memory test fakes
are interchangeable.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

from .models import DeliveredMessage, ProxyLabel, Record


@runtime_checkable
class Delivery(Protocol):
    """Platform calls. Every method may raise IntegrationFailure."""

    @abstractmethod
    async def send_direct(self, recipient_id: int, content: str, label: ProxyLabel) -> DeliveredMessage:
        ...

    @abstractmethod
    async def send_via_proxy(self, handle: Any, content: str, label: ProxyLabel) -> DeliveredMessage:
        ...

    @abstractmethod
    async def edit_message(
        self, channel_id: int, message_id: int, content: str, label: ProxyLabel, handle: Any = None
    ) -> None:
        """Append ``content`` to a previously delivered message."""
        ...

    @abstractmethod
    async def relabel(self, handle: Any, label: ProxyLabel) -> None:
        ...

    @abstractmethod
    async def create_proxy_endpoint(self, channel_id: int, label: ProxyLabel) -> Any:
        ...

    @abstractmethod
    async def delete_proxy_endpoint(self, handle: Any) -> None:
        ...

    @abstractmethod
    async def direct_channel_id(self, recipient_id: int) -> int:
        ...

    @abstractmethod
    async def is_most_recent_delivered_message(self, channel_id: int, message_id: int) -> bool:
        ...


@runtime_checkable
class Scheduler(Protocol):
    @abstractmethod
    async def schedule_after(self, namespace: str, when_ts: int, event: str, payload: str) -> int:
        ...

    @abstractmethod
    async def cancel_by_content(self, event: str, payload: str) -> int:
        ...


@runtime_checkable
class Audit(Protocol):
    @abstractmethod
    async def record(
        self, action: str, actor_id: Optional[int], description: str, related: Optional[Record] = None, *, target: Optional[str] = None
    ) -> None:
        """Fire-and-forget; implementations must not raise."""
        ...

    @abstractmethod
    async def latest_actor(self, actions: tuple[str, ...], target: str) -> Optional[int]:
        ...
