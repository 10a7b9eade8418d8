from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional


@dataclass
class Session:
    """Live binding of a real identity to its current alias and colour."""

    real_id: int
    alias: int
    color: int
    message_suppressed: bool = False
    last_alias_change_at: Optional[float] = None


@dataclass
class Record:
    """Retained tuple that lets moderators trace a delivered message back to its sender."""

    real_id: int
    delivered_message_id: int
    channel_id: int
    alias: int
    color: int
    created_at: float
    lifetime_seconds: int
    # Proxy endpoint the message was sent through, None for direct deliveries.
    handle: Any = None

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.lifetime_seconds


@dataclass(frozen=True)
class ProxyLabel:
    alias: int
    color: int

    @property
    def name(self) -> str:
        return f"Anon {self.alias}"


@dataclass
class ProxyEndpoint:
    handle: Any
    owner_id: Optional[int]
    label: ProxyLabel


@dataclass(frozen=True)
class SuppressionRecord:
    suppression_id: str
    hashed: str
    expires_at: Optional[int]
    created_at: int

    def remaining_seconds(self, now: float) -> Optional[int]:
        if self.expires_at is None:
            return None
        return max(0, round(self.expires_at - now))


@dataclass(frozen=True)
class DeliveredMessage:
    message_id: int
    channel_id: int


TargetKind = Literal["channel", "direct"]


@dataclass(frozen=True)
class Target:
    """Where an utterance goes: a channel (via a proxy endpoint) or another session by alias."""

    kind: TargetKind
    channel_id: Optional[int] = None
    alias: Optional[int] = None

    @classmethod
    def channel(cls, channel_id: int) -> "Target":
        return cls(kind="channel", channel_id=channel_id)

    @classmethod
    def direct(cls, alias: int) -> "Target":
        return cls(kind="direct", alias=alias)


DeliveryStatus = Literal["sent", "merged", "skipped"]


@dataclass(frozen=True)
class DeliveryOutcome:
    status: DeliveryStatus
    alias: int
    message: Optional[DeliveredMessage] = None


@dataclass(frozen=True)
class SuppressionResult:
    suppression_id: str
    alias: int
    expires_at: Optional[int] = None
