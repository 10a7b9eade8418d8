from __future__ import annotations

from typing import Optional

from .utils import format_interval


class AnonRejection(Exception):
    """Expected refusal reported verbatim to the requester, never logged as an incident."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Suppressed(AnonRejection):
    def __init__(self, remaining_seconds: Optional[int] = None) -> None:
        self.remaining_seconds = remaining_seconds
        if remaining_seconds is None:
            super().__init__("You are blacklisted")
        else:
            super().__init__(f"You are timed out for {format_interval(remaining_seconds)}")


class Filtered(AnonRejection):
    def __init__(self) -> None:
        super().__init__("Your message contains filtered words")


class AliasOutOfRange(AnonRejection):
    def __init__(self, alias: int, max_alias: int) -> None:
        self.alias = alias
        super().__init__(f"ID {alias} is out of bounds (0-{max_alias})")


class AliasTaken(AnonRejection):
    def __init__(self, alias: int) -> None:
        self.alias = alias
        super().__init__(f"ID {alias} is taken")


class AliasCooldown(AnonRejection):
    def __init__(self, remaining_seconds: int) -> None:
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Cooldown: you cannot set a new ID for another {format_interval(remaining_seconds)}")


class RecordNotFound(AnonRejection):
    def __init__(self) -> None:
        super().__init__("Message not found")


class RecipientNotFound(AnonRejection):
    def __init__(self, alias: int) -> None:
        self.alias = alias
        super().__init__(f"No anonymous user with ID {alias}")


class PoolExhausted(AnonRejection):
    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__("No anonymous endpoints are available in this channel")


class AlreadySuppressed(AnonRejection):
    def __init__(self) -> None:
        super().__init__("Target is already blacklisted")


class SuppressionNotFound(AnonRejection):
    def __init__(self, suppression_id: str) -> None:
        self.suppression_id = suppression_id
        super().__init__("ID not found")


class IntegrationFailure(Exception):
    """A platform or storage call failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")
