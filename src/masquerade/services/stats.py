from __future__ import annotations

import time
from dataclasses import dataclass, field

from ..utils import format_interval


@dataclass
class RuntimeStats:
    started_at: float = field(default_factory=time.time)
    messages_sent: int = 0
    messages_merged: int = 0
    messages_skipped: int = 0
    suppressions: int = 0
    lifts: int = 0
    relabels: int = 0
    endpoint_evictions: int = 0
    jobs_fired: int = 0
    jobs_failed: int = 0

    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)

    def as_fields(self) -> list[tuple[str, str]]:
        """(name, value) pairs for the stats embed."""
        return [
            ("Uptime", format_interval(self.uptime_seconds())),
            ("Messages", f"{self.messages_sent} sent, {self.messages_merged} merged, {self.messages_skipped} skipped"),
            ("Moderation", f"{self.suppressions} suppressions, {self.lifts} lifts"),
            ("Endpoints", f"{self.relabels} relabels, {self.endpoint_evictions} evictions"),
            ("Scheduler", f"{self.jobs_fired} fired, {self.jobs_failed} failed"),
        ]
