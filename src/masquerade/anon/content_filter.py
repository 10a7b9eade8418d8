from __future__ import annotations

import re
from typing import Iterable

from ..errors import Filtered

_NON_ALPHA = re.compile(r"[^a-z]")

# Terms this short match too many innocent words once punctuation is stripped.
SHORT_TERM_LENGTH = 3


class ContentFilter:
    """Banned-terms check applied before any anonymous delivery.

    Short terms are matched as whole words against the lowercased content.
    Longer terms are matched as substrings of the content with everything but
    letters removed, which catches "b.a.d w o r d" style evasion.
    """

    def __init__(self, terms: Iterable[str]) -> None:
        cleaned = {t.strip().lower() for t in terms}
        cleaned.discard("")
        self._short = [
            re.compile(rf"(?<![a-z0-9]){re.escape(t)}(?![a-z0-9])")
            for t in sorted(cleaned)
            if len(t) <= SHORT_TERM_LENGTH
        ]
        self._long = sorted(
            stripped
            for stripped in (_NON_ALPHA.sub("", t) for t in cleaned if len(t) > SHORT_TERM_LENGTH)
            if stripped
        )

    def __bool__(self) -> bool:
        return bool(self._short or self._long)

    def matches(self, content: str) -> bool:
        lowered = content.lower()
        if any(p.search(lowered) for p in self._short):
            return True
        stripped = _NON_ALPHA.sub("", lowered)
        return any(term in stripped for term in self._long)

    def check(self, content: str) -> None:
        if self.matches(content):
            raise Filtered()
