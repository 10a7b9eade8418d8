from __future__ import annotations

import os
from dataclasses import dataclass, field

from .constants import DEFAULT_SUPPRESSION_SALT


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _load_filter_terms() -> tuple[str, ...]:
    terms = [t for t in os.getenv("ANON_FILTER_TERMS", "").split(",")]
    path = os.getenv("ANON_FILTER_PATH", "").strip()
    if path:
        with open(path, encoding="utf-8") as fh:
            terms.extend(fh.read().splitlines())
    cleaned = {t.strip().lower() for t in terms}
    cleaned.discard("")
    return tuple(sorted(cleaned))


@dataclass(frozen=True)
class Settings:
    token: str
    owner_id: int
    sync_guild_id: int
    sqlite_path: str
    log_level: str
    anon_channel_name: str = "anonymous"
    mod_logs_channel_name: str = "mod-logs"
    # Aliases are drawn from [0, max_alias); manual IDs may also use max_alias itself.
    max_alias: int = 1000
    # Every record stays reverse-lookupable for at least this long.
    record_lifetime_seconds: int = 43200
    max_inactive_records: int = 1000
    alias_cooldown_seconds: int = 0
    max_endpoints_per_channel: int = 5
    # 0 disables the age limit; merging then only requires the message to still be the latest.
    merge_window_seconds: int = 0
    suppression_salt: str = DEFAULT_SUPPRESSION_SALT
    scheduler_poll_seconds: int = 15
    filter_terms: tuple[str, ...] = field(default_factory=tuple)


def load_settings() -> Settings:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise RuntimeError("DISCORD_TOKEN is required")
    return Settings(
        token=token,
        # Default to 0 to avoid accidentally granting owner powers to a random ID
        owner_id=_get_int("OWNER_ID", 0),
        sync_guild_id=_get_int("SYNC_GUILD_ID", 0),
        sqlite_path=_get_str("SQLITE_PATH", "masquerade.sqlite3"),
        log_level=_get_str("LOG_LEVEL", "INFO"),
        anon_channel_name=_get_str("ANON_CHANNEL_NAME", "anonymous"),
        mod_logs_channel_name=_get_str("MOD_LOGS_CHANNEL_NAME", "mod-logs"),
        max_alias=max(0, _get_int("ANON_MAX_ALIAS", 1000)),
        record_lifetime_seconds=max(0, _get_int("ANON_RECORD_LIFETIME_SECONDS", 43200)),
        max_inactive_records=max(0, _get_int("ANON_MAX_INACTIVE_RECORDS", 1000)),
        alias_cooldown_seconds=max(0, _get_int("ANON_ALIAS_COOLDOWN_SECONDS", 0)),
        max_endpoints_per_channel=max(0, _get_int("ANON_MAX_ENDPOINTS_PER_CHANNEL", 5)),
        merge_window_seconds=max(0, _get_int("ANON_MERGE_WINDOW_SECONDS", 0)),
        suppression_salt=_get_str("ANON_SUPPRESSION_SALT", DEFAULT_SUPPRESSION_SALT),
        scheduler_poll_seconds=max(1, _get_int("SCHEDULER_POLL_SECONDS", 15)),
        filter_terms=_load_filter_terms(),
    )
