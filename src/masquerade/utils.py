from __future__ import annotations

import discord

from .constants import COLORS, MAX_EMBED_DESCRIPTION, MAX_EMBED_TITLE

_INTERVAL_UNITS = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def format_interval(seconds: int) -> str:
    """Render a duration as "1 day, 2 hours and 5 seconds"."""
    seconds = max(0, int(seconds))
    parts: list[str] = []
    for name, size in _INTERVAL_UNITS:
        count, seconds = divmod(seconds, size)
        if count:
            parts.append(f"{count} {name}{'s' if count > 1 else ''}")
    if not parts:
        return "0 seconds"
    if len(parts) == 1:
        return parts[0]
    return f"{', '.join(parts[:-1])} and {parts[-1]}"


def parse_duration(s: str) -> int | None:
    """Parse "30s", "10m", "2h" or "1d" into seconds."""
    s = (s or "").strip().lower()
    if len(s) < 2:
        return None
    mult = _DURATION_UNITS.get(s[-1])
    if not mult:
        return None
    try:
        num = int(s[:-1])
    except ValueError:
        return None
    if num <= 0:
        return None
    return num * mult


def safe_embed(title: str, description: str, color: int = COLORS["default"]) -> discord.Embed:
    """Create an embed with safe length limits."""
    if len(title) > MAX_EMBED_TITLE:
        title = title[:MAX_EMBED_TITLE - 1] + "…"
    if len(description) > MAX_EMBED_DESCRIPTION:
        description = description[:MAX_EMBED_DESCRIPTION - 1] + "…"

    return discord.Embed(title=title, description=description, color=color)


async def safe_send(
    interaction: discord.Interaction,
    content: str | None = None,
    *,
    embed: discord.Embed | None = None,
    ephemeral: bool = True,
) -> bool:
    """Respond or follow up, whichever the interaction still allows."""
    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(content=content, embed=embed, ephemeral=ephemeral)
        else:
            await interaction.followup.send(content=content, embed=embed, ephemeral=ephemeral)
        return True
    except discord.HTTPException:
        return False
