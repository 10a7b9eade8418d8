from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from ..anon.models import Target
from ..constants import COLORS
from ..errors import RecordNotFound
from ..utils import format_interval, parse_duration, safe_embed

log = logging.getLogger("masquerade.cogs.anon")


def _parse_message_id(raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise RecordNotFound() from None


class AnonCog(commands.GroupCog, group_name="anon", group_description="Post anonymously."):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot  # type: ignore[assignment]

    @property
    def anon(self):
        return self.bot.anon  # type: ignore[attr-defined]

    async def _reply(self, interaction: discord.Interaction, message: str, *, color: int = COLORS["success"]) -> None:
        await interaction.followup.send(embed=safe_embed("", message, color), ephemeral=True)

    @app_commands.command(name="send", description="Send a message to the anonymous channel.")
    async def send(self, interaction: discord.Interaction, message: str) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        channel = self.bot.anon_channel()  # type: ignore[attr-defined]
        if channel is None:
            await self._reply(interaction, "The anonymous channel doesn't exist.", color=COLORS["error"])
            return
        outcome = await self.anon.deliver_utterance(interaction.user.id, Target.channel(channel.id), message)
        await self._reply(interaction, f"Sent as anon **{outcome.alias}**.")

    @app_commands.command(name="dm", description="Send an anonymous direct message to another anon ID.")
    async def dm(self, interaction: discord.Interaction, id: int, message: str) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        outcome = await self.anon.deliver_utterance(interaction.user.id, Target.direct(id), message)
        # Skipped deliveries look like successes so opting out can't be probed.
        await self._reply(interaction, f"Sent to anon **{id}** as anon **{outcome.alias}**.")

    @app_commands.command(name="newid", description="Get a new random anon ID and colour.")
    async def newid(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        session = await self.anon.new_alias(interaction.user.id)
        await self._reply(interaction, f"Your new anon ID is **{session.alias}**.")

    @app_commands.command(name="setid", description="Choose your anon ID.")
    async def setid(self, interaction: discord.Interaction, id: int) -> None:
        await interaction.response.defer(ephemeral=True)
        session = await self.anon.set_alias(interaction.user.id, id)
        await self._reply(interaction, f"Your anon ID is now **{session.alias}**.")

    @app_commands.command(name="dms", description="Allow or block anonymous direct messages to you.")
    async def dms(self, interaction: discord.Interaction, enabled: bool) -> None:
        await interaction.response.defer(ephemeral=True)
        await self.anon.set_direct_messages_disabled(interaction.user.id, not enabled)
        await self._reply(interaction, "Anonymous DMs enabled." if enabled else "Anonymous DMs disabled.")

    @app_commands.command(name="blacklist", description="Blacklist the author of an anonymous message.")
    @app_commands.checks.has_permissions(moderate_members=True)
    async def blacklist(self, interaction: discord.Interaction, message_id: str) -> None:
        await interaction.response.defer(ephemeral=True)
        result = await self.anon.suppress_by_delivered_message_id(_parse_message_id(message_id), interaction.user.id)
        await self._reply(
            interaction,
            f"Blacklisted anon **{result.alias}**. Blacklist ID: `{result.suppression_id}`",
        )

    @app_commands.command(name="timeout", description="Time out the author of an anonymous message. Duration: 30m, 2h, 1d.")
    @app_commands.checks.has_permissions(moderate_members=True)
    async def timeout(self, interaction: discord.Interaction, message_id: str, duration: str) -> None:
        await interaction.response.defer(ephemeral=True)
        seconds = parse_duration(duration)
        if seconds is None:
            await self._reply(interaction, "Invalid duration. Use 30s, 10m, 2h or 1d.", color=COLORS["error"])
            return
        result = await self.anon.suppress_by_delivered_message_id(
            _parse_message_id(message_id), interaction.user.id, duration_seconds=seconds
        )
        await self._reply(
            interaction,
            f"Timed out anon **{result.alias}** for {format_interval(seconds)}. Blacklist ID: `{result.suppression_id}`",
        )

    @app_commands.command(name="unblacklist", description="Lift a blacklist or timeout by its blacklist ID.")
    @app_commands.checks.has_permissions(moderate_members=True)
    async def unblacklist(self, interaction: discord.Interaction, blacklist_id: str) -> None:
        await interaction.response.defer(ephemeral=True)
        await self.anon.lift_suppression(blacklist_id.strip(), interaction.user.id)
        await self._reply(interaction, f"Lifted `{blacklist_id.strip()}`.")

    @app_commands.command(name="blacklistedby", description="Show which moderator issued a blacklist.")
    @app_commands.checks.has_permissions(moderate_members=True)
    async def blacklistedby(self, interaction: discord.Interaction, blacklist_id: str) -> None:
        await interaction.response.defer(ephemeral=True)
        actor_id = await self.anon.suppressed_by(blacklist_id.strip())
        if actor_id is None:
            await self._reply(interaction, "No moderator found for that blacklist ID.", color=COLORS["error"])
            return
        await self._reply(interaction, f"`{blacklist_id.strip()}` was issued by <@{actor_id}>.", color=COLORS["info"])

    @app_commands.command(name="reset", description="Reset every anonymous ID.")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def reset(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        count = await self.anon.reset_all_sessions(interaction.user.id)
        channel = self.bot.anon_channel()  # type: ignore[attr-defined]
        if channel is not None:
            try:
                await channel.send(embed=safe_embed("", "All anonymous IDs have been reset.", COLORS["info"]))
            except discord.HTTPException:
                log.warning("Could not announce reset in #%s", channel.name)
        await self._reply(interaction, f"Reset {count} anonymous ID(s).")

    @app_commands.command(name="stats", description="Show relay counters and the latest moderation actions.")
    @app_commands.checks.has_permissions(moderate_members=True)
    async def stats(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        embed = safe_embed("Anonymous relay", f"{len(self.anon.registry)} active anon(s)", COLORS["info"])
        for name, value in self.bot.stats.as_fields():  # type: ignore[attr-defined]
            embed.add_field(name=name, value=value, inline=False)
        entries = await self.bot.audit_log.recent(5)  # type: ignore[attr-defined]
        if entries:
            lines = [f"<t:{e.created_at_ts}:R> {e.action.title()}: {e.description}" for e in entries]
            embed.add_field(name="Recent actions", value="\n".join(lines)[:1024], inline=False)
        await interaction.followup.send(embed=embed, ephemeral=True)
