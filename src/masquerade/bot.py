from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from .adapters.discord_delivery import DiscordDelivery
from .anon.aliases import AliasRegistry
from .anon.content_filter import ContentFilter
from .anon.coordinator import AnonCoordinator
from .anon.proxy_pool import ProxyPool
from .anon.records import RecordStore
from .config import Settings
from .constants import ANON_NAMESPACE, COLORS
from .database import initialize_database
from .error_handlers import setup_error_handlers
from .services.audit_store import AuditEntry, AuditLog
from .services.jobs_store import JobsStore
from .services.preferences_store import PreferencesStore
from .services.scheduler import JobScheduler
from .services.stats import RuntimeStats
from .services.suppression_store import SuppressionLedger
from .utils import safe_embed

log = logging.getLogger("masquerade.bot")


class MasqueradeBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
            help_command=None,
        )

        self.settings = settings
        self.owner_id = settings.owner_id or None
        self.stats = RuntimeStats()
        self._sync_lock = asyncio.Lock()
        self._announced_restart = False

        self.suppression_ledger = SuppressionLedger(settings.sqlite_path, settings.suppression_salt)
        self.preferences_store = PreferencesStore(settings.sqlite_path, settings.suppression_salt)
        self.audit_log = AuditLog(settings.sqlite_path, notifier=self._post_audit_entry)
        self.jobs_store = JobsStore(settings.sqlite_path)
        self.scheduler = JobScheduler(self.jobs_store, self.stats, poll_seconds=settings.scheduler_poll_seconds)

        content_filter = ContentFilter(settings.filter_terms)
        if not content_filter:
            log.warning("No filter terms configured; anonymous messages are not filtered")

        self.delivery = DiscordDelivery(self)
        self.anon = AnonCoordinator(
            registry=AliasRegistry(settings.max_alias, cooldown_seconds=settings.alias_cooldown_seconds),
            records=RecordStore(settings.max_inactive_records, settings.record_lifetime_seconds),
            pool=ProxyPool(self.delivery, settings.max_endpoints_per_channel, stats=self.stats),
            ledger=self.suppression_ledger,
            delivery=self.delivery,
            scheduler=self.scheduler,
            audit=self.audit_log,
            preferences=self.preferences_store,
            content_filter=content_filter,
            merge_window_seconds=settings.merge_window_seconds,
            stats=self.stats,
        )

    async def setup_hook(self) -> None:
        stores = [
            self.suppression_ledger,
            self.preferences_store,
            self.audit_log,
            self.jobs_store,
        ]
        await initialize_database(self.settings.sqlite_path, stores)

        self.scheduler.register(ANON_NAMESPACE, self.anon.event)
        self.scheduler.start()

        await setup_error_handlers(self)

        from .cogs.anon import AnonCog

        await self.add_cog(AnonCog(self))
        await self._sync_commands()

    async def _sync_commands(self) -> None:
        async with self._sync_lock:
            if self.settings.sync_guild_id:
                guild = discord.Object(id=self.settings.sync_guild_id)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
                log.info("Commands synced to guild %d", self.settings.sync_guild_id)
            else:
                await self.tree.sync()
                log.info("Commands synced globally")

    def anon_channel(self) -> discord.TextChannel | None:
        for guild in self.guilds:
            channel = discord.utils.get(guild.text_channels, name=self.settings.anon_channel_name)
            if channel is not None:
                return channel
        return None

    def mod_logs_channel(self) -> discord.TextChannel | None:
        for guild in self.guilds:
            channel = discord.utils.get(guild.text_channels, name=self.settings.mod_logs_channel_name)
            if channel is not None:
                return channel
        return None

    async def _post_audit_entry(self, entry: AuditEntry) -> None:
        channel = self.mod_logs_channel()
        if channel is None:
            return
        embed = safe_embed(f"Anon {entry.action.title()}", entry.description, COLORS["warning"])
        if entry.actor_id is not None:
            embed.add_field(name="Moderator", value=f"<@{entry.actor_id}>", inline=True)
        if entry.target:
            embed.add_field(name="Blacklist ID", value=f"`{entry.target}`", inline=True)
        await channel.send(embed=embed)

    async def on_ready(self) -> None:
        log.info("Logged in as %s", self.user)
        if self._announced_restart:
            return
        self._announced_restart = True
        channel = self.anon_channel()
        if channel is None:
            log.warning("Anon channel #%s not found", self.settings.anon_channel_name)
            return
        try:
            await channel.send(embed=safe_embed("", "I was restarted, so all anonymous IDs have been reset.", COLORS["info"]))
        except discord.HTTPException:
            log.exception("Failed to post restart notice")

    async def close(self) -> None:
        try:
            await self.scheduler.stop()
            await self.anon.shutdown()
        finally:
            await super().close()
