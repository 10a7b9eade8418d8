from __future__ import annotations

import logging
from typing import Any

import discord

from ..anon.models import DeliveredMessage, ProxyLabel
from ..constants import MAX_WEBHOOK_NAME
from ..errors import IntegrationFailure
from ..utils import safe_embed

log = logging.getLogger("masquerade.adapters.discord_delivery")


def build_embed(label: ProxyLabel, content: str) -> discord.Embed:
    return safe_embed(str(label.alias), content, label.color)


class DiscordDelivery:
    """Delivery port backed by discord.py.

    Proxy endpoints are channel webhooks whose name carries the alias; every
    message is an embed titled with the alias and coloured with the session
    colour, so merges can append to the embed description.
    """

    def __init__(self, bot: discord.Client) -> None:
        self._bot = bot

    async def _channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(channel_id)
            except discord.HTTPException as e:
                raise IntegrationFailure("fetch_channel", e) from e
        return channel  # type: ignore[return-value]

    async def _user(self, user_id: int) -> discord.User:
        user = self._bot.get_user(user_id)
        if user is None:
            try:
                user = await self._bot.fetch_user(user_id)
            except discord.HTTPException as e:
                raise IntegrationFailure("fetch_user", e) from e
        return user

    async def send_direct(self, recipient_id: int, content: str, label: ProxyLabel) -> DeliveredMessage:
        user = await self._user(recipient_id)
        try:
            message = await user.send(embed=build_embed(label, content))
        except discord.HTTPException as e:
            raise IntegrationFailure("send_direct", e) from e
        return DeliveredMessage(message_id=message.id, channel_id=message.channel.id)

    async def send_via_proxy(self, handle: Any, content: str, label: ProxyLabel) -> DeliveredMessage:
        webhook: discord.Webhook = handle
        try:
            message = await webhook.send(
                embed=build_embed(label, content),
                username=label.name[:MAX_WEBHOOK_NAME],
                allowed_mentions=discord.AllowedMentions.none(),
                wait=True,
            )
        except discord.HTTPException as e:
            raise IntegrationFailure("send_via_proxy", e) from e
        return DeliveredMessage(message_id=message.id, channel_id=int(webhook.channel_id or message.channel.id))

    async def edit_message(
        self, channel_id: int, message_id: int, content: str, label: ProxyLabel, handle: Any = None
    ) -> None:
        try:
            if handle is not None:
                webhook: discord.Webhook = handle
                message = await webhook.fetch_message(message_id)
            else:
                channel = await self._channel(channel_id)
                message = await channel.fetch_message(message_id)  # type: ignore[attr-defined]
            previous = message.embeds[0].description if message.embeds else None
            merged = f"{previous}\n{content}" if previous else content
            embed = build_embed(label, merged)
            if handle is not None:
                await handle.edit_message(message_id, embed=embed)
            else:
                await message.edit(embed=embed)
        except discord.HTTPException as e:
            raise IntegrationFailure("edit_message", e) from e

    async def relabel(self, handle: Any, label: ProxyLabel) -> None:
        webhook: discord.Webhook = handle
        try:
            await webhook.edit(name=label.name[:MAX_WEBHOOK_NAME], reason="Anonymous ID changed")
        except discord.HTTPException as e:
            raise IntegrationFailure("relabel", e) from e

    async def create_proxy_endpoint(self, channel_id: int, label: ProxyLabel) -> Any:
        channel = await self._channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise IntegrationFailure("create_proxy_endpoint", TypeError(f"channel {channel_id} cannot host webhooks"))
        try:
            webhook = await channel.create_webhook(name=label.name[:MAX_WEBHOOK_NAME], reason="Anonymous messages")
        except discord.HTTPException as e:
            raise IntegrationFailure("create_proxy_endpoint", e) from e
        log.info("Created webhook %s in #%s", webhook.id, channel.name)
        return webhook

    async def delete_proxy_endpoint(self, handle: Any) -> None:
        webhook: discord.Webhook = handle
        try:
            await webhook.delete(reason="Anonymous endpoint teardown")
        except discord.NotFound:
            return
        except discord.HTTPException as e:
            raise IntegrationFailure("delete_proxy_endpoint", e) from e

    async def direct_channel_id(self, recipient_id: int) -> int:
        user = await self._user(recipient_id)
        channel = user.dm_channel
        if channel is None:
            try:
                channel = await user.create_dm()
            except discord.HTTPException as e:
                raise IntegrationFailure("create_dm", e) from e
        return channel.id

    async def is_most_recent_delivered_message(self, channel_id: int, message_id: int) -> bool:
        channel = await self._channel(channel_id)
        try:
            async for message in channel.history(limit=1):  # type: ignore[attr-defined]
                return message.id == message_id
        except discord.HTTPException as e:
            raise IntegrationFailure("history", e) from e
        return False
