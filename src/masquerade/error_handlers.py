from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from .constants import COLORS, ERROR_MESSAGES
from .errors import AnonRejection, IntegrationFailure
from .utils import safe_embed, safe_send

log = logging.getLogger("masquerade.error_handlers")


def error_embed(message: str) -> discord.Embed:
    return safe_embed("Error", message, COLORS["error"])


async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
    """Tree-wide handler for slash command errors."""
    original = error.original if isinstance(error, app_commands.CommandInvokeError) else error

    if isinstance(original, AnonRejection):
        await safe_send(interaction, embed=error_embed(original.message))
        return

    if isinstance(original, app_commands.MissingPermissions):
        await safe_send(interaction, embed=error_embed(ERROR_MESSAGES["missing_permissions"]))
        return

    if isinstance(original, app_commands.CommandOnCooldown):
        await safe_send(interaction, embed=error_embed(f"This command is on cooldown. Try again in {original.retry_after:.1f}s"))
        return

    if isinstance(original, IntegrationFailure):
        log.warning("Integration failure in /%s: %s", interaction.command.qualified_name if interaction.command else "?", original)
        await safe_send(interaction, embed=error_embed(ERROR_MESSAGES["integration_failure"]))
        return

    log.exception("Unexpected error in app command %s", interaction.command, exc_info=original)
    await safe_send(interaction, embed=error_embed(ERROR_MESSAGES["unexpected"]))


async def setup_error_handlers(bot: commands.Bot) -> None:
    bot.tree.on_error = on_app_command_error  # type: ignore[method-assign]
