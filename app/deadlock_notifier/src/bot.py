import io
import json
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Protocol

import discord
import httpx
from discord import app_commands
from discord.ext import commands, tasks

from ..schemas.schemas import Rank
from ..schemas.store import RosterStore
from .core import DeadlockNotifierError, configure_logging
from .deadlock_api import DeadlockApiClient
from .notifier import notify_recent_matches

logger = logging.getLogger(__name__)

TOKEN = os.environ.get("DISCORD_TOKEN")
GUILD_ID = os.environ.get("DISCORD_GUILD_ID")
STORAGE_PATH = Path(os.environ.get("ROSTER_STORAGE_PATH", "data/storage.json"))
POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "60"))
DISCORD_MESSAGE_LIMIT = 2000

intents = discord.Intents.default()

bot = commands.Bot(command_prefix="!", intents=intents)

_store: RosterStore | None = None
_ranks: list[Rank] = []


class ResponderFn(Protocol):
    def __call__(self, content: str, *, ephemeral: bool = False) -> Awaitable[None]: ...


class ChannelSendFn(Protocol):
    def __call__(self, *args: Any, **kwargs: Any) -> Awaitable[Any]: ...


def get_store() -> RosterStore:
    """Return the process-wide roster store, loading it on first use."""
    global _store
    if _store is None:
        _store = RosterStore(STORAGE_PATH)
    return _store


def _truncate(content: str, limit: int = DISCORD_MESSAGE_LIMIT) -> str:
    """Trim a message to Discord's length limit."""
    if len(content) <= limit:
        return content
    return content[: limit - 1] + "…"


async def handle_player_stats(steam_id: str, api: DeadlockApiClient, respond_fn: ResponderFn) -> None:
    """Reply with the player card JSON for `steam_id`."""
    try:
        stats = await api.get_player_card(steam_id)
    except (httpx.HTTPError, DeadlockNotifierError) as exc:
        logger.info("Player card lookup failed for %s: %s", steam_id, exc)
        await respond_fn(f"Failed to fetch stats: {exc}")
        return
    await respond_fn(_truncate(f"Stats for Steam ID {steam_id}:\n{json.dumps(stats, indent=2)}"))


async def handle_add_steam_id(steam_id: str, store: RosterStore, respond_fn: ResponderFn) -> None:
    if store.add_steam_id(steam_id):
        await respond_fn(f"Steam ID {steam_id} added.")
    else:
        await respond_fn(f"Steam ID {steam_id} is already in the list.")


async def handle_remove_steam_id(steam_id: str, store: RosterStore, respond_fn: ResponderFn) -> None:
    if store.remove_steam_id(steam_id):
        await respond_fn(f"Steam ID {steam_id} removed.")
    else:
        await respond_fn(f"Steam ID {steam_id} not found in the list.")


async def handle_set_notify_channel(channel_id: int, store: RosterStore, respond_fn: ResponderFn) -> None:
    store.set_channel(channel_id)
    await respond_fn(f"Notification channel set to <#{channel_id}>.")


async def handle_list_steam_ids(store: RosterStore, respond_fn: ResponderFn) -> None:
    steam_ids = store.steam_ids
    if not steam_ids:
        await respond_fn("No Steam IDs stored.")
        return
    await respond_fn(_truncate(f"Stored Steam IDs:\n{', '.join(steam_ids)}"))


def _interaction_responder(interaction: discord.Interaction) -> ResponderFn:
    """Build a responder that answers the interaction, or follows up once it was answered/deferred."""
    async def responder(content: str, *, ephemeral: bool = False) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=ephemeral)
            return
        await interaction.response.send_message(content, ephemeral=ephemeral)

    return responder


@bot.tree.command(name="deadlock", description="Check that the bot is alive")
async def deadlock_command(interaction: discord.Interaction) -> None:
    await interaction.response.send_message("hi")


@bot.tree.command(name="deadlockstats", description="Get Deadlock stats for a Steam ID")
@app_commands.describe(steamid="Steam ID to fetch stats for")
async def deadlock_stats_command(interaction: discord.Interaction, steamid: str) -> None:
    await interaction.response.defer()
    async with DeadlockApiClient() as api:
        await handle_player_stats(steamid, api, _interaction_responder(interaction))


@bot.tree.command(name="addsteamid", description="Add a Steam ID to the notification list")
@app_commands.describe(steamid="Steam ID to add")
async def add_steam_id_command(interaction: discord.Interaction, steamid: str) -> None:
    await handle_add_steam_id(steamid, get_store(), _interaction_responder(interaction))


@bot.tree.command(name="removesteamid", description="Remove a Steam ID from the notification list")
@app_commands.describe(steamid="Steam ID to remove")
async def remove_steam_id_command(interaction: discord.Interaction, steamid: str) -> None:
    await handle_remove_steam_id(steamid, get_store(), _interaction_responder(interaction))


@bot.tree.command(name="setnotifychannel", description="Set the Discord channel for match notifications")
@app_commands.describe(channel="Channel to send notifications to")
async def set_notify_channel_command(interaction: discord.Interaction, channel: discord.TextChannel) -> None:
    await handle_set_notify_channel(channel.id, get_store(), _interaction_responder(interaction))


@bot.tree.command(name="liststeamids", description="List all Steam IDs in the notification list")
async def list_steam_ids_command(interaction: discord.Interaction) -> None:
    await handle_list_steam_ids(get_store(), _interaction_responder(interaction))


async def _send_text(send_fn: ChannelSendFn, content: str) -> None:
    """Send a text message, logging instead of raising when the channel forbids it."""
    try:
        await send_fn(content)
    except discord.Forbidden:
        logger.warning("Missing permission to send messages to the notification channel")


async def _send_png(send_fn: ChannelSendFn, png_bytes: bytes, *, filename: str) -> bool:
    """Send a PNG attachment. Returns False instead of raising when the channel forbids it."""
    try:
        file = discord.File(io.BytesIO(png_bytes), filename=filename)
        await send_fn(file=file)
    except discord.Forbidden:
        logger.warning("Missing permission to attach files in the notification channel")
        return False
    return True


async def _resolve_channel(channel_id: int) -> Any | None:
    """Return the notification channel, or None if it cannot be reached."""
    channel = bot.get_channel(channel_id)
    if channel is not None:
        return channel
    try:
        return await bot.fetch_channel(channel_id)
    except discord.HTTPException:
        logger.warning("Notification channel %s is not reachable", channel_id)
        return None


async def run_poll_pass() -> list[str]:
    """Post scoreboards for any new matches of tracked players."""
    store = get_store()
    if store.channel_id is None or not store.steam_ids:
        return []

    channel = await _resolve_channel(store.channel_id)
    if channel is None or not hasattr(channel, "send"):
        return []

    async def send_text(content: str) -> None:
        await _send_text(channel.send, content)

    async def send_image(png_bytes: bytes, filename: str) -> bool:
        return await _send_png(channel.send, png_bytes, filename=filename)

    async with DeadlockApiClient() as api:
        return await notify_recent_matches(api, store, _ranks, send_text=send_text, send_image=send_image)


@tasks.loop(seconds=POLL_INTERVAL_SECONDS)
async def poll_matches() -> None:
    try:
        await run_poll_pass()
    except Exception:
        logger.exception("Match polling pass failed")


@poll_matches.before_loop
async def _wait_until_ready() -> None:
    await bot.wait_until_ready()


async def load_ranks() -> None:
    """Refresh the cached rank list used for team badge icons."""
    try:
        async with DeadlockApiClient() as api:
            _ranks[:] = await api.get_ranks()
        logger.info("Loaded %d ranks", len(_ranks))
    except Exception:
        logger.exception("Failed to fetch ranks data")


@bot.event
async def on_ready() -> None:
    """Load ranks, sync slash commands and start polling once connected."""
    await load_ranks()
    try:
        if GUILD_ID:
            guild = discord.Object(id=int(GUILD_ID))
            bot.tree.copy_global_to(guild=guild)
            await bot.tree.sync(guild=guild)
        else:
            await bot.tree.sync()
        logger.info("Synced app command tree")
    except Exception:
        logger.exception("Failed to sync app command tree")

    if not poll_matches.is_running():
        poll_matches.start()
    logger.info("Logged in as %s", bot.user)


def main() -> None:
    """Run the Discord bot. This function is safe to import without starting the bot."""
    if not TOKEN:
        raise RuntimeError("DISCORD_TOKEN environment variable not set")

    configure_logging()
    logger.info("Starting Deadlock notifier bot")
    bot.run(TOKEN)


if __name__ == "__main__":  # pragma: no cover
    main()
