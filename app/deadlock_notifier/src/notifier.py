from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, Awaitable

import httpx

from ..schemas.render_model import MatchRenderModel
from ..schemas.schemas import Rank
from ..schemas.store import RosterStore
from .core import DeadlockNotifierError, ImageEncodeError
from .deadlock_api import DeadlockApiClient
from .match_assembler import gather_match_render_model
from .match_image_renderer import render_match_image

logger = logging.getLogger(__name__)

SendTextFn = Callable[[str], Awaitable[Any]]
SendImageFn = Callable[[bytes, str], Awaitable[bool]]
RenderFn = Callable[[MatchRenderModel], bytes]


async def collect_pending_matches(
    api: DeadlockApiClient,
    store: RosterStore,
    *,
    on_error: SendTextFn | None = None,
) -> dict[str, list[str]]:
    """Map each unsent latest match id to the tracked steam ids that played it."""
    pending: dict[str, list[str]] = {}
    for steam_id in store.steam_ids:
        try:
            history = await api.get_match_history(steam_id)
        except (httpx.HTTPError, DeadlockNotifierError) as exc:
            logger.warning("Failed to fetch match history for %s: %s", steam_id, exc)
            if on_error is not None:
                await on_error(f"Failed to fetch match for Steam ID {steam_id}: {exc}")
            continue

        latest = history[0] if history else None
        if not latest or latest.get("match_id") is None:
            continue

        match_id = str(latest["match_id"])
        if store.last_match_id(steam_id) == match_id:
            continue
        pending.setdefault(match_id, []).append(steam_id)
    return pending


async def notify_recent_matches(
    api: DeadlockApiClient,
    store: RosterStore,
    ranks: Sequence[Rank],
    *,
    send_text: SendTextFn,
    send_image: SendImageFn,
    render: RenderFn = render_match_image,
) -> list[str]:
    """Run one polling pass and return the ids of the matches that were posted."""
    if store.channel_id is None or not store.steam_ids:
        return []

    pending = await collect_pending_matches(api, store, on_error=send_text)
    delivered: list[str] = []
    for match_id, steam_ids in pending.items():
        try:
            model = await gather_match_render_model(api, match_id, ranks)
        except Exception:
            logger.exception("Failed to gather data for match %s", match_id)
            continue

        try:
            png_bytes = await asyncio.to_thread(render, model)
        except ImageEncodeError:
            logger.exception("Failed to render match %s", match_id)
            continue

        if not await send_image(png_bytes, f"match_{match_id}.png"):
            logger.warning("Match %s was not delivered, retrying next pass", match_id)
            continue
        store.mark_sent(match_id, steam_ids)
        delivered.append(match_id)
        logger.info("Posted match %s for %s", match_id, ", ".join(steam_ids))
    return delivered
