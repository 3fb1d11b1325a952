"""Async client for the community Deadlock API (match data, profiles, ranks and hero assets)."""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
from pydantic import ValidationError

from ..schemas.schemas import HeroInfo, MatchMetadata, Rank, SteamProfile
from .core import DeadlockApiError

logger = logging.getLogger(__name__)

DEADLOCK_API_URL = os.environ.get("DEADLOCK_API_URL", "https://api.deadlock-api.com")
DEADLOCK_ASSETS_URL = os.environ.get("DEADLOCK_ASSETS_URL", "https://assets.deadlock-api.com")
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_HEADERS = {
    "User-Agent": "deadlock-notifier/1.0",
    "Accept": "application/json",
}


class DeadlockApiClient:
    """Thin wrapper over `httpx.AsyncClient`; use as an async context manager."""

    def __init__(
        self,
        *,
        api_url: str = DEADLOCK_API_URL,
        assets_url: str = DEADLOCK_ASSETS_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.assets_url = assets_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, headers=DEFAULT_HEADERS, transport=transport)
        self._hero_cache: dict[int, HeroInfo] = {}

    async def __aenter__(self) -> "DeadlockApiClient":
        return self

    async def __aexit__(self, exc_type, exc, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET a JSON document, raising DeadlockApiError on non-2xx responses."""
        resp = await self._client.get(url, params=params)
        if resp.status_code < 200 or resp.status_code >= 300:
            raise DeadlockApiError(status_code=resp.status_code, detail=resp.text)
        try:
            return resp.json()
        except ValueError as exc:
            raise DeadlockApiError(status_code=resp.status_code, detail="Invalid JSON response") from exc

    async def get_match_metadata(self, match_id: int) -> MatchMetadata:
        """Fetch full metadata, including player info and stat snapshots, for one match."""
        data = await self._get_json(
            f"{self.api_url}/v1/matches/metadata",
            params={
                "include_player_info": "true",
                "include_player_stats": "true",
                "match_ids": str(match_id),
            },
        )
        if not isinstance(data, list) or not data:
            raise DeadlockApiError(status_code=200, detail="Invalid match metadata response")
        try:
            return MatchMetadata.model_validate(data[0])
        except ValidationError as exc:
            raise DeadlockApiError(status_code=200, detail=f"Invalid match metadata: {exc}") from exc

    async def get_steam_profile(self, account_id: str) -> SteamProfile:
        """Fetch a player's steam name and avatar, with a placeholder name when unknown."""
        data = await self._get_json(f"{self.api_url}/v1/players/steam", params={"account_ids": account_id})
        entry = data[0] if isinstance(data, list) and data else {}
        return SteamProfile(
            nickname=entry.get("personaname") or f"Steam User {account_id}",
            avatar=entry.get("avatarfull") or "",
        )

    async def get_ranks(self, language: str = "english") -> list[Rank]:
        data = await self._get_json(f"{self.assets_url}/v2/ranks", params={"language": language})
        if not isinstance(data, list):
            raise DeadlockApiError(status_code=200, detail="Invalid ranks response")
        return [Rank.model_validate(item) for item in data]

    async def get_hero_info(self, hero_id: int) -> HeroInfo:
        """Fetch a hero's display name and card image, memoized per client."""
        cached = self._hero_cache.get(hero_id)
        if cached is not None:
            return cached

        data = await self._get_json(f"{self.assets_url}/v2/heroes/{hero_id}")
        images = data.get("images") or {}
        hero = HeroInfo(
            name=data.get("name") or f"Hero {hero_id}",
            image=images.get("icon_hero_card_webp") or "",
        )
        self._hero_cache[hero_id] = hero
        return hero

    async def get_match_history(self, account_id: str) -> list[dict[str, Any]]:
        """Return a player's match history, newest first."""
        data = await self._get_json(f"{self.api_url}/v1/players/{account_id}/match-history")
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return list(data.get("matches") or [])
        return []

    async def get_player_card(self, account_id: str) -> Any:
        return await self._get_json(f"{self.api_url}/v1/players/{account_id}/card")
