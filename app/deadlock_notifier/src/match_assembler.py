from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from ..schemas.render_model import MatchRenderModel, PlayerStats, TeamStats
from ..schemas.schemas import MatchMetadata, MatchMetadataPlayer, PlayerStatsSnapshot, Rank
from .deadlock_api import DeadlockApiClient

logger = logging.getLogger(__name__)

TEAM_A_ID = "Team0"
TEAM_B_ID = "Team1"
TEAM_A_NAME = "THE SAPPHIRE FLAME"
TEAM_B_NAME = "THE AMBER HAND"
TEAM_A_COLOR = "#2a3a6a"
TEAM_B_COLOR = "#6a5a2a"


def format_duration(duration_s: int | None) -> str:
    """Format seconds as M:SS; unknown durations render as an empty string."""
    if not duration_s or duration_s < 0:
        return ""
    return f"{duration_s // 60}:{duration_s % 60:02d}"


def souls_in_thousands(total_souls: int) -> int:
    """Round a souls total to the nearest thousand, halves rounding up."""
    return math.floor(total_souls / 1000 + 0.5)


def rank_icon_for_badge(average_badge: int | None, ranks: Sequence[Rank]) -> str:
    """Pick the large badge image for a two-digit average badge (tens = tier, ones = subrank)."""
    if not ranks:
        return ""

    fallback = next((r for r in ranks if r.tier == 0), None)
    fallback_url = fallback.images.get("large", "") if fallback is not None else ""

    badge = f"{max(0, average_badge or 0):02d}"
    tier = int(badge[0])
    subrank = int(badge[1])

    rank = next((r for r in ranks if r.tier == tier), None)
    if rank is None or tier == 0:
        return fallback_url
    return rank.images.get(f"large_subrank{subrank}", "")


def _final_snapshot(player: MatchMetadataPlayer) -> PlayerStatsSnapshot:
    """The last stat snapshot holds the end-of-match values."""
    if player.stats:
        return player.stats[-1]
    return PlayerStatsSnapshot()


async def build_player_stats(api: DeadlockApiClient, player: MatchMetadataPlayer) -> PlayerStats:
    """Combine one metadata player with its hero and steam profile lookups."""
    hero = await api.get_hero_info(player.hero_id or 0)
    account_id = "" if player.account_id is None else str(player.account_id)
    profile = await api.get_steam_profile(account_id)
    snapshot = _final_snapshot(player)
    return PlayerStats(
        nickname=profile.nickname,
        avatar=profile.avatar,
        hero_name=hero.name,
        hero_image=hero.image,
        souls=player.net_worth or 0,
        kills=player.kills or 0,
        deaths=player.deaths or 0,
        assists=player.assists or 0,
        player_damage=snapshot.player_damage or 0,
        objective_damage=snapshot.boss_damage or 0,
        healing=snapshot.player_healing or 0,
    )


async def assemble_match_render_model(
    api: DeadlockApiClient,
    metadata: MatchMetadata,
    ranks: Sequence[Rank],
) -> MatchRenderModel:
    """Build the render model for a match from its metadata and per-player lookups."""
    team_a: list[PlayerStats] = []
    team_b: list[PlayerStats] = []
    for player in metadata.players:
        stats = await build_player_stats(api, player)
        if player.team == TEAM_A_ID:
            team_a.append(stats)
        else:
            team_b.append(stats)

    logger.debug(
        "Assembled match %s with %d vs %d players", metadata.match_id, len(team_a), len(team_b)
    )
    return MatchRenderModel(
        match_id=str(metadata.match_id),
        duration=format_duration(metadata.duration_s),
        team_a=TeamStats(
            name=TEAM_A_NAME,
            color=TEAM_A_COLOR,
            victory=metadata.winning_team == TEAM_A_ID,
            total_souls=souls_in_thousands(sum(p.souls for p in team_a)),
            players=tuple(team_a),
            rank_icon=rank_icon_for_badge(metadata.average_badge_team0, ranks),
        ),
        team_b=TeamStats(
            name=TEAM_B_NAME,
            color=TEAM_B_COLOR,
            victory=metadata.winning_team == TEAM_B_ID,
            total_souls=souls_in_thousands(sum(p.souls for p in team_b)),
            players=tuple(team_b),
            rank_icon=rank_icon_for_badge(metadata.average_badge_team1, ranks),
        ),
    )


async def gather_match_render_model(
    api: DeadlockApiClient,
    match_id: str,
    ranks: Sequence[Rank],
) -> MatchRenderModel:
    """Fetch metadata for `match_id` and assemble its render model."""
    metadata = await api.get_match_metadata(int(match_id))
    return await assemble_match_render_model(api, metadata, ranks)
