"""Tests for the immutable render model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.deadlock_notifier.schemas.render_model import MatchRenderModel, PlayerStats, TeamStats


def _team(name: str, *, victory: bool = False, players: tuple[PlayerStats, ...] | None = None) -> TeamStats:
    return TeamStats(
        name=name,
        color="#2a3a6a",
        victory=victory,
        total_souls=10,
        players=players if players is not None else (PlayerStats(nickname=f"{name}-1"),),
    )


def test_all_players_lists_team_a_first():
    """Combined roster keeps team A players before team B players."""
    model = MatchRenderModel(
        match_id="1",
        duration="1:00",
        team_a=_team("A", players=(PlayerStats(nickname="a1"), PlayerStats(nickname="a2"))),
        team_b=_team("B", players=(PlayerStats(nickname="b1"),)),
    )
    assert [p.nickname for p in model.all_players] == ["a1", "a2", "b1"]


def test_both_teams_victorious_is_rejected():
    """At most one side can win."""
    with pytest.raises(ValidationError):
        MatchRenderModel(match_id="1", duration="1:00", team_a=_team("A", victory=True), team_b=_team("B", victory=True))


def test_no_winner_is_allowed():
    """An undetermined result keeps both flags false."""
    model = MatchRenderModel(match_id="1", duration="1:00", team_a=_team("A"), team_b=_team("B"))
    assert not model.team_a.victory and not model.team_b.victory


def test_negative_stats_are_rejected():
    """Numeric player fields must be non-negative."""
    with pytest.raises(ValidationError):
        PlayerStats(nickname="x", kills=-1)


def test_empty_roster_is_rejected():
    """Each team needs at least one player."""
    with pytest.raises(ValidationError):
        _team("A", players=())


def test_models_are_frozen():
    """Render models cannot be mutated after construction."""
    player = PlayerStats(nickname="x", kills=3)
    with pytest.raises(ValidationError):
        player.kills = 4  # type: ignore[misc]
