from pydantic import BaseModel, ConfigDict, Field, model_validator


class PlayerStats(BaseModel):
    """One player's finalized numbers for a single match."""

    model_config = ConfigDict(frozen=True)

    nickname: str
    avatar: str = ""
    hero_name: str = ""
    hero_image: str = ""
    souls: int = Field(default=0, ge=0)
    kills: int = Field(default=0, ge=0)
    deaths: int = Field(default=0, ge=0)
    assists: int = Field(default=0, ge=0)
    player_damage: int = Field(default=0, ge=0)
    objective_damage: int = Field(default=0, ge=0)
    healing: int = Field(default=0, ge=0)


class TeamStats(BaseModel):
    """One side of the scoreboard; players are kept in render order."""

    model_config = ConfigDict(frozen=True)

    name: str
    color: str
    victory: bool = False
    total_souls: int = Field(default=0, ge=0)
    players: tuple[PlayerStats, ...] = Field(min_length=1)
    rank_icon: str = ""


class MatchRenderModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_id: str
    duration: str
    team_a: TeamStats
    team_b: TeamStats

    @model_validator(mode="after")
    def _single_winner(self) -> "MatchRenderModel":
        if self.team_a.victory and self.team_b.victory:
            raise ValueError("Only one team can be victorious")
        return self

    @property
    def all_players(self) -> tuple[PlayerStats, ...]:
        """Team A players followed by team B players."""
        return (*self.team_a.players, *self.team_b.players)
