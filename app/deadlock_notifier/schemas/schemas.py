from pydantic import BaseModel, ConfigDict, Field


class PlayerStatsSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    player_damage: int | None = 0
    boss_damage: int | None = 0
    player_healing: int | None = 0


class MatchMetadataPlayer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    account_id: int | None = None
    hero_id: int | None = 0
    kills: int | None = None
    deaths: int | None = None
    assists: int | None = None
    team: str | None = None
    net_worth: int | None = None
    stats: list[PlayerStatsSnapshot] = Field(default_factory=list)


class MatchMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    match_id: int
    duration_s: int | None = None
    winning_team: str | None = None
    players: list[MatchMetadataPlayer] = Field(default_factory=list)
    average_badge_team0: int | None = None
    average_badge_team1: int | None = None


class Rank(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tier: int
    name: str = ""
    images: dict[str, str] = Field(default_factory=dict)
    color: str | None = None


class HeroInfo(BaseModel):
    name: str
    image: str = ""


class SteamProfile(BaseModel):
    nickname: str
    avatar: str = ""
