import json
import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class RosterState(BaseModel):
    steam_ids: list[str] = Field(default_factory=list)
    channel_id: int | None = None
    last_match_ids: dict[str, str] = Field(default_factory=dict)


class RosterStore:
    """Tracked players, the notification channel and the last match sent per player, kept in a JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._state = self._read()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def steam_ids(self) -> Sequence[str]:
        return list(self._state.steam_ids)

    @property
    def channel_id(self) -> int | None:
        return self._state.channel_id

    def _read(self) -> RosterState:
        """Load the state from disk; a missing or unreadable file yields an empty roster."""
        if not self._path.exists():
            return RosterState()
        try:
            return RosterState.model_validate(json.loads(self._path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError):
            logger.exception("Failed to read roster storage %s, starting empty", self._path)
            return RosterState()

    def reload(self) -> None:
        self._state = self._read()

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._state.model_dump(), indent=2), encoding="utf-8")

    def add_steam_id(self, steam_id: str) -> bool:
        """Track a player. Returns False if already tracked."""
        if steam_id in self._state.steam_ids:
            return False
        self._state.steam_ids.append(steam_id)
        self.save()
        return True

    def remove_steam_id(self, steam_id: str) -> bool:
        """Stop tracking a player and forget the last match sent for them."""
        if steam_id not in self._state.steam_ids:
            return False
        self._state.steam_ids = [s for s in self._state.steam_ids if s != steam_id]
        self._state.last_match_ids.pop(steam_id, None)
        self.save()
        return True

    def set_channel(self, channel_id: int) -> None:
        self._state.channel_id = int(channel_id)
        self.save()

    def last_match_id(self, steam_id: str) -> str | None:
        return self._state.last_match_ids.get(steam_id)

    def mark_sent(self, match_id: str, steam_ids: Sequence[str]) -> None:
        """Record `match_id` as delivered for every player in `steam_ids`."""
        for steam_id in steam_ids:
            self._state.last_match_ids[str(steam_id)] = str(match_id)
        self.save()
