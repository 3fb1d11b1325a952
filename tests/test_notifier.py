from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from app.deadlock_notifier.schemas.render_model import MatchRenderModel, PlayerStats, TeamStats
from app.deadlock_notifier.schemas.store import RosterStore
from app.deadlock_notifier.src import notifier
from app.deadlock_notifier.src.core import DeadlockApiError, ImageEncodeError


def _model(match_id: str) -> MatchRenderModel:
    team = TeamStats(name="T", color="#2a3a6a", players=(PlayerStats(nickname="p"),))
    return MatchRenderModel(match_id=match_id, duration="1:00", team_a=team, team_b=team)


class _FakeApi:
    def __init__(self, histories: dict[str, object]):
        self.histories = histories

    async def get_match_history(self, account_id: str):
        value = self.histories[account_id]
        if isinstance(value, Exception):
            raise value
        return value


class _Outbox:
    def __init__(self, deliver: bool = True):
        self.deliver = deliver
        self.texts: list[str] = []
        self.images: list[tuple[bytes, str]] = []

    async def send_text(self, content: str) -> None:
        self.texts.append(content)

    async def send_image(self, png_bytes: bytes, filename: str) -> bool:
        self.images.append((png_bytes, filename))
        return self.deliver


@pytest.fixture
def store(tmp_path: Path) -> RosterStore:
    s = RosterStore(tmp_path / "storage.json")
    s.set_channel(42)
    for steam_id in ("1", "2", "3"):
        s.add_steam_id(steam_id)
    return s


def _patch_gather(monkeypatch: pytest.MonkeyPatch, failing: set[str] | None = None) -> list[str]:
    gathered: list[str] = []

    async def fake_gather(_api, match_id, _ranks):
        gathered.append(match_id)
        if failing and match_id in failing:
            raise DeadlockApiError(status_code=500, detail="boom")
        return _model(match_id)

    monkeypatch.setattr(notifier, "gather_match_render_model", fake_gather)
    return gathered


def _run(api, store, outbox, render=lambda model: b"png:" + model.match_id.encode()):
    return asyncio.run(
        notifier.notify_recent_matches(
            api, store, [], send_text=outbox.send_text, send_image=outbox.send_image, render=render
        )
    )


def test_shared_match_is_posted_once_and_marked_for_all_players(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    gathered = _patch_gather(monkeypatch)
    api = _FakeApi({"1": [{"match_id": 10}, {"match_id": 9}], "2": [{"match_id": 10}], "3": [{"match_id": 11}]})
    outbox = _Outbox()

    delivered = _run(api, store, outbox)

    assert delivered == ["10", "11"]
    assert gathered == ["10", "11"]
    assert outbox.images == [(b"png:10", "match_10.png"), (b"png:11", "match_11.png")]
    assert [store.last_match_id(s) for s in ("1", "2", "3")] == ["10", "10", "11"]


def test_already_sent_matches_are_skipped(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    gathered = _patch_gather(monkeypatch)
    store.mark_sent("10", ["1", "2"])
    api = _FakeApi({"1": [{"match_id": 10}], "2": [{"match_id": 10}], "3": []})

    assert _run(api, store, _Outbox()) == []
    assert gathered == []


def test_history_errors_are_reported_and_other_players_continue(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    _patch_gather(monkeypatch)
    api = _FakeApi(
        {
            "1": httpx.ConnectError("offline"),
            "2": DeadlockApiError(status_code=404, detail="unknown player"),
            "3": [{"match_id": 12}],
        }
    )
    outbox = _Outbox()

    assert _run(api, store, outbox) == ["12"]
    assert outbox.texts[0].startswith("Failed to fetch match for Steam ID 1:")
    assert outbox.texts[1] == "Failed to fetch match for Steam ID 2: Deadlock API error (404): unknown player"


def test_assembly_failure_skips_match_without_marking(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    _patch_gather(monkeypatch, failing={"10"})
    api = _FakeApi({"1": [{"match_id": 10}], "2": [{"match_id": 11}], "3": []})
    outbox = _Outbox()

    assert _run(api, store, outbox) == ["11"]
    assert store.last_match_id("1") is None
    assert store.last_match_id("2") == "11"


def test_encode_failure_skips_match(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    _patch_gather(monkeypatch)
    api = _FakeApi({"1": [{"match_id": 10}], "2": [], "3": []})
    outbox = _Outbox()

    def broken_render(_model):
        raise ImageEncodeError("cannot encode")

    assert _run(api, store, outbox, render=broken_render) == []
    assert outbox.images == []
    assert store.last_match_id("1") is None


def test_nothing_happens_without_a_channel(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    gathered = _patch_gather(monkeypatch)
    store = RosterStore(tmp_path / "storage.json")
    store.add_steam_id("1")

    assert _run(_FakeApi({"1": [{"match_id": 10}]}), store, _Outbox()) == []
    assert gathered == []


def test_history_entries_without_match_id_are_ignored(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    _patch_gather(monkeypatch)
    api = _FakeApi({"1": [{"hero_id": 3}], "2": [{}], "3": []})
    assert _run(api, store, _Outbox()) == []


def test_undelivered_image_is_not_marked_sent(monkeypatch: pytest.MonkeyPatch, store: RosterStore):
    """A send that was refused leaves the match pending for the next pass."""
    _patch_gather(monkeypatch)
    api = _FakeApi({"1": [{"match_id": 10}], "2": [], "3": []})
    outbox = _Outbox(deliver=False)

    assert _run(api, store, outbox) == []
    assert outbox.images == [(b"png:10", "match_10.png")]
    assert store.last_match_id("1") is None
