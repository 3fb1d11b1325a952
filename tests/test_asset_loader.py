from __future__ import annotations

import io
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests
from PIL import Image

from app.deadlock_notifier.src import asset_loader


def _png_bytes(color=(255, 0, 0, 255), size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class _Resp:
    def __init__(self, content: bytes, status_code: int = 200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


def test_load_local_image_as_rgba(tmp_path: Path):
    path = tmp_path / "hero.png"
    Image.new("RGB", (4, 3), (1, 2, 3)).save(path)

    img = asset_loader.load_asset_image(str(path))

    assert img is not None
    assert img.mode == "RGBA"
    assert img.size == (4, 3)


def test_empty_reference_returns_none():
    assert asset_loader.load_asset_image("") is None


def test_missing_local_file_returns_none(tmp_path: Path):
    assert asset_loader.load_asset_image(str(tmp_path / "missing.png")) is None


def test_remote_asset_is_downloaded_once_and_cached(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """The second load is served from the cache directory without another request."""
    calls: list[str] = []

    def fake_get(url, headers=None, timeout=None):
        calls.append(url)
        assert headers and "User-Agent" in headers
        return _Resp(_png_bytes())

    monkeypatch.setattr(asset_loader, "requests", SimpleNamespace(get=fake_get))
    url = "https://assets.example/heroes/haze_card.png"

    first = asset_loader.load_asset_image(url, cache_dir=tmp_path)
    second = asset_loader.load_asset_image(url, cache_dir=tmp_path)

    assert first is not None and second is not None
    assert calls == [url]
    cached = list(tmp_path.iterdir())
    assert len(cached) == 1 and cached[0].suffix == ".png"


def test_remote_asset_http_error_returns_none(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setattr(
        asset_loader,
        "requests",
        SimpleNamespace(get=lambda url, headers=None, timeout=None: _Resp(b"", status_code=404)),
    )
    assert asset_loader.load_asset_image("https://assets.example/missing.png", cache_dir=tmp_path) is None
    assert list(tmp_path.iterdir()) == []


def test_remote_asset_skipped_when_network_disabled(monkeypatch: pytest.MonkeyPatch):
    def fail_get(*_a, **_k):
        raise AssertionError("network must not be used")

    monkeypatch.setattr(asset_loader, "requests", SimpleNamespace(get=fail_get))
    assert asset_loader.load_asset_image("https://assets.example/x.png", allow_network=False) is None


def test_undecodable_bytes_return_none(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setattr(
        asset_loader,
        "requests",
        SimpleNamespace(get=lambda url, headers=None, timeout=None: _Resp(b"not an image")),
    )
    assert asset_loader.load_asset_image("https://assets.example/broken.webp", cache_dir=tmp_path) is None


def test_cache_path_is_stable_and_keeps_suffix(tmp_path: Path):
    a = asset_loader._cache_path_for("https://x.example/a/b/card.WEBP", tmp_path)
    b = asset_loader._cache_path_for("https://x.example/a/b/card.WEBP", tmp_path)
    c = asset_loader._cache_path_for("https://x.example/noext", tmp_path)

    assert a == b
    assert a.suffix == ".webp"
    assert c.suffix == ".img"
