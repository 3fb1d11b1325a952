"""Resolve hero art and rank badge references to Pillow images, caching downloads on disk."""

from __future__ import annotations

import hashlib
import io
import logging
from collections.abc import Collection
from pathlib import Path
from urllib.parse import urlparse

import requests
from PIL import Image

REPO_ROOT = Path(__file__).resolve().parents[3]
CACHE_DIR = REPO_ROOT / "data" / "images" / "assets"
DEFAULT_TIMEOUT_SECONDS = 15
DEFAULT_UA = "deadlock-notifier/1.0"

logger = logging.getLogger(__name__)


def _is_remote(reference: str) -> bool:
    """Return True if the reference is an http(s) URL."""
    return urlparse(reference).scheme in ("http", "https")


def _cache_path_for(url: str, cache_dir: Path) -> Path:
    """Map a URL to a stable file name inside the cache directory."""
    suffix = Path(urlparse(url).path).suffix.lower()
    if not suffix or len(suffix) > 6:
        suffix = ".img"
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()
    return cache_dir / f"{digest}{suffix}"


def fetch_asset_bytes(url: str, *, cache_dir: Path | None = CACHE_DIR, timeout: int = DEFAULT_TIMEOUT_SECONDS) -> bytes:
    """Return the bytes behind `url`, downloading them once per cache directory."""
    cache_path = _cache_path_for(url, cache_dir) if cache_dir else None
    if cache_path is not None and cache_path.exists():
        try:
            return cache_path.read_bytes()
        except OSError:
            logger.debug("Failed to read cached asset %s", cache_path, exc_info=True)

    response = requests.get(url, headers={"User-Agent": DEFAULT_UA}, timeout=timeout)
    response.raise_for_status()
    content = response.content

    if cache_path is not None:
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            cache_path.write_bytes(content)
        except OSError:
            logger.debug("Failed to write %s", cache_path, exc_info=True)

    return content


def load_asset_image(
    reference: str,
    *,
    cache_dir: Path | None = CACHE_DIR,
    allow_network: bool = True,
    allowed_hosts: Collection[str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> Image.Image | None:
    """Load an image from a URL or a local path as RGBA, returning None on any failure.

    With `allowed_hosts` set, only http(s) URLs on those hosts are loaded; local
    paths and other hosts are refused.
    """
    if not reference:
        return None
    if allowed_hosts is not None and (not _is_remote(reference) or urlparse(reference).hostname not in allowed_hosts):
        logger.warning("Refusing asset outside the allowed hosts: %s", reference)
        return None

    try:
        if _is_remote(reference):
            if not allow_network:
                return None
            img = Image.open(io.BytesIO(fetch_asset_bytes(reference, cache_dir=cache_dir, timeout=timeout)))
        else:
            img = Image.open(reference)
        img.load()
        return img.convert("RGBA")
    except Exception:
        logger.warning("Failed to load image asset %s", reference, exc_info=True)
        return None
