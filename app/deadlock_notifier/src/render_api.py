import asyncio
import logging
from contextlib import asynccontextmanager
from functools import partial
from urllib.parse import urlparse

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from ..schemas.render_model import MatchRenderModel
from .asset_loader import load_asset_image
from .core import ImageEncodeError, configure_logging
from .deadlock_api import DEADLOCK_ASSETS_URL
from . import match_image_renderer

logger = logging.getLogger(__name__)

# Client-supplied image references are only fetched from the assets host.
TRUSTED_ASSET_HOSTS = frozenset(h for h in (urlparse(DEADLOCK_ASSETS_URL).hostname,) if h)
trusted_asset_loader = partial(load_asset_image, allowed_hosts=TRUSTED_ASSET_HOSTS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup/shutdown hooks for the FastAPI app."""
    configure_logging()
    logger.info("Starting scoreboard render API...")
    yield
    logger.info("Shutting down scoreboard render API...")


app = FastAPI(title="Deadlock Scoreboard Render API", lifespan=lifespan)


def _to_http_exception(exc: Exception) -> HTTPException:
    """Normalize internal exceptions to an HTTPException."""
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ImageEncodeError):
        return HTTPException(status_code=500, detail="Failed to encode scoreboard")
    return HTTPException(status_code=500, detail="Failed to render scoreboard")


@app.post("/render-match/")
async def render_match_endpoint(model: MatchRenderModel):
    """Render a match scoreboard and return it as a PNG image."""
    logger.info("Received render request for match %s", model.match_id)
    try:
        png_bytes = await asyncio.to_thread(
            match_image_renderer.render_match_image, model, asset_loader=trusted_asset_loader
        )
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return Response(content=png_bytes, media_type="image/png")


@app.get("/health")
def health_check():
    """Simple health endpoint for readiness checks."""
    return {"status": "ok"}
