import logging
import os
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
try:
    from backend.app.errors import InvalidRequest, UnexpectedError, UpstreamError
    from backend.app.services.discovery import find_videos
    from backend.app.services.search_config import DEFAULT_STREAK_CHANNELS, resolve_filter_config
    from backend.app.services.streak import find_streak_channels
    from backend.app.services.youtube_api import PACING_DELAY_SECONDS, YouTubeClient
except ModuleNotFoundError:
    from app.errors import InvalidRequest, UnexpectedError, UpstreamError
    from app.services.discovery import find_videos
    from app.services.search_config import DEFAULT_STREAK_CHANNELS, resolve_filter_config
    from app.services.streak import find_streak_channels
    from app.services.youtube_api import PACING_DELAY_SECONDS, YouTubeClient


logger = logging.getLogger(__name__)

# (mode, has_results) -> CDN policy
CACHE_CONTROL = {
    ("normal", True): "s-maxage=3600, stale-while-revalidate=86400",
    ("normal", False): "s-maxage=300",
    ("streak", True): "s-maxage=21600, stale-while-revalidate=86400",
    ("streak", False): "s-maxage=600",
}
ERROR_HEADERS = {"Cache-Control": "no-store"}


# ---------------------------
# App setup
# ---------------------------

load_dotenv()


def env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def build_client() -> YouTubeClient:
    api_key = (os.getenv("YOUTUBE_API_KEY") or "").strip()
    if not api_key:
        raise InvalidRequest("YOUTUBE_API_KEY is not configured.")
    return YouTubeClient(api_key, pacing_seconds=env_float("YOUTUBE_PACING_SECONDS", PACING_DELAY_SECONDS))


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw or raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["*"], False
    return origins, True

app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(_request: Request, exc: InvalidRequest):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=ERROR_HEADERS,
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(_request: Request, exc: UpstreamError):
    content: dict[str, Any] = {
        "error": f"YouTube {exc.operation} call failed.",
        "details": exc.body,
    }
    if exc.quota_exceeded:
        content["error_code"] = "youtube_quota_exhausted"
    return JSONResponse(status_code=exc.status_code, content=content, headers=ERROR_HEADERS)


def server_error_response(exc: Exception) -> JSONResponse:
    logger.error("search failed unexpectedly", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Unexpected server error.", "details": str(exc)},
        headers=ERROR_HEADERS,
    )


# Handled inside the middleware stack, so the response still carries CORS headers.
@app.exception_handler(UnexpectedError)
async def unexpected_error_handler(_request: Request, exc: UnexpectedError):
    return server_error_response(exc)


# Fallback for anything else; Starlette runs this outside CORSMiddleware.
@app.exception_handler(Exception)
async def server_error_handler(_request: Request, exc: Exception):
    return server_error_response(exc)


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/search")
@app.get("/search")
def search(request: Request, response: Response):
    """
    Find high-view videos from small channels (mode=normal), or small channels that
    are on a run of qualifying uploads (mode=streak).

    Query: q (comma separated terms), model/mode, minViews, maxSubs, minDurationSec,
    days, pages, langs, maxChannels.
    """
    client = build_client()
    config = resolve_filter_config(
        request.query_params,
        max_channels=env_int("STREAK_MAX_CHANNELS", DEFAULT_STREAK_CHANNELS),
    )

    if config.mode == "streak":
        results, stats = find_streak_channels(client, config)
    else:
        results, stats = find_videos(client, config)

    response.headers["Cache-Control"] = CACHE_CONTROL[(config.mode, bool(results))]
    return {
        "items": [result.to_item() for result in results],
        "meta": {
            "total": len(results),
            "mode": config.mode,
            "preset": config.preset,
            "terms": list(config.terms),
            "publishedAfter": config.published_after,
            "upstreamCalls": client.calls,
            **stats,
        },
    }
