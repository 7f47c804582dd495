"""FastAPI application exposing the playlist parser and serializer."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Union

from fastapi import FastAPI, Response

from hls_playlist.config import settings
from hls_playlist.exceptions import PlaylistError, PlaylistRejectedError, PlaylistTooLargeError
from hls_playlist.master_playlist import MasterPlaylist
from hls_playlist.media_playlist import MediaPlaylist
from hls_playlist.models import PlaylistRequest, PlaylistSummary
from hls_playlist.parser import parse
from hls_playlist.serializer import to_text

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

PLAYLIST_MEDIA_TYPE = "application/vnd.apple.mpegurl"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan (startup and shutdown)."""
    logger.info(
        f"Starting HLS playlist service: allowable_excess_duration={settings.allowable_excess_duration}s, "
        f"max_playlist_bytes={settings.max_playlist_bytes}"
    )
    yield
    logger.info("Shutting down HLS playlist service")


# Initialize FastAPI app
app = FastAPI(
    title="HLS Playlist Service",
    description="Parses, validates and canonicalizes HLS (RFC 8216) playlists",
    version=VERSION,
    lifespan=lifespan,
)


def _parse_request(request: PlaylistRequest) -> Union[MediaPlaylist, MasterPlaylist]:
    """
    Parse the playlist carried by a request.

    Raises:
        PlaylistTooLargeError: If the text exceeds the configured size
        PlaylistRejectedError: If the text is not a valid playlist
    """
    size = len(request.content.encode("utf-8"))
    if size > settings.max_playlist_bytes:
        logger.warning(f"Rejecting playlist of {size} bytes")
        raise PlaylistTooLargeError(size, settings.max_playlist_bytes)

    try:
        return parse(
            request.content,
            allowable_excess_duration=request.allowable_excess_duration,
            kind=request.kind,
        )
    except PlaylistError as e:
        logger.warning(f"Playlist rejected: {e}")
        raise PlaylistRejectedError(str(e)) from e


def _summarize(playlist: Union[MediaPlaylist, MasterPlaylist]) -> PlaylistSummary:
    if isinstance(playlist, MediaPlaylist):
        return PlaylistSummary(
            kind="media",
            version=int(playlist.version),
            target_duration=playlist.target_duration,
            segment_count=len(playlist.segments),
            total_duration=playlist.duration,
            unknown_tags=list(playlist.unknown_tags),
            canonical=to_text(playlist),
        )
    return PlaylistSummary(
        kind="master",
        version=int(playlist.version),
        variant_count=len(playlist.variant_streams),
        media_count=len(playlist.media),
        unknown_tags=list(playlist.unknown_tags),
        canonical=to_text(playlist),
    )


@app.post(
    "/api/v1/playlist/parse",
    response_model=PlaylistSummary,
    summary="Parse a playlist",
    description="Parse and validate a media or master playlist and summarize it",
)
async def parse_playlist(request: PlaylistRequest) -> PlaylistSummary:
    """Parse a playlist and return its summary."""
    playlist = _parse_request(request)
    summary = _summarize(playlist)
    logger.info(f"Parsed {summary.kind} playlist: version={summary.version}")
    return summary


@app.post(
    "/api/v1/playlist/normalize",
    summary="Normalize a playlist",
    description="Parse a playlist and return it re-serialized in canonical form",
)
async def normalize_playlist(request: PlaylistRequest) -> Response:
    """Return the canonical text of a playlist."""
    playlist = _parse_request(request)
    return Response(content=to_text(playlist), media_type=PLAYLIST_MEDIA_TYPE)


@app.get(
    "/health",
    summary="Health check",
    description="Health check endpoint",
)
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)
