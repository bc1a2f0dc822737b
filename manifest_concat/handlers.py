import logging

from fastapi import Response
from fastapi.responses import JSONResponse

from manifest_concat.concatenate import ConcatenationResult, concatenate_videos
from manifest_concat.const import HLS_MIME_TYPE
from manifest_concat.exceptions import (
    ConcatenationError,
    FetchError,
    IncompatibilityError,
    ManifestParseError,
    SourceValidationError,
)
from manifest_concat.schemas import ConcatPlaylistParams, ConcatRequest
from manifest_concat.utils.http_utils import create_httpx_client
from manifest_concat.utils.m3u8_writer import render_media_playlist

logger = logging.getLogger(__name__)


def handle_exceptions(exception: Exception) -> Response:
    """
    Handle exceptions and return appropriate HTTP responses.

    Args:
        exception (Exception): The exception that was raised.

    Returns:
        Response: An HTTP response corresponding to the exception type.
    """
    if isinstance(exception, SourceValidationError):
        logger.warning(f"Rejected concatenation request: {exception.message}")
        return JSONResponse(status_code=400, content={"detail": exception.message})
    elif isinstance(exception, FetchError):
        logger.error(f"Error fetching {exception.url}: {exception.message}")
        return JSONResponse(
            status_code=502,
            content={"detail": exception.message, "url": exception.url, "status_code": exception.status_code},
        )
    elif isinstance(exception, (IncompatibilityError, ManifestParseError)):
        logger.warning(f"Sources cannot be concatenated: {exception.message}")
        return JSONResponse(status_code=422, content={"detail": exception.message})
    elif isinstance(exception, ConcatenationError):
        logger.error(f"Concatenation failed: {exception.message}")
        return JSONResponse(status_code=500, content={"detail": exception.message})
    else:
        logger.exception(f"Internal server error while handling request: {exception}")
        return JSONResponse(status_code=500, content={"detail": f"Internal server error: {exception}"})


async def run_concatenation(concat_request: ConcatRequest) -> ConcatenationResult:
    async with create_httpx_client() as client:
        return await concatenate_videos(
            concat_request.manifests,
            concat_request.target_vertical_resolution,
            client=client,
        )


async def handle_concat(concat_request: ConcatRequest) -> Response:
    """
    Concatenate the requested sources and return the composite manifest object.

    Args:
        concat_request (ConcatRequest): The sources and target resolution.

    Returns:
        Response: JSON with ``manifestObject`` and, for DRM protected sources, ``keySystems``
        holding the options of each media keys initializer.
    """
    try:
        result = await run_concatenation(concat_request)
    except Exception as e:
        return handle_exceptions(e)

    content = {"manifestObject": result.manifest_object.to_dict()}
    if result.initialize_key_systems is not None:
        content["keySystems"] = [
            initializer.key_system_options() for initializer in result.initialize_key_systems.initializers
        ]
    return JSONResponse(content=content)


async def handle_concat_playlist(concat_request: ConcatRequest, playlist_params: ConcatPlaylistParams) -> Response:
    """
    Concatenate the requested sources and render one combined rendition as M3U8.

    Args:
        concat_request (ConcatRequest): The sources and target resolution.
        playlist_params (ConcatPlaylistParams): Which combined rendition to render.

    Returns:
        Response: The media playlist, or 404 when audio is requested but the sources carry
        their audio muxed.
    """
    try:
        result = await run_concatenation(concat_request)
    except Exception as e:
        return handle_exceptions(e)

    manifest = result.manifest_object
    if playlist_params.rendition == "audio":
        audio_group = manifest.audio_group(manifest.playlists[0].attributes.audio)
        if not audio_group:
            return JSONResponse(status_code=404, content={"detail": "Sources have no demuxed audio"})
        playlist = next(iter(audio_group.values())).playlists[0]
    else:
        playlist = manifest.playlists[0]

    return Response(content=render_media_playlist(playlist), media_type=HLS_MIME_TYPE)
