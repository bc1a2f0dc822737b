from typing import Annotated

from fastapi import APIRouter, Query

from manifest_concat.handlers import handle_concat, handle_concat_playlist
from manifest_concat.schemas import ConcatPlaylistParams, ConcatRequest

concat_router = APIRouter()


@concat_router.post("")
async def concat_manifests(concat_request: ConcatRequest):
    """
    Concatenate HLS/DASH sources into a single composite manifest object.

    Args:
        concat_request (ConcatRequest): The sources, in playback order, and the target
            vertical resolution.

    Returns:
        Response: The serialised manifest object and DRM key system options.
    """
    return await handle_concat(concat_request)


@concat_router.post("/playlist.m3u8")
async def concat_playlist(
    concat_request: ConcatRequest,
    playlist_params: Annotated[ConcatPlaylistParams, Query()],
):
    """
    Concatenate HLS/DASH sources and render the combined video or audio playlist.

    Args:
        concat_request (ConcatRequest): The sources and target vertical resolution.
        playlist_params (ConcatPlaylistParams): The rendition to render.

    Returns:
        Response: The HLS media playlist.
    """
    return await handle_concat_playlist(concat_request, playlist_params)
