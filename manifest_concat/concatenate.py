"""
Manifest concatenation pipeline.

Fetches and parses every source manifest, picks one compatible rendition (plus its
default demuxed audio) per source, resolves their segment lists and splices them into a
single composite manifest.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import httpx

from manifest_concat.configs import settings
from manifest_concat.const import COMBINED_AUDIO_URI_SUFFIX
from manifest_concat.exceptions import ManifestParseError, NoSupportedPlaylistError, SourceValidationError
from manifest_concat.models import Manifest, ManifestKind, Playlist
from manifest_concat.schemas import ManifestSource
from manifest_concat.utils.codecs import get_audio_and_video_types, is_video_codec_supported
from manifest_concat.utils.drm import InitializeKeySystems, create_initialize_key_systems_function
from manifest_concat.utils.generators import combine_playlists, construct_master_manifest
from manifest_concat.utils.http_utils import fetch_all
from manifest_concat.utils.manifest_parser import parse_manifest
from manifest_concat.utils.playlist_selection import choose_audio_playlists, choose_video_playlists
from manifest_concat.utils.validators import CodecSupportCheck, remove_unsupported_playlists

logger = logging.getLogger(__name__)


class _SettingsCodecCheck:
    """Default for the codec check: follow ``settings.check_codec_support``."""


_DEFAULT_CODEC_CHECK = _SettingsCodecCheck()


@dataclass
class ConcatenationResult:
    manifest_object: Manifest
    initialize_key_systems: Optional[InitializeKeySystems] = None


def get_provided_manifests_error(manifests: Optional[Sequence[ManifestSource]]) -> Optional[str]:
    """
    Returns an error message if there's an issue with the provided sources, or None.
    """
    if not manifests:
        return "No sources provided"

    for manifest in manifests:
        if not manifest.url:
            return "All manifests must include a URL"
        if not manifest.mime_type:
            return "All manifests must include a mime type"

    return None


async def resolve_playlists(
    playlists: List[Playlist], mime_types: List[str], client: Optional[httpx.AsyncClient] = None
) -> Dict[str, Playlist]:
    """
    Requests and parses every playlist whose segment list is not known yet.

    Args:
        playlists (List[Playlist]): Renditions to resolve. Already resolved renditions (the
            DASH case) are returned as they are.
        mime_types (List[str]): MIME type of each rendition, one for one with ``playlists``.
        client (httpx.AsyncClient, optional): Client used for the requests.

    Returns:
        Dict[str, Playlist]: Resolved playlist keyed by the original resolved URI.
    """
    resolved = {playlist.resolved_uri: playlist for playlist in playlists if playlist.is_resolved}
    uri_to_mime_type = {}
    for playlist, mime_type in zip(playlists, mime_types):
        uri_to_mime_type.setdefault(playlist.resolved_uri, mime_type)

    # the same rendition may be requested more than once when a video is concatenated with itself
    pending_uris = list(dict.fromkeys(playlist.resolved_uri for playlist in playlists if not playlist.is_resolved))
    if not pending_uris:
        return resolved

    responses = await fetch_all(pending_uris, client=client)

    for uri in pending_uris:
        parsed = parse_manifest(uri, responses[uri], uri_to_mime_type[uri])
        if parsed.kind != ManifestKind.MEDIA:
            raise ManifestParseError(f"Expected a media playlist at {uri}")
        resolved[uri] = parsed.renditions()[0]

    return resolved


async def concatenate_manifests(
    manifests: List[ManifestSource],
    manifest_strings: Dict[str, str],
    target_vertical_resolution: float,
    client: Optional[httpx.AsyncClient] = None,
    video_codec_supported: Optional[CodecSupportCheck] = is_video_codec_supported,
    placeholder_uri: str = "",
) -> ConcatenationResult:
    """
    Builds the composite manifest from already fetched source manifests.

    Raises:
        NoSupportedPlaylistError: If a source has no supported rendition.
        IncompatibilityError: If audio renditions cannot be matched to every video rendition.
    """
    manifest_objects = [
        parse_manifest(manifest.url, manifest_strings[manifest.url], manifest.mime_type) for manifest in manifests
    ]

    supported_playlists = remove_unsupported_playlists(manifest_objects, video_codec_supported)
    for manifest, playlists in zip(manifests, supported_playlists):
        if not playlists:
            logger.warning(f"No supported rendition in {manifest.url}")
            raise NoSupportedPlaylistError("Did not find a supported playlist for each manifest")

    # Video renditions are assumed codec compatible but may differ in resolution.
    video_playlists = choose_video_playlists(supported_playlists, target_vertical_resolution)
    # A rendition must keep playing audio either muxed or demuxed for its whole stream,
    # so demuxed audio has to be present for every source or for none.
    audio_playlists = choose_audio_playlists(manifest_objects, video_playlists)

    # audio renditions pair one for one with the video renditions, so the source mime
    # types apply to both
    mime_types = [manifest.mime_type for manifest in manifests]
    all_playlists = video_playlists + audio_playlists
    resolved = await resolve_playlists(all_playlists, mime_types + mime_types[: len(audio_playlists)], client)

    # pre-resolved (DASH) renditions keep their own segments, their synthetic URIs can
    # collide across sources served from the same directory
    for playlist in all_playlists:
        if playlist.is_resolved:
            continue
        playlist.segments = resolved[playlist.resolved_uri].segments
        playlist.target_duration = resolved[playlist.resolved_uri].target_duration

    combined_video = combine_playlists(video_playlists)
    combined_audio = (
        combine_playlists(audio_playlists, uri_suffix=COMBINED_AUDIO_URI_SUFFIX) if audio_playlists else None
    )
    manifest_object = construct_master_manifest(combined_video, combined_audio, uri=placeholder_uri)

    initialize_key_systems = create_initialize_key_systems_function(
        video_playlists,
        audio_playlists,
        get_audio_and_video_types(manifest_objects, video_playlists),
        [manifest.key_system_options() for manifest in manifests],
    )

    logger.info(
        f"Concatenated {len(manifests)} sources into {len(combined_video.segments)} segments"
        f"{' with demuxed audio' if combined_audio else ''}"
    )
    return ConcatenationResult(manifest_object=manifest_object, initialize_key_systems=initialize_key_systems)


async def concatenate_videos(
    manifests: Optional[List[ManifestSource]],
    target_vertical_resolution: float,
    client: Optional[httpx.AsyncClient] = None,
    video_codec_supported: Union[CodecSupportCheck, None, _SettingsCodecCheck] = _DEFAULT_CODEC_CHECK,
    placeholder_uri: str = "",
) -> ConcatenationResult:
    """
    Returns a single rendition master manifest playing the given sources back to back.

    The rendition closest to ``target_vertical_resolution`` is chosen from each source,
    falling back to bandwidth when no resolution information exists. Only HLS and DASH
    sources are supported.

    Args:
        manifests (List[ManifestSource]): Sources, in playback order.
        target_vertical_resolution (float): Height to select renditions by.
        client (httpx.AsyncClient, optional): Client used for every request.
        video_codec_supported (Callable, optional): Playback capability check; None accepts
            every codec. Defaults to the built-in check unless disabled in the settings.
        placeholder_uri (str): URI given to the composite manifest.

    Returns:
        ConcatenationResult: The composite manifest and, for DRM protected sources, the
        key system initializer.

    Raises:
        SourceValidationError: If the sources are missing or incomplete. No request is made.
        FetchError: If any manifest or playlist request fails.
        IncompatibilityError: If the sources cannot be combined.
        ManifestParseError: If a manifest cannot be parsed.
    """
    error_message = get_provided_manifests_error(manifests)
    if error_message:
        raise SourceValidationError(error_message)

    if isinstance(video_codec_supported, _SettingsCodecCheck):
        video_codec_supported = is_video_codec_supported if settings.check_codec_support else None

    manifest_strings = await fetch_all([manifest.url for manifest in manifests], client=client)

    return await concatenate_manifests(
        manifests,
        manifest_strings,
        target_vertical_resolution,
        client=client,
        video_codec_supported=video_codec_supported,
        placeholder_uri=placeholder_uri,
    )
