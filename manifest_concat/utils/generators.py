import copy
import logging
from typing import List, Optional

from manifest_concat.const import (
    COMBINED_AUDIO_GROUP_ID,
    COMBINED_AUDIO_GROUP_URI,
    COMBINED_PLAYLIST_URI,
)
from manifest_concat.models import AudioTrack, Manifest, ManifestKind, Playlist, PlaylistAttributes

logger = logging.getLogger(__name__)


def combine_playlists(playlists: List[Playlist], uri_suffix: str = "") -> Playlist:
    """
    Joins the segments of several renditions into one VOD playlist.

    A discontinuity separates the segments of each input, segment numbers are rewritten to
    a dense index and timelines are renumbered from 0, one step per discontinuity.

    Args:
        playlists (List[Playlist]): Resolved renditions, in playback order. Not modified.
        uri_suffix (str): Appended to the synthetic URI. The audio composite needs one, as
            a URI shared with the video composite makes the player treat it as audio only.

    Returns:
        Playlist: The combined playlist.
    """
    combined_segments = []

    for playlist in playlists:
        # segments are rewritten below, the inputs must stay untouched
        cloned_segments = copy.deepcopy(playlist.segments or [])
        if combined_segments and cloned_segments:
            cloned_segments[0].discontinuity = True
        combined_segments.extend(cloned_segments)

    # BANDWIDTH is the peak bandwidth of a stream, so the combined value is the max
    bandwidths = [playlist.attributes.bandwidth for playlist in playlists if playlist.attributes.bandwidth]
    # codecs may differ while being compatible, use the first one declared
    codecs = next((playlist.attributes.codecs for playlist in playlists if playlist.attributes.codecs), None)
    target_durations = [playlist.target_duration for playlist in playlists if playlist.target_duration is not None]

    uri = f"{COMBINED_PLAYLIST_URI}{uri_suffix}"
    combined = Playlist(
        uri=uri,
        resolved_uri=uri,
        attributes=PlaylistAttributes(bandwidth=max(bandwidths) if bandwidths else None, codecs=codecs),
        segments=combined_segments,
        playlist_type="VOD",
        target_duration=max(target_durations, default=0),
        end_list=True,
        media_sequence=0,
        discontinuity_sequence=0,
        discontinuity_starts=[],
    )

    timeline = 0
    for index, segment in enumerate(combined.segments):
        if segment.discontinuity:
            combined.discontinuity_starts.append(index)
            timeline += 1
        segment.number = index
        segment.timeline = timeline

    logger.debug(
        f"Combined {len(playlists)} playlists into {uri} with {len(combined_segments)} segments "
        f"and {len(combined.discontinuity_starts)} discontinuities"
    )
    return combined


def construct_master_manifest(
    video_playlist: Playlist, audio_playlist: Optional[Playlist] = None, uri: str = ""
) -> Manifest:
    """
    Wraps a combined video playlist (and optional combined audio playlist) in a minimal
    master manifest.

    Args:
        video_playlist (Playlist): The combined video rendition.
        audio_playlist (Playlist, optional): The combined demuxed audio rendition.
        uri (str): Placeholder location of the manifest, since no real master exists.

    Returns:
        Manifest: A master manifest holding copies of the given playlists.
    """
    video_playlist = video_playlist.model_copy(deep=True)
    if audio_playlist is not None:
        audio_playlist = audio_playlist.model_copy(deep=True)

    master = Manifest(kind=ManifestKind.MASTER, uri=uri, playlists=[video_playlist])

    if audio_playlist is not None:
        master.media_groups["AUDIO"][COMBINED_AUDIO_GROUP_ID] = {
            "default": AudioTrack(
                autoselect=True,
                default=True,
                # languages of the sources are not reconciled
                language="",
                uri=COMBINED_AUDIO_GROUP_URI,
                playlists=[audio_playlist],
            )
        }
        video_playlist.attributes.audio = COMBINED_AUDIO_GROUP_ID

    return master
