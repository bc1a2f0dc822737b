import logging
from typing import List, Optional

from manifest_concat.const import DEFAULT_BANDWIDTH
from manifest_concat.exceptions import IncompleteAudioSetError, MismatchedCountError
from manifest_concat.models import Manifest, Playlist

logger = logging.getLogger(__name__)


def _resolution_distance(playlist: Playlist, target_vertical_resolution: float) -> float:
    return abs(playlist.attributes.resolution.height - target_vertical_resolution)


def _bandwidth_distance(playlist: Playlist) -> float:
    if playlist.attributes.bandwidth is None:
        return float("inf")
    return abs(playlist.attributes.bandwidth - DEFAULT_BANDWIDTH)


def _closer_playlist(selected: Playlist, candidate: Playlist, target_vertical_resolution: float) -> Playlist:
    if candidate.attributes.resolution:
        if not selected.attributes.resolution:
            return candidate
        if _resolution_distance(candidate, target_vertical_resolution) < _resolution_distance(
            selected, target_vertical_resolution
        ):
            return candidate
        return selected

    if selected.attributes.resolution:
        return selected

    return candidate if _bandwidth_distance(candidate) < _bandwidth_distance(selected) else selected


def choose_video_playlists(
    manifests_playlists: List[List[Playlist]], target_vertical_resolution: float
) -> List[Playlist]:
    """
    Picks, from each manifest's candidates, the rendition closest to the target height.

    Renditions with RESOLUTION always win over renditions without it. When none declare a
    resolution, the one whose BANDWIDTH is closest to DEFAULT_BANDWIDTH wins. Ties keep the
    earlier candidate.
    """
    chosen = []

    for candidates in manifests_playlists:
        selected = candidates[0]
        for candidate in candidates[1:]:
            selected = _closer_playlist(selected, candidate, target_vertical_resolution)

        logger.debug(f"Selected video rendition {selected.resolved_uri} out of {len(candidates)}")
        chosen.append(selected)

    return chosen


def choose_audio_playlists(manifest_objects: List[Manifest], video_playlists: List[Playlist]) -> List[Playlist]:
    """
    Picks the default demuxed audio rendition matching each chosen video rendition.

    Only tracks flagged as default are considered, so alternate audio is not supported.
    Either every video rendition gets an audio rendition, or none does.

    Raises:
        MismatchedCountError: If the manifest and video rendition counts differ.
        IncompleteAudioSetError: If only some of the video renditions have demuxed audio.
    """
    if len(manifest_objects) != len(video_playlists):
        raise MismatchedCountError("Invalid number of video playlists for provided manifests")

    audio_playlists = []

    for manifest, video_playlist in zip(manifest_objects, video_playlists):
        audio_group = manifest.audio_group(video_playlist.attributes.audio)
        if not audio_group:
            continue

        audio_playlist: Optional[Playlist] = None
        for track in audio_group.values():
            # tracks without a URI or playlists only identify muxed audio
            if track.default and track.has_media:
                audio_playlist = track.as_playlist()
                break

        if audio_playlist is not None:
            audio_playlists.append(audio_playlist)

    if audio_playlists and len(audio_playlists) != len(video_playlists):
        raise IncompleteAudioSetError("Did not find matching audio playlists for all video playlists")

    return audio_playlists
