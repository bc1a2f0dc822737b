"""
Codec resolution for renditions.

Derives a per-rendition description of the audio and video codecs from the CODECS
attribute, borrowing the audio profile from the default alternate audio track when the
rendition itself only names its video codec.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from manifest_concat.models import Manifest, Playlist

logger = logging.getLogger(__name__)

VIDEO_CODEC_PATTERN = re.compile(r"^(avc[13]|hvc1|hev1|av01|vp09|vp8|vp9|mp4v)(.*)$", re.IGNORECASE)
AUDIO_CODEC_PATTERN = re.compile(r"^(mp4a|ac-3|ec-3|opus|flac|mp3|vorbis)(.*)$", re.IGNORECASE)
AUDIO_PROFILE_PATTERN = re.compile(r"^mp4a\.[0-9a-f]+\.([0-9a-f]+)$", re.IGNORECASE)
LEGACY_AVC_PATTERN = re.compile(r"avc1\.(\d+)\.(\d+)", re.IGNORECASE)
CONTENT_TYPE_CODECS_PATTERN = re.compile(r'codecs\s*=\s*"?([^";]*)"?', re.IGNORECASE)

# Video codec families an HTML5 media pipeline can decode from fragmented MP4 or TS.
BROWSER_VIDEO_CODECS = frozenset({"avc1", "avc3", "hvc1", "hev1", "av01", "vp09"})


@dataclass
class CodecDescriptor:
    codec_count: int = 0
    video_codec: Optional[str] = None
    video_object_type_indicator: Optional[str] = None
    audio_profile: Optional[str] = None


@dataclass
class MediaContentTypes:
    """MIME types with codecs for one source, as needed to describe DRM capabilities."""

    video: Optional[str] = None
    audio: Optional[str] = None


def split_codecs(codecs: Optional[str]) -> List[str]:
    return [codec.strip() for codec in (codecs or "").split(",") if codec.strip()]


def parse_codecs(codecs: Optional[str]) -> CodecDescriptor:
    """
    Parses a CODECS string into a CodecDescriptor.

    ``codec_count`` counts the distinct media types recognised (video and/or audio), not
    the number of comma separated entries.
    """
    descriptor = CodecDescriptor()
    has_audio = False

    for codec in split_codecs(codecs):
        video_match = VIDEO_CODEC_PATTERN.match(codec)
        if video_match:
            if descriptor.video_codec is None:
                descriptor.video_codec = video_match.group(1)
                descriptor.video_object_type_indicator = video_match.group(2)
            continue

        if AUDIO_CODEC_PATTERN.match(codec):
            has_audio = True
            profile_match = AUDIO_PROFILE_PATTERN.match(codec)
            if profile_match and descriptor.audio_profile is None:
                descriptor.audio_profile = profile_match.group(1)
            continue

        logger.debug(f"Unrecognised codec entry: {codec}")

    descriptor.codec_count = int(descriptor.video_codec is not None) + int(has_audio)
    return descriptor


def audio_profile_from_default(manifest: Manifest, audio_group_id: Optional[str]) -> Optional[str]:
    """Returns the audio profile of the default track of an audio group, if it declares codecs."""
    audio_group = manifest.audio_group(audio_group_id)
    if not audio_group:
        return None

    for track in audio_group.values():
        if track.default and track.playlists:
            # codec should be the same for all playlists within the track
            return parse_codecs(track.playlists[0].attributes.codecs).audio_profile

    return None


def codecs_for_playlists(manifest: Manifest) -> Dict[str, CodecDescriptor]:
    """
    Maps each rendition's resolved URI to its codec descriptor.

    Renditions without a CODECS attribute are left out so callers can tell "unknown"
    apart from "no codecs".
    """
    codecs_map = {}

    for playlist in manifest.renditions():
        if not playlist.attributes or not playlist.attributes.codecs:
            continue

        descriptor = parse_codecs(playlist.attributes.codecs)

        if descriptor.codec_count == 1 and playlist.attributes.audio:
            audio_profile = audio_profile_from_default(manifest, playlist.attributes.audio)
            if audio_profile:
                descriptor.audio_profile = audio_profile
                descriptor.codec_count += 1

        codecs_map[playlist.resolved_uri] = descriptor

    return codecs_map


def translate_legacy_codec(codec: str) -> str:
    """Rewrites ``avc1.<profile>.<level>`` (decimal) to the ``avc1.PPCCLL`` hex form."""

    def _to_hex(match: re.Match) -> str:
        profile, level = int(match.group(1)), int(match.group(2))
        return f"avc1.{profile:02x}00{level:02x}"

    return LEGACY_AVC_PATTERN.sub(_to_hex, codec)


def map_legacy_avc_codecs(codecs: str) -> str:
    return ",".join(translate_legacy_codec(codec) for codec in split_codecs(codecs))


def video_content_type(playlist: Playlist) -> Optional[str]:
    """Builds the ``video/mp4; codecs=...`` string used for the playback capability check."""
    descriptor = parse_codecs(map_legacy_avc_codecs(playlist.attributes.codecs or ""))
    if descriptor.video_codec is None:
        return None
    return f'video/mp4; codecs="{descriptor.video_codec}{descriptor.video_object_type_indicator}"'


def is_video_codec_supported(content_type: str) -> bool:
    """
    Answers whether a ``video/mp4; codecs="..."`` content type is playable.

    Every codec listed must belong to a browser decodable video family.
    """
    match = CONTENT_TYPE_CODECS_PATTERN.search(content_type)
    if not match:
        return False

    codecs = split_codecs(match.group(1))
    if not codecs:
        return False

    for codec in codecs:
        family = codec.split(".")[0].lower()
        if family not in BROWSER_VIDEO_CODECS:
            logger.debug(f"Video codec {codec} is not supported for playback")
            return False
    return True


def get_audio_and_video_types(
    manifest_objects: List[Manifest], video_playlists: List[Playlist]
) -> List[MediaContentTypes]:
    """
    Returns the audio and video MIME types (with codecs) of each chosen video rendition.

    Only the types that could be determined are set.
    """
    types = []

    for manifest, video_playlist in zip(manifest_objects, video_playlists):
        descriptor = codecs_for_playlists(manifest).get(video_playlist.resolved_uri)
        content_types = MediaContentTypes()

        if descriptor is not None:
            if descriptor.video_codec:
                content_types.video = (
                    f'video/mp4; codecs="{descriptor.video_codec}{descriptor.video_object_type_indicator}"'
                )
            if descriptor.audio_profile:
                content_types.audio = f'audio/mp4; codecs="mp4a.40.{descriptor.audio_profile}"'

        types.append(content_types)

    return types
