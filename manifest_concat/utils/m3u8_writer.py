import logging
import math
from typing import List, Optional

from manifest_concat.models import ByteRange, Playlist, SegmentKey, SegmentMap

logger = logging.getLogger(__name__)


def _byterange_value(byterange: ByteRange) -> str:
    return f"{byterange.length}@{byterange.offset}"


def _key_line(key: Optional[SegmentKey]) -> str:
    if key is None:
        return "#EXT-X-KEY:METHOD=NONE"
    line = f'#EXT-X-KEY:METHOD={key.method},URI="{key.resolved_uri or key.uri}"'
    if key.iv:
        line += f",IV={key.iv}"
    return line


def _map_line(segment_map: SegmentMap) -> str:
    line = f'#EXT-X-MAP:URI="{segment_map.resolved_uri or segment_map.uri}"'
    if segment_map.byterange:
        line += f',BYTERANGE="{_byterange_value(segment_map.byterange)}"'
    return line


def render_media_playlist(playlist: Playlist) -> str:
    """
    Renders a resolved playlist as an HLS media playlist.

    Args:
        playlist (Playlist): A playlist with its segments, typically a combined one.

    Returns:
        str: The M3U8 text. Segment, key and map URIs are written resolved.
    """
    segments = playlist.segments or []
    target_duration = playlist.target_duration
    if not target_duration:
        target_duration = max((segment.duration for segment in segments), default=0)

    hls: List[str] = [
        "#EXTM3U",
        "#EXT-X-VERSION:6",
        f"#EXT-X-TARGETDURATION:{math.ceil(target_duration)}",
        f"#EXT-X-MEDIA-SEQUENCE:{playlist.media_sequence or 0}",
        f"#EXT-X-DISCONTINUITY-SEQUENCE:{playlist.discontinuity_sequence or 0}",
    ]
    if playlist.playlist_type:
        hls.append(f"#EXT-X-PLAYLIST-TYPE:{playlist.playlist_type}")

    current_key: Optional[SegmentKey] = None
    current_map: Optional[SegmentMap] = None

    for segment in segments:
        if segment.discontinuity:
            hls.append("#EXT-X-DISCONTINUITY")
        if segment.key != current_key:
            hls.append(_key_line(segment.key))
            current_key = segment.key
        if segment.map is not None and segment.map != current_map:
            hls.append(_map_line(segment.map))
            current_map = segment.map
        hls.append(f"#EXTINF:{segment.duration:.3f},")
        if segment.byterange:
            hls.append(f"#EXT-X-BYTERANGE:{_byterange_value(segment.byterange)}")
        hls.append(segment.resolved_uri or segment.uri)

    if playlist.end_list:
        hls.append("#EXT-X-ENDLIST")

    logger.debug(f"Rendered {len(segments)} segments for {playlist.uri}")
    return "\n".join(hls) + "\n"
