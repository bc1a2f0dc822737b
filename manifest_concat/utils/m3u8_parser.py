import logging
import re
from typing import Dict, List, Optional
from urllib.parse import urljoin

from manifest_concat.exceptions import ManifestParseError
from manifest_concat.models import (
    AudioTrack,
    ByteRange,
    Manifest,
    ManifestKind,
    Playlist,
    PlaylistAttributes,
    Resolution,
    Segment,
    SegmentKey,
    SegmentMap,
)

logger = logging.getLogger(__name__)

ATTRIBUTE_PATTERN = re.compile(r'([A-Z0-9-]+)=("([^"]*)"|([^,]*))')
INTEGER_ATTRIBUTES = {"BANDWIDTH", "AVERAGE-BANDWIDTH"}


def parse_attribute_list(attributes_str: str) -> Dict[str, str]:
    """Parses an HLS attribute list (``KEY=value,KEY="quoted"``) into a dict."""
    attributes = {}
    for key, raw_value, quoted_val, unquoted_val in ATTRIBUTE_PATTERN.findall(attributes_str):
        attributes[key] = quoted_val if raw_value.startswith('"') else unquoted_val.strip()
    return attributes


def parse_byterange(value: str, previous_end: int = 0) -> ByteRange:
    length, _, offset = value.partition("@")
    return ByteRange(length=int(length), offset=int(offset) if offset else previous_end)


def _stream_attributes(raw_attributes: Dict[str, str]) -> PlaylistAttributes:
    attributes = {}
    for key, value in raw_attributes.items():
        if key in INTEGER_ATTRIBUTES:
            try:
                attributes[key] = int(value)
            except ValueError:
                logger.warning(f"Ignoring invalid {key} value: {value}")
        elif key == "RESOLUTION":
            try:
                width, height = map(int, value.lower().split("x"))
                attributes[key] = Resolution(width=width, height=height)
            except ValueError:
                logger.warning(f"Ignoring invalid RESOLUTION value: {value}")
        else:
            attributes[key] = value
    return PlaylistAttributes.model_validate(attributes)


def _tag_value(line: str) -> str:
    return line.split(":", 1)[1] if ":" in line else ""


def _content_lines(content: str) -> List[str]:
    lines = [line.strip() for line in content.splitlines()]
    lines = [line for line in lines if line]
    if not lines or not lines[0].startswith("#EXTM3U"):
        raise ManifestParseError("Invalid HLS manifest: missing #EXTM3U header")
    return lines


def parse_master_playlist(lines: List[str], url: str) -> Manifest:
    manifest = Manifest(kind=ManifestKind.MASTER, uri=url, resolved_uri=url)
    pending_attributes: Optional[Dict[str, str]] = None

    for line in lines[1:]:
        if line.startswith("#EXT-X-STREAM-INF:"):
            pending_attributes = parse_attribute_list(_tag_value(line))
        elif line.startswith("#EXT-X-MEDIA:"):
            media = parse_attribute_list(_tag_value(line))
            if media.get("TYPE") != "AUDIO":
                logger.debug(f"Ignoring {media.get('TYPE')} rendition {media.get('NAME')}")
                continue
            group = manifest.media_groups["AUDIO"].setdefault(media.get("GROUP-ID", ""), {})
            track = AudioTrack(
                language=media.get("LANGUAGE"),
                default=media.get("DEFAULT") == "YES",
                autoselect=media.get("AUTOSELECT") == "YES",
            )
            if media.get("URI"):
                track.uri = media["URI"]
                track.resolved_uri = urljoin(url, media["URI"])
            group[media.get("NAME", str(len(group)))] = track
        elif not line.startswith("#"):
            if pending_attributes is None:
                logger.warning(f"Ignoring URI without #EXT-X-STREAM-INF: {line}")
                continue
            manifest.playlists.append(
                Playlist(
                    uri=line,
                    resolved_uri=urljoin(url, line),
                    attributes=_stream_attributes(pending_attributes),
                )
            )
            pending_attributes = None

    return manifest


def parse_media_playlist(lines: List[str], url: str) -> Manifest:
    playlist = Playlist(
        uri=url,
        resolved_uri=url,
        segments=[],
        discontinuity_starts=[],
        media_sequence=0,
        discontinuity_sequence=0,
    )
    timeline = 0
    duration: Optional[float] = None
    discontinuity = False
    key: Optional[SegmentKey] = None
    segment_map: Optional[SegmentMap] = None
    byterange: Optional[ByteRange] = None
    previous_byterange_end = 0

    for line in lines[1:]:
        if line.startswith("#EXTINF:"):
            try:
                duration = float(_tag_value(line).split(",", 1)[0])
            except ValueError:
                raise ManifestParseError(f"Invalid #EXTINF duration: {line}")
        elif line.startswith("#EXT-X-TARGETDURATION:"):
            playlist.target_duration = float(_tag_value(line))
        elif line.startswith("#EXT-X-MEDIA-SEQUENCE:"):
            playlist.media_sequence = int(_tag_value(line))
        elif line.startswith("#EXT-X-DISCONTINUITY-SEQUENCE:"):
            playlist.discontinuity_sequence = int(_tag_value(line))
            timeline = playlist.discontinuity_sequence
        elif line.startswith("#EXT-X-PLAYLIST-TYPE:"):
            playlist.playlist_type = _tag_value(line)
        elif line == "#EXT-X-ENDLIST":
            playlist.end_list = True
        elif line == "#EXT-X-DISCONTINUITY":
            discontinuity = True
        elif line.startswith("#EXT-X-BYTERANGE:"):
            byterange = parse_byterange(_tag_value(line), previous_byterange_end)
            previous_byterange_end = byterange.offset + byterange.length
        elif line.startswith("#EXT-X-KEY:"):
            key_attributes = parse_attribute_list(_tag_value(line))
            if key_attributes.get("METHOD", "NONE") == "NONE":
                key = None
            else:
                key = SegmentKey(
                    method=key_attributes["METHOD"],
                    uri=key_attributes.get("URI", ""),
                    resolved_uri=urljoin(url, key_attributes.get("URI", "")),
                    iv=key_attributes.get("IV"),
                )
        elif line.startswith("#EXT-X-MAP:"):
            map_attributes = parse_attribute_list(_tag_value(line))
            segment_map = SegmentMap(
                uri=map_attributes.get("URI", ""),
                resolved_uri=urljoin(url, map_attributes.get("URI", "")),
                byterange=parse_byterange(map_attributes["BYTERANGE"]) if "BYTERANGE" in map_attributes else None,
            )
        elif not line.startswith("#"):
            if discontinuity:
                timeline += 1
                playlist.discontinuity_starts.append(len(playlist.segments))
            playlist.segments.append(
                Segment(
                    uri=line,
                    resolved_uri=urljoin(url, line),
                    duration=duration if duration is not None else playlist.target_duration or 0,
                    discontinuity=True if discontinuity else None,
                    timeline=timeline,
                    key=key.model_copy() if key else None,
                    map=segment_map.model_copy() if segment_map else None,
                    byterange=byterange,
                )
            )
            duration = None
            discontinuity = False
            byterange = None

    return Manifest(kind=ManifestKind.MEDIA, uri=url, resolved_uri=url, playlists=[playlist])


def parse_m3u8(content: str, url: str) -> Manifest:
    """
    Parses HLS manifest text.

    Master playlists yield one rendition per ``#EXT-X-STREAM-INF`` with unresolved
    segments, plus the audio media groups. Media playlists yield a media manifest whose
    single rendition has its segments resolved against ``url``.

    Raises:
        ManifestParseError: If the text is not an HLS manifest.
    """
    lines = _content_lines(content)
    try:
        if any(line.startswith("#EXT-X-STREAM-INF") for line in lines):
            return parse_master_playlist(lines, url)
        return parse_media_playlist(lines, url)
    except ValueError as e:
        raise ManifestParseError(f"Invalid HLS manifest {url}: {e}") from e
