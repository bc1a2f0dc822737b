import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
from urllib.parse import urljoin

import xmltodict
from xml.parsers.expat import ExpatError

from manifest_concat.const import COMBINED_AUDIO_GROUP_ID, KEY_SYSTEMS_BY_SCHEME
from manifest_concat.exceptions import ManifestParseError
from manifest_concat.models import (
    AudioTrack,
    ByteRange,
    Manifest,
    ManifestKind,
    Playlist,
    PlaylistAttributes,
    ProtectionHeader,
    Resolution,
    Segment,
    SegmentMap,
)

logger = logging.getLogger(__name__)

TEMPLATE_IDENTIFIER_PATTERN = re.compile(r"\$(RepresentationID|Number|Bandwidth|Time)(?:%0(\d+)d)?\$")


def parse_mpd(mpd_content: Union[str, bytes]) -> dict:
    """Parses the MPD content into a dictionary."""
    try:
        return xmltodict.parse(mpd_content)
    except ExpatError as e:
        raise ManifestParseError(f"Invalid MPD: {e}") from e


def parse_duration(duration_str: str) -> float:
    """Parses a duration ISO 8601 string into seconds."""
    pattern = re.compile(r"P(?:(\d+)Y)?(?:(\d+)M)?(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?")
    match = pattern.match(duration_str)
    if not match:
        raise ManifestParseError(f"Invalid duration format: {duration_str}")

    years, months, days, hours, minutes, seconds = [float(g) if g else 0 for g in match.groups()]
    return years * 365 * 24 * 3600 + months * 30 * 24 * 3600 + days * 24 * 3600 + hours * 3600 + minutes * 60 + seconds


def _as_list(value) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _text(value) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("#text")
    return value


def _get_key(adaptation: dict, representation: dict, key: str) -> Optional[str]:
    """Retrieves a key from the representation or adaptation set."""
    return representation.get(key, adaptation.get(key, None))


def resolve_base_url(parent_base: str, node: dict) -> str:
    """Applies the first BaseURL child of ``node`` to ``parent_base``."""
    base_urls = _as_list(node.get("BaseURL"))
    if not base_urls:
        return parent_base
    base = _text(base_urls[0])
    return urljoin(parent_base, base.strip()) if base else parent_base


def fill_template(template: str, representation_id: str, bandwidth: int, number: int = 0, time: int = 0) -> str:
    """Substitutes the $Identifier$ placeholders of a SegmentTemplate attribute."""
    values = {"RepresentationID": representation_id, "Bandwidth": bandwidth, "Number": number, "Time": time}

    def _replace(match: re.Match) -> str:
        value = values[match.group(1)]
        if match.group(2) and isinstance(value, int):
            return f"{value:0{int(match.group(2))}d}"
        return str(value)

    return TEMPLATE_IDENTIFIER_PATTERN.sub(_replace, template).replace("$$", "$")


def extract_content_protection(*nodes: dict) -> Dict[str, ProtectionHeader]:
    """Collects ContentProtection elements, keyed by key system name."""
    content_protection = {}

    for node in nodes:
        for protection in _as_list(node.get("ContentProtection")):
            scheme_id_uri = protection.get("@schemeIdUri", "").lower()
            key_system = KEY_SYSTEMS_BY_SCHEME.get(scheme_id_uri)
            if key_system is None:
                logger.debug(f"Ignoring unknown content protection scheme {scheme_id_uri}")
                continue

            header = content_protection.setdefault(key_system, ProtectionHeader())
            pssh = _text(protection.get("cenc:pssh"))
            if pssh:
                header.pssh = pssh.strip()
            if "@cenc:default_KID" in protection:
                header.key_id = protection["@cenc:default_KID"].replace("-", "")

    return content_protection


def generate_template_segments(
    template: dict, representation_id: str, bandwidth: int, base_url: str, period_duration: float
) -> List[Segment]:
    """Expands a SegmentTemplate into the segment list of a static presentation."""
    timescale = int(template.get("@timescale", 1))
    start_number = int(template.get("@startNumber", 1))
    presentation_time_offset = int(template.get("@presentationTimeOffset", 0))
    media_template = template.get("@media")
    if not media_template:
        raise ManifestParseError(f"SegmentTemplate of {representation_id} has no media attribute")

    segment_map = None
    if "@initialization" in template:
        init_uri = fill_template(template["@initialization"], representation_id, bandwidth)
        segment_map = SegmentMap(uri=init_uri, resolved_uri=urljoin(base_url, init_uri))

    entries = []  # (number, time, duration) in timescale units
    if "SegmentTimeline" in template:
        current_time = 0
        number = start_number
        period_end = period_duration * timescale + presentation_time_offset
        for s_tag in _as_list(template["SegmentTimeline"].get("S")):
            current_time = int(s_tag.get("@t", current_time))
            duration = int(s_tag["@d"])
            if duration <= 0:
                raise ManifestParseError(f"SegmentTimeline of {representation_id} has a non-positive duration")
            repeat = int(s_tag.get("@r", 0))
            if repeat < 0:
                repeat = max(math.ceil((period_end - current_time) / duration) - 1, 0)
            for _ in range(repeat + 1):
                entries.append((number, current_time, duration))
                current_time += duration
                number += 1
    elif "@duration" in template:
        duration = int(template["@duration"])
        if duration <= 0:
            raise ManifestParseError(f"SegmentTemplate of {representation_id} has a non-positive duration")
        segment_count = math.ceil(period_duration * timescale / duration)
        entries = [
            (start_number + i, presentation_time_offset + i * duration, duration) for i in range(segment_count)
        ]
    else:
        raise ManifestParseError(f"SegmentTemplate of {representation_id} has neither duration nor timeline")

    segments = []
    for number, time, duration in entries:
        uri = fill_template(media_template, representation_id, bandwidth, number, time)
        segments.append(
            Segment(
                uri=uri,
                resolved_uri=urljoin(base_url, uri),
                duration=duration / timescale,
                map=segment_map.model_copy() if segment_map else None,
            )
        )
    return segments


def generate_list_segments(segment_list: dict, base_url: str) -> List[Segment]:
    """Expands a SegmentList into segments."""
    timescale = int(segment_list.get("@timescale", 1))
    duration = int(segment_list.get("@duration", 0)) / timescale

    segment_map = None
    initialization = segment_list.get("Initialization")
    if initialization and initialization.get("@sourceURL"):
        segment_map = SegmentMap(
            uri=initialization["@sourceURL"], resolved_uri=urljoin(base_url, initialization["@sourceURL"])
        )

    return [
        Segment(
            uri=segment_url["@media"],
            resolved_uri=urljoin(base_url, segment_url["@media"]),
            duration=duration,
            map=segment_map.model_copy() if segment_map else None,
        )
        for segment_url in _as_list(segment_list.get("SegmentURL"))
    ]


def generate_base_segments(segment_base: Optional[dict], base_url: str, period_duration: float) -> List[Segment]:
    """A SegmentBase (or a bare BaseURL) addresses the whole resource as one segment."""
    segment_map = None
    initialization = (segment_base or {}).get("Initialization")
    if initialization and "@range" in initialization:
        start, end = map(int, initialization["@range"].split("-"))
        segment_map = SegmentMap(
            uri=base_url, resolved_uri=base_url, byterange=ByteRange(length=end - start + 1, offset=start)
        )
    return [Segment(uri=base_url, resolved_uri=base_url, duration=period_duration, map=segment_map)]


@dataclass
class _RepresentationEntry:
    content_type: str
    playlist: Playlist
    language: Optional[str] = None
    role: Optional[str] = None
    period_segments: List[List[Segment]] = field(default_factory=list)


def _content_type(adaptation: dict, representation: dict) -> Optional[str]:
    mime_type = _get_key(adaptation, representation, "@mimeType") or ""
    content_type = adaptation.get("@contentType") or mime_type.split("/")[0]
    if not content_type:
        codecs = _get_key(adaptation, representation, "@codecs") or ""
        content_type = "audio" if codecs.startswith("mp4a") else "video"
    return content_type if content_type in ("video", "audio") else None


def _role(adaptation: dict) -> Optional[str]:
    for role in _as_list(adaptation.get("Role")):
        if isinstance(role, dict) and role.get("@value"):
            return role["@value"]
    return None


def _representation_segments(
    adaptation: dict, representation: dict, representation_id: str, bandwidth: int, base_url: str, period_duration
) -> List[Segment]:
    template = representation.get("SegmentTemplate") or adaptation.get("SegmentTemplate")
    if template:
        # representation level attributes override the adaptation set level ones
        if representation.get("SegmentTemplate") and adaptation.get("SegmentTemplate"):
            template = {**adaptation["SegmentTemplate"], **representation["SegmentTemplate"]}
        return generate_template_segments(template, representation_id, bandwidth, base_url, period_duration)

    segment_list = representation.get("SegmentList") or adaptation.get("SegmentList")
    if segment_list:
        return generate_list_segments(segment_list, base_url)

    return generate_base_segments(
        representation.get("SegmentBase") or adaptation.get("SegmentBase"), base_url, period_duration
    )


def parse_dash_manifest(mpd_content: Union[str, bytes], mpd_url: str) -> Manifest:
    """
    Parses a static MPD into a master manifest with pre-resolved segment lists.

    Video representations become renditions. Audio representations become tracks of the
    ``audio`` media group, and video renditions reference that group when it exists.
    Representations spanning several periods are joined with a discontinuity at each
    period boundary.

    Raises:
        ManifestParseError: For live (dynamic) or malformed MPDs.
    """
    mpd = parse_mpd(mpd_content).get("MPD")
    if mpd is None:
        raise ManifestParseError("Invalid MPD: missing MPD element")
    if mpd.get("@type", "static").lower() == "dynamic":
        raise ManifestParseError("Live DASH manifests are not supported")

    presentation_duration = parse_duration(mpd.get("@mediaPresentationDuration", "PT0S"))
    mpd_base = resolve_base_url(mpd_url, mpd)
    periods = _as_list(mpd.get("Period"))
    if not periods:
        raise ManifestParseError("Invalid MPD: no Period element")

    entries: Dict[str, _RepresentationEntry] = {}
    elapsed = 0.0

    for period_index, period in enumerate(periods):
        if "@duration" in period:
            period_duration = parse_duration(period["@duration"])
        else:
            period_duration = max(presentation_duration - elapsed, 0)
        elapsed += period_duration
        period_base = resolve_base_url(mpd_base, period)

        for adaptation in _as_list(period.get("AdaptationSet")):
            adaptation_base = resolve_base_url(period_base, adaptation)

            for representation in _as_list(adaptation.get("Representation")):
                content_type = _content_type(adaptation, representation)
                if content_type is None:
                    continue

                representation_id = representation.get("@id") or adaptation.get("@id") or str(len(entries))
                bandwidth = int(_get_key(adaptation, representation, "@bandwidth") or 0)
                base_url = resolve_base_url(adaptation_base, representation)
                segments = _representation_segments(
                    adaptation, representation, representation_id, bandwidth, base_url, period_duration
                )
                for segment in segments:
                    segment.timeline = period_index

                entry = entries.get(representation_id)
                if entry is None:
                    attributes = {"BANDWIDTH": bandwidth or None, "CODECS": _get_key(adaptation, representation, "@codecs")}
                    height = _get_key(adaptation, representation, "@height")
                    if content_type == "video" and height:
                        width = int(_get_key(adaptation, representation, "@width") or 0)
                        attributes["RESOLUTION"] = Resolution(width=width, height=int(height))
                    entry = _RepresentationEntry(
                        content_type=content_type,
                        playlist=Playlist(
                            attributes=PlaylistAttributes.model_validate(attributes),
                            content_protection=extract_content_protection(adaptation, representation) or None,
                        ),
                        language=_get_key(adaptation, representation, "@lang"),
                        role=_role(adaptation),
                    )
                    entries[representation_id] = entry
                elif segments:
                    segments[0].discontinuity = True

                entry.period_segments.append(segments)

    manifest = Manifest(kind=ManifestKind.MASTER, uri=mpd_url, resolved_uri=mpd_url)
    audio_tracks: Dict[str, AudioTrack] = {}

    for entry in entries.values():
        playlist = entry.playlist
        playlist.segments = [segment for segments in entry.period_segments for segment in segments]
        playlist.discontinuity_starts = [i for i, segment in enumerate(playlist.segments) if segment.discontinuity]
        playlist.target_duration = max((segment.duration for segment in playlist.segments), default=0)
        playlist.media_sequence = 0
        playlist.discontinuity_sequence = 0
        playlist.playlist_type = "VOD"
        playlist.end_list = True

        if entry.content_type == "video":
            playlist.uri = f"placeholder-uri-{len(manifest.playlists)}"
            playlist.resolved_uri = urljoin(mpd_url, playlist.uri)
            manifest.playlists.append(playlist)
            continue

        label = entry.language or "main"
        playlist.uri = f"placeholder-uri-AUDIO-{COMBINED_AUDIO_GROUP_ID}-{label}-{len(audio_tracks)}"
        playlist.resolved_uri = urljoin(mpd_url, playlist.uri)
        track = audio_tracks.get(label)
        if track is None:
            audio_tracks[label] = AudioTrack(
                language=entry.language or "",
                autoselect=True,
                default=entry.role == "main",
                uri="",
                playlists=[playlist],
                content_protection=playlist.content_protection,
            )
        else:
            track.playlists.append(playlist)

    if audio_tracks:
        if not any(track.default for track in audio_tracks.values()):
            next(iter(audio_tracks.values())).default = True
        manifest.media_groups["AUDIO"][COMBINED_AUDIO_GROUP_ID] = audio_tracks
        for playlist in manifest.playlists:
            playlist.attributes.audio = COMBINED_AUDIO_GROUP_ID

    logger.debug(f"Parsed MPD {mpd_url}: {len(manifest.playlists)} video renditions, {len(audio_tracks)} audio tracks")
    return manifest
