"""
In-memory manifest object graph.

The shape follows what an HLS/DASH playback engine expects to be handed when loading a
pre-parsed manifest: camelCase keys when serialised, HLS attribute names (BANDWIDTH,
RESOLUTION, CODECS, AUDIO) kept verbatim.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from manifest_concat.const import MEDIA_GROUP_TYPES


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ManifestKind(str, Enum):
    MASTER = "master"
    MEDIA = "media"


class Resolution(CamelModel):
    width: int = 0
    height: int


class ByteRange(CamelModel):
    length: int
    offset: int = 0


class SegmentKey(CamelModel):
    method: str
    uri: str
    resolved_uri: Optional[str] = None
    iv: Optional[str] = None


class SegmentMap(CamelModel):
    uri: str
    resolved_uri: Optional[str] = None
    byterange: Optional[ByteRange] = None


class Segment(CamelModel):
    uri: str
    resolved_uri: Optional[str] = None
    duration: float = 0
    discontinuity: Optional[bool] = None
    timeline: Optional[int] = None
    number: Optional[int] = None
    key: Optional[SegmentKey] = None
    map: Optional[SegmentMap] = None
    byterange: Optional[ByteRange] = None


class ProtectionHeader(CamelModel):
    pssh: Optional[str] = None
    key_id: Optional[str] = None


class PlaylistAttributes(BaseModel):
    """HLS-style rendition attributes. Unknown attributes are kept as extras."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    bandwidth: Optional[int] = Field(None, alias="BANDWIDTH")
    resolution: Optional[Resolution] = Field(None, alias="RESOLUTION")
    codecs: Optional[str] = Field(None, alias="CODECS")
    audio: Optional[str] = Field(None, alias="AUDIO")


class Playlist(CamelModel):
    """A single rendition. ``resolved_uri`` is its identity within a manifest."""

    uri: str = ""
    resolved_uri: Optional[str] = None
    attributes: PlaylistAttributes = Field(default_factory=PlaylistAttributes)
    segments: Optional[List[Segment]] = None
    content_protection: Optional[Dict[str, ProtectionHeader]] = None
    target_duration: Optional[float] = None
    media_sequence: Optional[int] = None
    discontinuity_sequence: Optional[int] = None
    discontinuity_starts: Optional[List[int]] = None
    playlist_type: Optional[str] = None
    end_list: Optional[bool] = None

    @property
    def is_resolved(self) -> bool:
        return self.segments is not None


class AudioTrack(CamelModel):
    """
    An entry of an audio media group.

    Three forms occur: a muxed-audio identifier (no ``resolved_uri`` and no playlists), an
    HLS alternate rendition (``resolved_uri`` set, segments fetched later) and a DASH track
    carrying its single pre-resolved playlist.
    """

    language: Optional[str] = None
    autoselect: bool = False
    default: bool = False
    uri: Optional[str] = None
    resolved_uri: Optional[str] = None
    playlists: Optional[List[Playlist]] = None
    content_protection: Optional[Dict[str, ProtectionHeader]] = None

    @property
    def has_media(self) -> bool:
        return bool(self.resolved_uri) or bool(self.playlists)

    def as_playlist(self) -> Optional[Playlist]:
        if self.playlists:
            return self.playlists[0]
        if self.resolved_uri:
            return Playlist(
                uri=self.uri or self.resolved_uri,
                resolved_uri=self.resolved_uri,
                content_protection=self.content_protection,
            )
        return None


def _playlist_index(playlists: List[Playlist]) -> Dict[str, int]:
    return {playlist.uri: index for index, playlist in enumerate(playlists)}


def _empty_media_groups() -> Dict[str, Dict[str, Dict[str, AudioTrack]]]:
    return {group_type: {} for group_type in MEDIA_GROUP_TYPES}


class Manifest(CamelModel):
    """
    Root of a parsed manifest.

    A master manifest lists every rendition in ``playlists``. A media manifest is a single
    rendition and carries it as the only element of ``playlists``.
    """

    kind: ManifestKind = Field(ManifestKind.MASTER, exclude=True)
    uri: str = ""
    resolved_uri: Optional[str] = None
    playlists: List[Playlist] = Field(default_factory=list)
    media_groups: Dict[str, Dict[str, Dict[str, AudioTrack]]] = Field(default_factory=_empty_media_groups)

    def renditions(self) -> List[Playlist]:
        return self.playlists

    def audio_group(self, group_id: Optional[str]) -> Optional[Dict[str, AudioTrack]]:
        if not group_id:
            return None
        return self.media_groups.get("AUDIO", {}).get(group_id)

    def playlist_index(self) -> Dict[str, int]:
        return _playlist_index(self.playlists)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialises the manifest for the playback engine.

        The engine looks renditions up both by position and by URI, so every playlist list
        is accompanied by a ``playlistsByUri`` mapping of URI to list index.
        """
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        data["playlistsByUri"] = self.playlist_index()
        for group_name, group in self.media_groups.items():
            for group_id, tracks in group.items():
                for label, track in tracks.items():
                    if track.playlists:
                        data["mediaGroups"][group_name][group_id][label]["playlistsByUri"] = _playlist_index(
                            track.playlists
                        )
        return data
