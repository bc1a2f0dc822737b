"""
Content protection bootstrapping for concatenated sources.

Builds the callables that initialise media key sessions for the chosen renditions. Only
Widevine is handled; other key systems in a source's configuration are ignored.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from manifest_concat.const import WIDEVINE_KEY_SYSTEM
from manifest_concat.models import Playlist
from manifest_concat.utils.codecs import MediaContentTypes

logger = logging.getLogger(__name__)


class MediaKeysSession(Protocol):
    def initialize_media_keys(self, options: Dict[str, Any]) -> Any: ...


@dataclass
class KeySystemOptions:
    url: Optional[str] = None
    get_license: Optional[Callable[..., Any]] = None


# A key system entry is either a license URL or an options object.
KeySystemConfig = Union[str, KeySystemOptions]


@dataclass
class MediaKeysInitializer:
    """Initialises one Widevine session for a single protection header."""

    pssh: str
    audio_content_type: Optional[str] = None
    video_content_type: Optional[str] = None
    url: Optional[str] = None
    get_license: Optional[Callable[..., Any]] = None

    def key_system_options(self) -> Dict[str, Any]:
        options = {
            "audioContentType": self.audio_content_type,
            "videoContentType": self.video_content_type,
            "pssh": self.pssh,
        }
        if self.url:
            options["url"] = self.url
        if self.get_license:
            options["getLicense"] = self.get_license
        return {"keySystems": {WIDEVINE_KEY_SYSTEM: options}}

    def __call__(self, session: MediaKeysSession) -> None:
        session.initialize_media_keys(self.key_system_options())


@dataclass
class InitializeKeySystems:
    """Applies every initializer, in source order, to a session."""

    initializers: List[MediaKeysInitializer] = field(default_factory=list)

    def __call__(self, session: MediaKeysSession) -> None:
        for initializer in self.initializers:
            initializer(session)


def _widevine_pssh(playlist: Optional[Playlist]) -> Optional[str]:
    if playlist is None or not playlist.content_protection:
        return None
    header = playlist.content_protection.get(WIDEVINE_KEY_SYSTEM)
    return header.pssh if header else None


def _license_source(config: KeySystemConfig) -> tuple[Optional[str], Optional[Callable[..., Any]]]:
    if isinstance(config, str):
        return config, None
    return config.url, config.get_license


def create_initialize_key_systems_function(
    video_playlists: List[Playlist],
    audio_playlists: List[Playlist],
    audio_and_video_types: List[Optional[MediaContentTypes]],
    key_systems: List[Optional[Dict[str, KeySystemConfig]]],
) -> Optional[InitializeKeySystems]:
    """
    Returns a callable that initialises media key sessions for the DRM protected sources.

    Args:
        video_playlists (List[Playlist]): Chosen video rendition of each source.
        audio_playlists (List[Playlist]): Chosen audio rendition of each source, or empty
            when audio is muxed.
        audio_and_video_types (List[MediaContentTypes]): MIME types with codecs of each
            source. Sources without any are skipped, as no capability can be described.
        key_systems (List[dict]): Key system configuration of each source, or None.

    Returns:
        InitializeKeySystems or None: None when no source declares a key system.
    """
    if not any(key_systems):
        return None

    initializers = []

    for index, video_playlist in enumerate(video_playlists):
        key_systems_config = key_systems[index] if index < len(key_systems) else None
        if not key_systems_config:
            continue

        widevine_config = key_systems_config.get(WIDEVINE_KEY_SYSTEM)
        if not widevine_config:
            continue

        content_types = audio_and_video_types[index] if index < len(audio_and_video_types) else None
        if content_types is None or not (content_types.video or content_types.audio):
            logger.warning(f"Skipping DRM setup for source {index}: no content types with codecs available")
            continue

        url, get_license = _license_source(widevine_config)
        audio_playlist = audio_playlists[index] if index < len(audio_playlists) else None

        # audio and video share the license source; the session dedupes identical pssh
        for pssh in (_widevine_pssh(video_playlist), _widevine_pssh(audio_playlist)):
            if pssh:
                initializers.append(
                    MediaKeysInitializer(
                        pssh=pssh,
                        audio_content_type=content_types.audio,
                        video_content_type=content_types.video,
                        url=url,
                        get_license=get_license,
                    )
                )

    return InitializeKeySystems(initializers)
