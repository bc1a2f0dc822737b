import logging
from typing import Callable, List, Optional

from manifest_concat.models import Manifest, Playlist
from manifest_concat.utils.codecs import codecs_for_playlists, is_video_codec_supported, video_content_type

logger = logging.getLogger(__name__)

CodecSupportCheck = Callable[[str], bool]


def remove_unsupported_playlists(
    manifest_objects: List[Manifest],
    video_codec_supported: Optional[CodecSupportCheck] = is_video_codec_supported,
) -> List[List[Playlist]]:
    """
    Removes unsupported renditions from each manifest.

    A rendition is dropped when it lacks either audio or video (muxed, or demuxed through
    a default alternate audio track) or when its video codec is not playable. Renditions
    without codec information are kept, since nothing can be judged about them.

    Args:
        manifest_objects (List[Manifest]): Master or media manifests.
        video_codec_supported (Callable, optional): Playback capability check for a
            ``video/mp4; codecs="..."`` content type. ``None`` accepts every codec.

    Returns:
        List[List[Playlist]]: The supported renditions of each manifest, in order.
    """
    supported = []

    for manifest in manifest_objects:
        # Built per manifest: the same rendition may have demuxed audio in one manifest
        # and be video only in another.
        playlist_to_codecs = codecs_for_playlists(manifest)
        kept = []

        for playlist in manifest.renditions():
            codecs = playlist_to_codecs.get(playlist.resolved_uri)

            if codecs is None:
                kept.append(playlist)
                continue

            if codecs.codec_count != 2:
                logger.debug(f"Dropping {playlist.resolved_uri}: expected audio and video, found {codecs}")
                continue

            if video_codec_supported is not None:
                content_type = video_content_type(playlist)
                if content_type is None or not video_codec_supported(content_type):
                    logger.debug(f"Dropping {playlist.resolved_uri}: unsupported video codec")
                    continue

            kept.append(playlist)

        supported.append(kept)

    return supported
