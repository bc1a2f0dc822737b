import logging
import re
from typing import Optional

from manifest_concat.exceptions import ManifestParseError
from manifest_concat.models import Manifest
from manifest_concat.utils.m3u8_parser import parse_m3u8
from manifest_concat.utils.mpd_utils import parse_dash_manifest

logger = logging.getLogger(__name__)

HLS_MIME_TYPE_PATTERN = re.compile(r"^(audio|video|application)/(x-|vnd\.apple\.)?mpegurl", re.IGNORECASE)
DASH_MIME_TYPE_PATTERN = re.compile(r"^application/dash\+xml", re.IGNORECASE)


def simple_type_from_source_type(mime_type: str) -> Optional[str]:
    """Maps a source MIME type to ``"hls"``, ``"dash"`` or None."""
    if HLS_MIME_TYPE_PATTERN.match(mime_type or ""):
        return "hls"
    if DASH_MIME_TYPE_PATTERN.match(mime_type or ""):
        return "dash"
    return None


def parse_manifest(url: str, manifest_string: str, mime_type: str) -> Manifest:
    """
    Parses manifest text into a manifest object.

    Args:
        url (str): Location of the manifest, used to resolve relative URIs.
        manifest_string (str): The manifest itself.
        mime_type (str): MIME type of the manifest, selecting the HLS or DASH grammar.

    Returns:
        Manifest: The parsed master or media manifest.

    Raises:
        ManifestParseError: If the MIME type is unsupported or the text is malformed.
    """
    source_type = simple_type_from_source_type(mime_type)

    if source_type == "dash":
        try:
            return parse_dash_manifest(manifest_string, url)
        except (KeyError, ValueError, ZeroDivisionError) as e:
            raise ManifestParseError(f"Invalid MPD {url}: {e}") from e

    if source_type == "hls":
        return parse_m3u8(manifest_string, url)

    raise ManifestParseError(f"Unsupported manifest mime type: {mime_type}")
