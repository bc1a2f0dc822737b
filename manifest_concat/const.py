# Bandwidth used to rank renditions when no resolution information is available. Mirrors
# the initial bandwidth estimate of the downstream player.
DEFAULT_BANDWIDTH = 4194304

WIDEVINE_KEY_SYSTEM = "com.widevine.alpha"

# Key system names keyed by lowercased DASH ContentProtection@schemeIdUri.
KEY_SYSTEMS_BY_SCHEME = {
    "urn:uuid:edef8ba9-79d6-4ace-a3c8-27dcd51d21ed": WIDEVINE_KEY_SYSTEM,
    "urn:uuid:9a04f079-9840-4286-ab92-e65be0885f95": "com.microsoft.playready",
    "urn:uuid:e2719d58-a985-b3c9-781a-b030af78d30e": "org.w3.clearkey",
    "urn:uuid:1077efec-c0b2-4d02-ace3-3c1e52e2fb4b": "org.w3.clearkey",
    "urn:mpeg:dash:mp4protection:2011": "mp4protection",
}

COMBINED_PLAYLIST_URI = "combined-playlist"
COMBINED_AUDIO_URI_SUFFIX = "-audio"
COMBINED_AUDIO_GROUP_URI = "combined-audio-playlists"
COMBINED_AUDIO_GROUP_ID = "audio"

# 200/206 are the only acceptable upstream answers; local files never go over HTTP.
SUCCESS_STATUS_CODES = (200, 206)

MEDIA_GROUP_TYPES = ["AUDIO", "VIDEO", "CLOSED-CAPTIONS", "SUBTITLES"]

HLS_MIME_TYPE = "application/vnd.apple.mpegurl"
