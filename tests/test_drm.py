from manifest_concat.models import Playlist, ProtectionHeader
from manifest_concat.utils.codecs import MediaContentTypes
from manifest_concat.utils.drm import (
    InitializeKeySystems,
    KeySystemOptions,
    MediaKeysInitializer,
    create_initialize_key_systems_function,
)


class FakeSession:
    def __init__(self):
        self.calls = []

    def initialize_media_keys(self, options):
        self.calls.append(options)


def _protected(pssh, key_system="com.widevine.alpha"):
    return Playlist(content_protection={key_system: ProtectionHeader(pssh=pssh)})


def _types():
    return [
        MediaContentTypes(audio='audio/mp4; codecs="mp4a.40.2"', video='video/mp4; codecs="avc1.42001f"'),
        MediaContentTypes(audio='audio/mp4; codecs="mp4a.40.5"', video='video/mp4; codecs="avc1.42001e"'),
    ]


def test_media_keys_initializer_passes_widevine_options():
    def get_license():
        pass

    session = FakeSession()
    MediaKeysInitializer(
        pssh="test-pssh",
        audio_content_type="test-audioContentType",
        video_content_type="test-videoContentType",
        url="test-url",
        get_license=get_license,
    )(session)

    assert session.calls == [
        {
            "keySystems": {
                "com.widevine.alpha": {
                    "audioContentType": "test-audioContentType",
                    "videoContentType": "test-videoContentType",
                    "pssh": "test-pssh",
                    "url": "test-url",
                    "getLicense": get_license,
                }
            }
        }
    ]


def test_returns_none_without_key_systems():
    assert (
        create_initialize_key_systems_function(
            [_protected("test-pssh"), _protected("test-pssh2")],
            [_protected("test-pssh3"), _protected("test-pssh4")],
            _types(),
            [],
        )
        is None
    )
    assert create_initialize_key_systems_function([_protected("p")], [], _types()[:1], [None]) is None


def test_initializes_video_then_audio_for_each_source():
    initialize = create_initialize_key_systems_function(
        [_protected("test-pssh"), _protected("test-pssh2")],
        [_protected("test-pssh3"), _protected("test-pssh4")],
        _types(),
        [{"com.widevine.alpha": "license-url1"}, {"com.widevine.alpha": KeySystemOptions(url="license-url2")}],
    )
    session = FakeSession()

    initialize(session)

    assert isinstance(initialize, InitializeKeySystems)
    assert [call["keySystems"]["com.widevine.alpha"]["pssh"] for call in session.calls] == [
        "test-pssh",
        "test-pssh3",
        "test-pssh2",
        "test-pssh4",
    ]
    assert [call["keySystems"]["com.widevine.alpha"]["url"] for call in session.calls] == [
        "license-url1",
        "license-url1",
        "license-url2",
        "license-url2",
    ]
    assert session.calls[2]["keySystems"]["com.widevine.alpha"]["videoContentType"] == (
        'video/mp4; codecs="avc1.42001e"'
    )


def test_only_sources_with_key_systems_are_initialized():
    initialize = create_initialize_key_systems_function(
        [_protected("test-pssh"), _protected("test-pssh2")],
        [],
        _types(),
        [None, {"com.widevine.alpha": "license-url2"}],
    )

    assert [initializer.pssh for initializer in initialize.initializers] == ["test-pssh2"]


def test_only_supports_widevine():
    initialize = create_initialize_key_systems_function(
        [_protected("test-pssh"), _protected("test-pssh2", key_system="com.microsoft.playready")],
        [],
        _types(),
        [{"com.microsoft.playready": "license-url1"}, {"com.widevine.alpha": "license-url2"}],
    )

    # second source has a widevine config but only a playready header
    assert initialize.initializers == []


def test_requires_codec_info():
    initialize = create_initialize_key_systems_function(
        [_protected("test-pssh"), _protected("test-pssh2")],
        [],
        [MediaContentTypes(), _types()[1]],
        [{"com.widevine.alpha": "license-url1"}, {"com.widevine.alpha": "license-url2"}],
    )

    assert [initializer.pssh for initializer in initialize.initializers] == ["test-pssh2"]
