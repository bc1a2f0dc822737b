from manifest_concat.models import Playlist, PlaylistAttributes, Segment
from manifest_concat.utils.generators import combine_playlists, construct_master_manifest


def _segments(*uris, **overrides):
    return [Segment(uri=uri, duration=10, **overrides) for uri in uris]


def _segment_summary(playlist):
    return [
        (segment.uri, segment.number, segment.timeline, bool(segment.discontinuity)) for segment in playlist.segments
    ]


def test_uses_max_bandwidth_and_first_codecs():
    playlists = [
        Playlist(uri="p1", attributes=PlaylistAttributes(bandwidth=111), segments=[]),
        Playlist(uri="p2", attributes=PlaylistAttributes(bandwidth=112, codecs="x"), segments=[]),
        Playlist(uri="p3", attributes=PlaylistAttributes(bandwidth=110, codecs="y"), segments=[]),
    ]

    combined = combine_playlists(playlists)

    assert combined.attributes.bandwidth == 112
    assert combined.attributes.codecs == "x"


def test_provides_uri_and_resolved_uri():
    combined = combine_playlists([Playlist(uri="p1", segments=[])])
    audio = combine_playlists([Playlist(uri="p1", segments=[])], uri_suffix="-audio")

    assert (combined.uri, combined.resolved_uri) == ("combined-playlist", "combined-playlist")
    assert (audio.uri, audio.resolved_uri) == ("combined-playlist-audio", "combined-playlist-audio")


def test_uses_largest_target_duration_and_vod_header():
    combined = combine_playlists(
        [Playlist(uri="p1", target_duration=10, segments=[]), Playlist(uri="p2", target_duration=11, segments=[])]
    )

    assert combined.target_duration == 11
    assert combined.playlist_type == "VOD"
    assert combined.end_list is True
    assert combined.media_sequence == 0
    assert combined.discontinuity_sequence == 0


def test_adds_discontinuity_between_playlists():
    combined = combine_playlists(
        [
            Playlist(uri="uri1", segments=_segments("uri1-1.ts", "uri1-2.ts")),
            Playlist(uri="uri2", segments=_segments("uri2-1.ts", "uri2-2.ts")),
        ]
    )

    assert _segment_summary(combined) == [
        ("uri1-1.ts", 0, 0, False),
        ("uri1-2.ts", 1, 0, False),
        ("uri2-1.ts", 2, 1, True),
        ("uri2-2.ts", 3, 1, False),
    ]
    assert combined.discontinuity_starts == [2]
    assert combined.segments[0].discontinuity is None


def test_ignores_source_timeline_values():
    combined = combine_playlists(
        [
            Playlist(uri="uri1", segments=_segments("uri1-1.ts", "uri1-2.ts", timeline=3)),
            Playlist(uri="uri2", segments=_segments("uri2-1.ts", "uri2-2.ts", timeline=7)),
        ]
    )

    assert [segment.timeline for segment in combined.segments] == [0, 0, 1, 1]


def test_keeps_discontinuity_within_playlist():
    playlist2_segments = _segments("uri2-1.ts", timeline=7) + _segments("uri2-2.ts", timeline=8, discontinuity=True)
    combined = combine_playlists(
        [
            Playlist(uri="uri1", segments=_segments("uri1-1.ts", "uri1-2.ts", timeline=3)),
            Playlist(uri="uri2", segments=playlist2_segments),
        ]
    )

    assert _segment_summary(combined) == [
        ("uri1-1.ts", 0, 0, False),
        ("uri1-2.ts", 1, 0, False),
        ("uri2-1.ts", 2, 1, True),
        ("uri2-2.ts", 3, 2, True),
    ]
    assert combined.discontinuity_starts == [2, 3]


def test_empty_playlist_adds_no_discontinuity():
    combined = combine_playlists(
        [
            Playlist(uri="uri1", segments=_segments("uri1-1.ts")),
            Playlist(uri="uri2", segments=[]),
            Playlist(uri="uri3", segments=_segments("uri3-1.ts")),
        ]
    )

    assert combined.discontinuity_starts == [1]


def test_single_playlist_is_unchanged_apart_from_renumbering():
    combined = combine_playlists([Playlist(uri="uri1", segments=_segments("a.ts", "b.ts"))])

    assert _segment_summary(combined) == [("a.ts", 0, 0, False), ("b.ts", 1, 0, False)]
    assert combined.discontinuity_starts == []


def test_inputs_are_not_modified():
    playlist2 = Playlist(uri="uri2", segments=_segments("uri2-1.ts", timeline=7))

    combine_playlists([Playlist(uri="uri1", segments=_segments("uri1-1.ts")), playlist2])

    assert playlist2.segments[0].discontinuity is None
    assert playlist2.segments[0].timeline == 7
    assert playlist2.segments[0].number is None


def test_creates_master_manifest_from_sole_video_playlist():
    video = Playlist(attributes=PlaylistAttributes(), segments=_segments("segment1.ts", "segment2.ts"))

    master = construct_master_manifest(video)
    data = master.to_dict()

    assert data["mediaGroups"] == {"AUDIO": {}, "VIDEO": {}, "CLOSED-CAPTIONS": {}, "SUBTITLES": {}}
    assert data["playlists"][0]["attributes"] == {}
    assert [segment["uri"] for segment in data["playlists"][0]["segments"]] == ["segment1.ts", "segment2.ts"]


def test_creates_demuxed_audio_media_group():
    video = Playlist(uri="combined-playlist", segments=_segments("segment1.ts"))
    audio = Playlist(uri="combined-playlist-audio", segments=_segments("audio-segment1.ts", "audio-segment2.ts"))

    master = construct_master_manifest(video, audio)
    data = master.to_dict()

    track = data["mediaGroups"]["AUDIO"]["audio"]["default"]
    assert track["autoselect"] is True
    assert track["default"] is True
    assert track["language"] == ""
    assert track["uri"] == "combined-audio-playlists"
    assert track["playlistsByUri"] == {"combined-playlist-audio": 0}
    assert [segment["uri"] for segment in track["playlists"][0]["segments"]] == [
        "audio-segment1.ts",
        "audio-segment2.ts",
    ]
    assert data["playlists"][0]["attributes"] == {"AUDIO": "audio"}
    assert data["playlistsByUri"] == {"combined-playlist": 0}
    # the given playlist is copied, not modified
    assert video.attributes.audio is None
