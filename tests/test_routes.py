import pytest
from fastapi.testclient import TestClient

from manifest_concat import handlers
from manifest_concat.configs import settings
from manifest_concat.main import app

from manifest_generators import hls_master_playlist, hls_media_playlist

HLS = "application/vnd.apple.mpegurl"


@pytest.fixture
def client(upstream, monkeypatch):
    monkeypatch.setattr(handlers, "create_httpx_client", upstream.client)
    monkeypatch.setattr(settings, "api_password", None)
    return TestClient(app)


def _body(*urls, target=720):
    return {"manifests": [{"url": url, "mimeType": HLS} for url in urls], "targetVerticalResolution": target}


def _serve_two_media_playlists(upstream):
    upstream.respond_with("http://test.com/manifest1.m3u8", hls_media_playlist(num_segments=1))
    upstream.respond_with("http://test.com/manifest2.m3u8", hls_media_playlist(segment_prefix="m2s", num_segments=2))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_concat_returns_manifest_object(client, upstream):
    _serve_two_media_playlists(upstream)

    response = client.post("/concat", json=_body("http://test.com/manifest1.m3u8", "http://test.com/manifest2.m3u8"))

    assert response.status_code == 200
    data = response.json()
    assert "keySystems" not in data
    playlist = data["manifestObject"]["playlists"][0]
    assert playlist["uri"] == "combined-playlist"
    assert [segment["uri"] for segment in playlist["segments"]] == ["0.ts", "m2s0.ts", "m2s1.ts"]
    assert data["manifestObject"]["playlistsByUri"] == {"combined-playlist": 0}


def test_concat_playlist_renders_m3u8(client, upstream):
    _serve_two_media_playlists(upstream)

    response = client.post(
        "/concat/playlist.m3u8", json=_body("http://test.com/manifest1.m3u8", "http://test.com/manifest2.m3u8")
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.apple.mpegurl")
    lines = response.text.splitlines()
    assert lines[0] == "#EXTM3U"
    assert lines.count("#EXT-X-DISCONTINUITY") == 1
    assert "http://test.com/m2s1.ts" in lines
    assert lines[-1] == "#EXT-X-ENDLIST"


def test_concat_audio_playlist_requires_demuxed_audio(client, upstream):
    _serve_two_media_playlists(upstream)

    response = client.post(
        "/concat/playlist.m3u8?rendition=audio",
        json=_body("http://test.com/manifest1.m3u8", "http://test.com/manifest2.m3u8"),
    )

    assert response.status_code == 404


def test_concat_audio_playlist(client, upstream):
    upstream.respond_with("http://test.com/manifest1.m3u8", hls_master_playlist(include_demuxed_audio=True))
    upstream.respond_with("http://test.com/playlist0.m3u8", hls_media_playlist(num_segments=1))
    upstream.respond_with(
        "http://test.com/playlist-audio.m3u8", hls_media_playlist(num_segments=1, segment_prefix="audio")
    )

    response = client.post(
        "/concat/playlist.m3u8?rendition=audio",
        json=_body("http://test.com/manifest1.m3u8", "http://test.com/manifest1.m3u8"),
    )

    assert response.status_code == 200
    assert response.text.splitlines().count("http://test.com/audio0.ts") == 2


def test_no_sources_is_bad_request(client, upstream):
    response = client.post("/concat", json={"manifests": []})

    assert response.status_code == 400
    assert response.json() == {"detail": "No sources provided"}
    assert upstream.requests == []


def test_missing_mime_type_is_bad_request(client):
    response = client.post("/concat", json={"manifests": [{"url": "http://test.com/manifest1.m3u8"}]})

    assert response.status_code == 400
    assert response.json()["detail"] == "All manifests must include a mime type"


def test_upstream_failure_is_bad_gateway(client, upstream):
    upstream.respond_with("http://test.com/manifest1.m3u8", (500, ""))

    response = client.post("/concat", json=_body("http://test.com/manifest1.m3u8"))

    assert response.status_code == 502
    assert response.json()["detail"] == "Request failed"
    assert response.json()["status_code"] == 500


def test_incompatible_sources_are_unprocessable(client, upstream):
    upstream.respond_with("http://test.com/video-only.m3u8", hls_master_playlist(codecs="avc1.4d400d"))

    response = client.post("/concat", json=_body("http://test.com/video-only.m3u8"))

    assert response.status_code == 422
    assert response.json()["detail"] == "Did not find a supported playlist for each manifest"


def test_api_password_is_enforced(client, upstream, monkeypatch):
    _serve_two_media_playlists(upstream)
    monkeypatch.setattr(settings, "api_password", "secret")
    body = _body("http://test.com/manifest1.m3u8")

    assert client.post("/concat", json=body).status_code == 403
    assert client.post("/concat?api_password=secret", json=body).status_code == 200
    assert client.post("/concat", json=body, headers={"api_password": "secret"}).status_code == 200
