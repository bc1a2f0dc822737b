import anyio
import httpx
import pytest

from manifest_concat.configs import TransportConfig
from manifest_concat.exceptions import FetchError
from manifest_concat.utils.http_utils import fetch_all


@pytest.mark.asyncio
async def test_waits_for_all_requests(upstream):
    upstream.respond_with("http://test.com/a", "a-body")
    upstream.respond_with("http://test.com/b", (206, "b-body"))

    async with upstream.client() as client:
        responses = await fetch_all(["http://test.com/a", "http://test.com/b"], client=client)

    assert responses == {"http://test.com/a": "a-body", "http://test.com/b": "b-body"}


@pytest.mark.asyncio
async def test_does_not_request_same_url_twice(upstream):
    upstream.respond_with("http://test.com/a", "a-body")

    async with upstream.client() as client:
        responses = await fetch_all(["http://test.com/a", "http://test.com/a"], client=client)

    assert responses == {"http://test.com/a": "a-body"}
    assert upstream.requested_urls == ["http://test.com/a"]


@pytest.mark.asyncio
async def test_no_urls_makes_no_requests(upstream):
    async with upstream.client() as client:
        assert await fetch_all([], client=client) == {}

    assert upstream.requests == []


@pytest.mark.asyncio
async def test_error_status_raises_request_failed(upstream):
    upstream.respond_with("http://test.com/a", "a-body")
    upstream.respond_with("http://test.com/b", (500, ""))

    async with upstream.client() as client:
        with pytest.raises(FetchError) as exc_info:
            await fetch_all(["http://test.com/a", "http://test.com/b"], client=client)

    assert exc_info.value.message == "Request failed"
    assert exc_info.value.status_code == 500
    assert exc_info.value.url == "http://test.com/b"


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchError, match="connection refused"):
            await fetch_all(["http://test.com/a"], client=client)


@pytest.mark.asyncio
async def test_failure_cancels_pending_requests():
    completed = []

    async def handler(request):
        if request.url.path == "/slow":
            await anyio.sleep(5)
            completed.append(str(request.url))
            return httpx.Response(200, text="slow")
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with anyio.fail_after(2):
            with pytest.raises(FetchError):
                await fetch_all(["http://test.com/slow", "http://test.com/missing"], client=client)

    assert completed == []


@pytest.mark.asyncio
async def test_reads_local_files(tmp_path):
    manifest = tmp_path / "local.m3u8"
    manifest.write_text("#EXTM3U\n")

    responses = await fetch_all([manifest.as_uri()])

    assert responses == {manifest.as_uri(): "#EXTM3U\n"}


@pytest.mark.asyncio
async def test_missing_local_file_raises(tmp_path):
    with pytest.raises(FetchError):
        await fetch_all([(tmp_path / "missing.m3u8").as_uri()])


@pytest.mark.asyncio
async def test_undecodable_local_file_raises_fetch_error(tmp_path):
    manifest = tmp_path / "binary.m3u8"
    manifest.write_bytes(b"#EXTM3U\n\xff\xfe\n")

    with pytest.raises(FetchError) as exc_info:
        await fetch_all([manifest.as_uri()])

    assert exc_info.value.url == manifest.as_uri()
    assert exc_info.value.message


@pytest.mark.asyncio
async def test_unexpected_error_raises_single_fetch_error():
    def handler(request):
        raise RuntimeError("transport exploded")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchError, match="transport exploded") as exc_info:
            await fetch_all(["http://test.com/a"], client=client)

    assert exc_info.value.url == "http://test.com/a"


def test_transport_mounts_are_async_transports():
    config = TransportConfig(
        proxy_url="http://proxy:8080", all_proxy=True, transport_routes={"https://cdn.test.com": {"proxy": False}}
    )

    mounts = config.get_mounts()

    assert set(mounts) == {"https://cdn.test.com", "all://"}
    assert all(isinstance(transport, httpx.AsyncHTTPTransport) for transport in mounts.values())
