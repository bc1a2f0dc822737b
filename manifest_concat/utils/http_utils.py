import logging
from typing import Dict, Iterable, Optional
from urllib import parse

import aiofiles
import anyio
import httpx

from manifest_concat.configs import settings
from manifest_concat.const import SUCCESS_STATUS_CODES
from manifest_concat.exceptions import FetchError

logger = logging.getLogger(__name__)


def create_httpx_client(follow_redirects: bool = True, **kwargs) -> httpx.AsyncClient:
    """
    Create an HTTPX AsyncClient configured from the transport settings.

    Args:
        follow_redirects (bool): Whether to follow 3xx redirects automatically.
        **kwargs: Additional AsyncClient keyword arguments.

    Returns:
        httpx.AsyncClient: Configured client.
    """
    mounts = settings.transport_config.get_mounts()
    kwargs.setdefault("timeout", settings.transport_config.timeout)
    kwargs.setdefault("headers", {"user-agent": settings.user_agent})
    return httpx.AsyncClient(mounts=mounts, follow_redirects=follow_redirects, **kwargs)


async def read_local_file(url: str) -> str:
    """Reads a ``file://`` URL."""
    path = parse.unquote(parse.urlparse(url).path)
    try:
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            return await f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Error reading local file {path}: {e}")
        raise FetchError(str(e), url=url)


async def fetch_text(client: httpx.AsyncClient, url: str) -> str:
    """
    Fetch a single URL and return its body as text.

    Raises:
        FetchError: On a transport failure or a status other than 200/206.
    """
    if url.startswith("file://"):
        return await read_local_file(url)

    try:
        response = await client.get(url)
    except httpx.RequestError as e:
        logger.error(f"Error requesting {url}: {e}")
        raise FetchError(str(e) or "Request failed", url=url)

    if response.status_code not in SUCCESS_STATUS_CODES:
        logger.error(f"HTTP error {response.status_code} while requesting {url}")
        raise FetchError("Request failed", url=url, status_code=response.status_code)

    return response.text


async def fetch_all(urls: Iterable[str], client: Optional[httpx.AsyncClient] = None) -> Dict[str, str]:
    """
    Requests all of the URLs concurrently.

    Duplicate URLs are requested once. The first failure cancels every request still in
    flight and is raised; there is no partial result.

    Args:
        urls (Iterable[str]): URLs to request.
        client (httpx.AsyncClient, optional): Client to use. A client built from the
            transport settings is used (and closed) when omitted.

    Returns:
        Dict[str, str]: Response text keyed by URL.

    Raises:
        FetchError: The first request failure.
    """
    unique_urls = list(dict.fromkeys(urls))
    responses: Dict[str, str] = {}
    if not unique_urls:
        return responses

    failure: Optional[FetchError] = None
    owns_client = client is None
    if owns_client:
        client = create_httpx_client()

    logger.info(f"Requesting {len(unique_urls)} URLs")
    try:
        async with anyio.create_task_group() as task_group:

            def record_failure(error: FetchError) -> None:
                nonlocal failure
                if failure is None:
                    failure = error
                    task_group.cancel_scope.cancel()

            async def fetch(url: str) -> None:
                try:
                    responses[url] = await fetch_text(client, url)
                except FetchError as e:
                    record_failure(e)
                except Exception as e:
                    logger.exception(f"Unexpected error requesting {url}")
                    record_failure(FetchError(str(e) or type(e).__name__, url=url))

            for url in unique_urls:
                task_group.start_soon(fetch, url)
    finally:
        if owns_client:
            await client.aclose()

    if failure is not None:
        raise failure

    return responses
