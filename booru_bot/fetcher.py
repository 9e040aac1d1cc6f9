"""HTTP downloads into the local cache."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp

from .utils import FetchError, format_bytes


logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


async def probe(session: aiohttp.ClientSession, url: str) -> None:
    """Log content type and length of a remote resource. Never raises."""
    try:
        async with session.head(url, allow_redirects=True) as resp:
            logger.debug(
                "Probe %s: status=%s content-type=%s content-length=%s",
                url,
                resp.status,
                resp.headers.get("Content-Type"),
                resp.headers.get("Content-Length"),
            )
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
        logger.debug("Probe of %s failed: %s", url, exc)


async def fetch(session: aiohttp.ClientSession, url: str, local_path: Path) -> Path:
    """
    Download a remote resource to disk.

    Returns only once the local file has been closed, so callers can read it
    immediately.

    Args:
        session: HTTP session to use.
        url: Remote URL.
        local_path: Destination path.

    Returns:
        The written path.

    Raises:
        FetchError: On a non-2xx status or any network or disk error.
    """
    local_path = Path(local_path)
    await probe(session, url)
    try:
        async with session.get(url) as resp:
            if resp.status < 200 or resp.status >= 300:
                raise FetchError(f"Failed to download {url}: HTTP {resp.status}")
            local_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(local_path, "wb") as outfile:
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    await outfile.write(chunk)
    except FetchError:
        _discard(local_path)
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
        _discard(local_path)
        raise FetchError(f"Download of {url} failed: {exc}") from exc

    logger.info("Fetched %s (%s)", local_path.name, format_bytes(local_path.stat().st_size))
    return local_path


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial download %s: %s", path, exc)


class Fetcher:
    """
    Owns an HTTP session for the lifetime of the bot.

    Downloads have no overall time limit; large attachments on slow links
    run to completion.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))
        return self._session

    async def fetch(self, url: str, local_path: Path) -> Path:
        session = await self._get_session()
        return await fetch(session, url, local_path)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
