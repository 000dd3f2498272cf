"""Single bounded HTTP GET: redirect cap, byte cap while streaming, deadline."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urljoin

import aiohttp

from .errors import Cancelled, FetchError, HttpError, TooLarge, TooManyRedirects
from .fetch_config import (
    ACCEPT_HTML,
    ACCEPT_LANGUAGE,
    DEFAULT_MAX_BYTES,
    DEFAULT_REDIRECT_LIMIT,
    HDR_ACCEPT,
    HDR_ACCEPT_LANGUAGE,
    HDR_USER_AGENT,
)

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 64 * 1024
REDIRECT_STATUSES = {301, 302, 303, 307, 308}

RedirectGuard = Callable[[str], object]


@dataclass
class FetchedPage:
    """Decoded body of one successful GET."""

    url: str
    final_url: str
    status: int
    content_type: str
    body: str
    byte_count: int


async def read_with_limit(
    resp: aiohttp.ClientResponse,
    max_bytes: int,
    chunk_bytes: int = READ_CHUNK_BYTES,
) -> bytes:
    """Read ``resp`` incrementally, raising :class:`TooLarge` once ``max_bytes`` is passed.

    A declared Content-Length over the limit fails before any body bytes are
    read. Servers may omit the header or lie about it, so the running total is
    checked on every chunk regardless.
    """

    declared = resp.content_length
    if declared is not None and declared > max_bytes:
        resp.close()
        raise TooLarge(max_bytes, declared, declared=True)

    chunks = []
    total = 0
    async for chunk in resp.content.iter_chunked(chunk_bytes):
        total += len(chunk)
        if total > max_bytes:
            resp.close()
            raise TooLarge(max_bytes, total)
        chunks.append(chunk)
    return b"".join(chunks)


class BoundedFetcher:
    """Issue one GET through a shared aiohttp session with hard limits."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        accept: str = ACCEPT_HTML,
        accept_language: str = ACCEPT_LANGUAGE,
        chunk_bytes: int = READ_CHUNK_BYTES,
    ) -> None:
        self.session = session
        self.accept = accept
        self.accept_language = accept_language
        self.chunk_bytes = chunk_bytes

    def _headers(self, user_agent: str) -> Dict[str, str]:
        return {
            HDR_USER_AGENT: user_agent,
            HDR_ACCEPT: self.accept,
            HDR_ACCEPT_LANGUAGE: self.accept_language,
        }

    @staticmethod
    def _timeout(url: str, deadline: Optional[float]) -> Optional[aiohttp.ClientTimeout]:
        if deadline is None:
            return None
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise Cancelled(f"Deadline elapsed before fetching {url}")
        return aiohttp.ClientTimeout(total=remaining)

    async def fetch(
        self,
        url: str,
        user_agent: str,
        *,
        redirect_limit: int = DEFAULT_REDIRECT_LIMIT,
        max_bytes: int = DEFAULT_MAX_BYTES,
        deadline: Optional[float] = None,
        redirect_guard: Optional[RedirectGuard] = None,
    ) -> FetchedPage:
        """GET ``url``; ``deadline`` is an absolute event-loop time.

        Redirects are followed one hop at a time. ``redirect_guard`` sees every
        hop's absolute URL before it is requested and may raise to refuse it.
        """

        redirect_limit = max(0, int(redirect_limit))
        current = url
        try:
            for hop in range(redirect_limit + 1):
                async with self.session.get(
                    current,
                    headers=self._headers(user_agent),
                    allow_redirects=False,
                    timeout=self._timeout(current, deadline),
                ) as resp:
                    location = resp.headers.get("Location")
                    if resp.status in REDIRECT_STATUSES and location:
                        if hop >= redirect_limit:
                            raise TooManyRedirects(redirect_limit)
                        current = urljoin(str(resp.url), location)
                        if redirect_guard is not None:
                            redirect_guard(current)
                        continue
                    if not 200 <= resp.status < 300:
                        raise HttpError(resp.status, resp.reason or "")
                    content_type = resp.headers.get("Content-Type", "")
                    raw = await read_with_limit(resp, max_bytes, self.chunk_bytes)
                    final_url = str(resp.url)
                    status = resp.status
                    break
        except asyncio.TimeoutError as exc:
            raise Cancelled(f"Request to {url} timed out") from exc
        except aiohttp.ClientError as exc:
            raise FetchError(str(exc) or exc.__class__.__name__) from exc

        logger.debug("fetched %s (%d bytes, %s)", url, len(raw), content_type or "unknown type")
        return FetchedPage(
            url=url,
            final_url=final_url,
            status=status,
            content_type=content_type,
            body=raw.decode("utf-8", errors="replace"),
            byte_count=len(raw),
        )


__all__ = [
    "READ_CHUNK_BYTES",
    "RedirectGuard",
    "FetchedPage",
    "read_with_limit",
    "BoundedFetcher",
]
