"""Mirror URL construction for the proxy channel.

The default relay is r.jina.ai, which fetches the target server-side and
returns readable text. Any callable with the same signature can replace it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlparse

from .fetch_config import ENV_MIRROR_PREFIX, MIRROR_PREFIX
from .fetch_utils import env_str

MirrorBuilder = Callable[[str], List[str]]


def _authority(hostname: Optional[str], port: Optional[int]) -> str:
    """``host[:port]`` with userinfo dropped; IPv6 literals are re-bracketed."""

    if not hostname:
        return ""
    host = f"[{hostname}]" if ":" in hostname else hostname
    return f"{host}:{port}" if port is not None else host


@dataclass(frozen=True)
class PrefixMirror:
    """Build ``<prefix>/http://host/path?q`` and ``<prefix>/https://...`` URLs."""

    prefix: str = MIRROR_PREFIX
    schemes: tuple = ("http", "https")

    def __call__(self, url: str) -> List[str]:
        try:
            parsed = urlparse(url)
            authority = _authority(parsed.hostname, parsed.port)
        except ValueError:
            return []
        if not authority:
            return []
        host_and_path = f"{authority}{parsed.path or '/'}"
        if parsed.query:
            host_and_path = f"{host_and_path}?{parsed.query}"
        base = self.prefix.rstrip("/")
        return [f"{base}/{scheme}://{host_and_path}" for scheme in self.schemes]


def default_mirror_builder() -> MirrorBuilder:
    return PrefixMirror(prefix=env_str(ENV_MIRROR_PREFIX, MIRROR_PREFIX))


def build_candidate_urls(url: str, mirror_builder: MirrorBuilder, allow_fallbacks: bool = True) -> List[str]:
    """Return ``[url]`` followed by its mirror URLs when fallbacks are allowed."""

    urls = [url]
    if allow_fallbacks:
        urls.extend(mirror_builder(url))
    return urls


__all__ = [
    "MirrorBuilder",
    "PrefixMirror",
    "default_mirror_builder",
    "build_candidate_urls",
]
