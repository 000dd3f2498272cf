"""Fetch orchestration: strategy fallback over direct and mirror URLs.

Strategies are tried in a fixed precedence, except that the strategy which
last produced text for the same host is tried first. Every attempt shares a
single deadline; the first attempt that yields non-empty text wins.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, fields, replace
from functools import partial
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import aiohttp

from ..core.keys import K_BYLINE, K_EXCERPT, K_METHOD, K_TITLE, K_VIA
from .bounded_fetch import BoundedFetcher
from .errors import FetchExhausted, FetchTimeout
from .extract import Extraction, extract_readable_text
from .fetch_config import (
    DEFAULT_MAX_BYTES,
    DEFAULT_MAX_CHARS,
    DEFAULT_REDIRECT_LIMIT,
    DEFAULT_STRATEGY_CACHE_SIZE,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_UA_FAMILY,
    DEFAULT_UA_MODE,
    DEFAULT_USER_AGENT,
    ENV_ALLOW_FALLBACKS,
    ENV_ALLOW_PRIVATE,
    ENV_DEBUG,
    ENV_MAX_BYTES,
    ENV_MAX_CHARS,
    ENV_PREFER_READABILITY,
    ENV_REDIRECT_LIMIT,
    ENV_STRATEGY_CACHE_SIZE,
    ENV_TIMEOUT_MS,
    ENV_UA_FAMILY,
    ENV_UA_MODE,
    ENV_USER_AGENT,
)
from .fetch_utils import env_bool, env_int, env_str, host_key
from .mirrors import MirrorBuilder, build_candidate_urls, default_mirror_builder
from .security import check_target
from .strategy_cache import Strategy, StrategyCache, order_strategies
from .user_agents import pick_user_agent

logger = logging.getLogger(__name__)

Extractor = Callable[..., Extraction]
FetcherFactory = Callable[[aiohttp.ClientSession], BoundedFetcher]

EXHAUSTED_MESSAGE = "Unable to fetch page content"


@dataclass(frozen=True)
class FetchOptions:
    """Per-call orchestration settings."""

    max_chars: int = DEFAULT_MAX_CHARS
    user_agent_mode: str = DEFAULT_UA_MODE
    user_agent_family: str = DEFAULT_UA_FAMILY
    user_agent: str = DEFAULT_USER_AGENT
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_bytes: int = DEFAULT_MAX_BYTES
    allow_fallbacks: bool = True
    prefer_readability: bool = True
    follow: int = DEFAULT_REDIRECT_LIMIT
    include_meta: bool = False
    allow_private: bool = False
    debug: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "FetchOptions":
        """Resolve defaults from ``FETCH_*`` env vars; non-None ``overrides`` win."""

        values: Dict[str, Any] = {
            "max_chars": env_int(ENV_MAX_CHARS, DEFAULT_MAX_CHARS),
            "user_agent_mode": env_str(ENV_UA_MODE, DEFAULT_UA_MODE),
            "user_agent_family": env_str(ENV_UA_FAMILY, DEFAULT_UA_FAMILY),
            "user_agent": env_str(ENV_USER_AGENT, DEFAULT_USER_AGENT),
            "timeout_ms": env_int(ENV_TIMEOUT_MS, DEFAULT_TIMEOUT_MS),
            "max_bytes": env_int(ENV_MAX_BYTES, DEFAULT_MAX_BYTES),
            "allow_fallbacks": env_bool(ENV_ALLOW_FALLBACKS, True),
            "prefer_readability": env_bool(ENV_PREFER_READABILITY, True),
            "follow": env_int(ENV_REDIRECT_LIMIT, DEFAULT_REDIRECT_LIMIT),
            "allow_private": env_bool(ENV_ALLOW_PRIVATE, False),
            "debug": env_bool(ENV_DEBUG, False),
        }
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise TypeError(f"Unknown fetch option(s): {', '.join(unknown)}")
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @property
    def timeout_seconds(self) -> float:
        return max(0.0, self.timeout_ms / 1000.0)


@dataclass
class FetchOutcome:
    """Text of the first successful attempt and how it was obtained."""

    url: str
    text: str
    title: str
    byline: str
    excerpt: str
    method: str
    via: str
    source_url: str
    strategy: Strategy
    attempts: int = 1
    errors: List[str] = field(default_factory=list)

    def meta(self) -> Dict[str, Any]:
        return {
            K_TITLE: self.title,
            K_BYLINE: self.byline,
            K_EXCERPT: self.excerpt,
            K_METHOD: self.method,
            K_VIA: self.via,
        }


class PageFetcher:
    """Run the strategy-fallback protocol for one URL at a time.

    ``strategy_cache`` is shared by every call on this instance; pass a fresh
    :class:`StrategyCache` for isolation. ``session`` is reused when given,
    otherwise each call opens and closes its own aiohttp session.
    """

    def __init__(
        self,
        *,
        strategy_cache: Optional[StrategyCache] = None,
        mirror_builder: Optional[MirrorBuilder] = None,
        session: Optional[aiohttp.ClientSession] = None,
        extractor: Extractor = extract_readable_text,
        fetcher_factory: FetcherFactory = BoundedFetcher,
    ) -> None:
        self.strategy_cache = strategy_cache if strategy_cache is not None else StrategyCache()
        self.mirror_builder = mirror_builder or default_mirror_builder()
        self.session = session
        self.extractor = extractor
        self.fetcher_factory = fetcher_factory

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self.session is not None:
            yield self.session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    async def fetch(self, url: str, options: Optional[FetchOptions] = None) -> FetchOutcome:
        """Return the first non-empty extraction for ``url``.

        Raises :class:`FetchExhausted` when every attempt failed or produced no
        text, and :class:`FetchTimeout` when ``options.timeout_ms`` elapsed first.
        """

        options = options or FetchOptions.from_env()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + options.timeout_seconds
        try:
            return await asyncio.wait_for(
                self._orchestrate(url, options, deadline),
                timeout=options.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise FetchTimeout(options.timeout_ms) from exc

    async def _orchestrate(self, url: str, options: FetchOptions, deadline: float) -> FetchOutcome:
        loop = asyncio.get_running_loop()
        urls = build_candidate_urls(url, self.mirror_builder, options.allow_fallbacks)
        host = host_key(url)
        strategies = order_strategies(self.strategy_cache.get(host) if host else None)
        user_agent = pick_user_agent(
            mode=options.user_agent_mode,
            url=url,
            family=options.user_agent_family,
            fixed=options.user_agent,
        )

        redirect_guard = partial(check_target, allow_private=options.allow_private)
        errors: List[Exception] = []
        attempts = 0
        async with self._session_scope() as session:
            fetcher = self.fetcher_factory(session)
            for strategy in strategies:
                targets = urls[1:] if strategy.is_proxy else urls[:1]
                for target in targets:
                    if loop.time() >= deadline:
                        raise FetchTimeout(options.timeout_ms)
                    attempts += 1
                    try:
                        page = await fetcher.fetch(
                            target,
                            user_agent,
                            redirect_limit=options.follow,
                            max_bytes=options.max_bytes,
                            deadline=deadline,
                            redirect_guard=redirect_guard,
                        )
                        extracted = self.extractor(
                            page.body,
                            url,
                            max_chars=options.max_chars,
                            prefer_readability=strategy.prefer_extraction and options.prefer_readability,
                        )
                    except Exception as exc:  # any attempt failure moves on to the next candidate
                        errors.append(exc)
                        self._log_failure(options, target, exc)
                        continue

                    if not extracted.text:
                        logger.debug("[page_fetch] %s produced no text (%s)", target, strategy)
                        continue

                    if host:
                        self.strategy_cache.put(host, strategy)
                    return FetchOutcome(
                        url=url,
                        text=extracted.text,
                        title=extracted.title,
                        byline=extracted.byline,
                        excerpt=extracted.excerpt,
                        method=extracted.method,
                        via=strategy.channel,
                        source_url=target,
                        strategy=strategy,
                        attempts=attempts,
                        errors=[str(err) for err in errors],
                    )

        message = str(errors[-1]) if errors else EXHAUSTED_MESSAGE
        raise FetchExhausted(message or EXHAUSTED_MESSAGE, errors)

    @staticmethod
    def _log_failure(options: FetchOptions, target: str, exc: Exception) -> None:
        message = str(exc) or exc.__class__.__name__
        if options.debug:
            logger.warning("[page_fetch] %s failed: %s", target, message)
        else:
            logger.debug("[page_fetch] %s failed: %s", target, message)


_DEFAULT_CACHE = StrategyCache(env_int(ENV_STRATEGY_CACHE_SIZE, DEFAULT_STRATEGY_CACHE_SIZE))


def default_strategy_cache() -> StrategyCache:
    return _DEFAULT_CACHE


async def fetch_page(
    url: str,
    options: Optional[FetchOptions] = None,
    *,
    fetcher: Optional[PageFetcher] = None,
    **overrides: Any,
) -> FetchOutcome:
    """Fetch ``url`` with env-resolved options and the process-wide strategy cache."""

    if options is None:
        resolved = FetchOptions.from_env(**overrides)
    else:
        resolved = replace(options, **{key: value for key, value in overrides.items() if value is not None})
    page_fetcher = fetcher or PageFetcher(strategy_cache=_DEFAULT_CACHE)
    return await page_fetcher.fetch(url, resolved)


def fetch_page_sync(url: str, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchOutcome:
    """Blocking wrapper around :func:`fetch_page` for scripts and the CLI."""

    return asyncio.run(fetch_page(url, options, **overrides))


__all__ = [
    "EXHAUSTED_MESSAGE",
    "FetchOptions",
    "FetchOutcome",
    "PageFetcher",
    "default_strategy_cache",
    "fetch_page",
    "fetch_page_sync",
]
