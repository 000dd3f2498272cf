"""High-level exports for the page fetch workflows."""

from .chunking import chunk_text
from .errors import (
    BlockedHost,
    FetchExhausted,
    FetchTimeout,
    InvalidUrl,
    PageFetchError,
    UnsupportedScheme,
)
from .page_fetch import FetchOptions, FetchOutcome, PageFetcher, fetch_page, fetch_page_sync
from .security import check_target, is_blocked_host, normalize_target_url
from .strategy_cache import Strategy, StrategyCache
from .user_agents import pick_user_agent

__all__ = [
    "chunk_text",
    "BlockedHost",
    "FetchExhausted",
    "FetchTimeout",
    "InvalidUrl",
    "PageFetchError",
    "UnsupportedScheme",
    "FetchOptions",
    "FetchOutcome",
    "PageFetcher",
    "fetch_page",
    "fetch_page_sync",
    "check_target",
    "is_blocked_host",
    "normalize_target_url",
    "Strategy",
    "StrategyCache",
    "pick_user_agent",
]
