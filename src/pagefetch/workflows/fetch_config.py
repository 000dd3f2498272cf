"""Fetch defaults (endpoints, headers, limits, env names).

Centralizes static defaults so page_fetch.py has no embedded magic strings.
Callers can pass their own FetchOptions to override any of them.
"""

from __future__ import annotations

# Endpoints / headers
MIRROR_PREFIX = "https://r.jina.ai"
HDR_USER_AGENT = "User-Agent"
HDR_ACCEPT = "Accept"
HDR_ACCEPT_LANGUAGE = "Accept-Language"
ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.9"

# Orchestration defaults
DEFAULT_MAX_CHARS = 15000
DEFAULT_UA_MODE = "url"
DEFAULT_UA_FAMILY = "desktop"
DEFAULT_USER_AGENT = "Mozilla/5.0"
DEFAULT_TIMEOUT_MS = 15000
DEFAULT_MAX_BYTES = 2_000_000
DEFAULT_REDIRECT_LIMIT = 3
DEFAULT_STRATEGY_CACHE_SIZE = 1024

# Chunking defaults
DEFAULT_CHUNK_SIZE = 1200
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MAX_CHUNKS = 10
MIN_CHUNK_SIZE = 100
MIN_CHUNK_CHARS = 20

# Service defaults
DEFAULT_SERVICE_PORT = 8787
DEFAULT_MAX_URL_LENGTH = 2048

# Environment variable names
ENV_MAX_CHARS = "FETCH_MAX_CHARS"
ENV_UA_MODE = "FETCH_UA_MODE"
ENV_UA_FAMILY = "FETCH_UA_FAMILY"
ENV_USER_AGENT = "FETCH_USER_AGENT"
ENV_TIMEOUT_MS = "FETCH_TIMEOUT_MS"
ENV_MAX_BYTES = "FETCH_MAX_BYTES"
ENV_ALLOW_FALLBACKS = "FETCH_ALLOW_FALLBACKS"
ENV_PREFER_READABILITY = "FETCH_PREFER_READABILITY"
ENV_REDIRECT_LIMIT = "FETCH_REDIRECT_LIMIT"
ENV_DEBUG = "FETCH_DEBUG"
ENV_MIRROR_PREFIX = "FETCH_MIRROR_PREFIX"
ENV_STRATEGY_CACHE_SIZE = "FETCH_STRATEGY_CACHE_SIZE"
ENV_SERVICE_PORT = "FETCH_SERVICE_PORT"
ENV_ALLOW_PRIVATE = "FETCH_ALLOW_PRIVATE"
ENV_MAX_URL_LENGTH = "FETCH_MAX_URL_LENGTH"

# Page regions removed before extraction
STRIP_SELECTORS = (
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "canvas",
    "form",
    "nav",
    "footer",
    "header",
    "aside",
)
