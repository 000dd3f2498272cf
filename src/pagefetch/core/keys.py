"""Shared response keys to avoid magic strings across the service and CLI."""

from __future__ import annotations

# Response payload keys
K_URL = "url"
K_TEXT = "text"
K_META = "meta"
K_CHUNKS = "chunks"
K_ERROR = "error"

# Meta keys
K_TITLE = "title"
K_BYLINE = "byline"
K_EXCERPT = "excerpt"
K_METHOD = "method"
K_VIA = "via"
