"""HTTP shell: ``GET /fetch?url=...`` returning extracted page text as JSON."""

from __future__ import annotations

import json
import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.keys import K_CHUNKS, K_ERROR, K_META, K_TEXT, K_URL
from .workflows.chunking import chunk_text
from .workflows.errors import BlockedHost, InvalidUrl, PageFetchError
from .workflows.fetch_config import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_MAX_CHUNKS,
    DEFAULT_MAX_URL_LENGTH,
    DEFAULT_SERVICE_PORT,
    ENV_ALLOW_PRIVATE,
    ENV_DEBUG,
    ENV_MAX_URL_LENGTH,
    ENV_SERVICE_PORT,
)
from .workflows.fetch_utils import env_bool, env_int
from .workflows.page_fetch import FetchOptions, PageFetcher, default_strategy_cache
from .workflows.security import check_target

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@dataclass(frozen=True)
class ServiceSettings:
    port: int = DEFAULT_SERVICE_PORT
    allow_private: bool = False
    debug: bool = False
    max_url_length: int = DEFAULT_MAX_URL_LENGTH

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        return cls(
            port=env_int(ENV_SERVICE_PORT, DEFAULT_SERVICE_PORT),
            allow_private=env_bool(ENV_ALLOW_PRIVATE, False),
            debug=env_bool(ENV_DEBUG, False),
            max_url_length=env_int(ENV_MAX_URL_LENGTH, DEFAULT_MAX_URL_LENGTH),
        )


def parse_boolean(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value in {"true", "1"}


def parse_number(value: Optional[str], default: Optional[int]) -> Optional[int]:
    if value is None or not value.strip():
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return int(number)


def _json(status: int, payload: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status, content=payload, headers=CORS_HEADERS)


def create_app(
    settings: Optional[ServiceSettings] = None,
    page_fetcher: Optional[PageFetcher] = None,
) -> FastAPI:
    settings = settings or ServiceSettings.from_env()
    fetcher = page_fetcher or PageFetcher(strategy_cache=default_strategy_cache())
    app = FastAPI(title="pagefetch")
    app.state.settings = settings
    app.state.page_fetcher = fetcher

    def log_debug(message: str, **extra: Any) -> None:
        if settings.debug:
            logger.info("[service] %s%s", message, f" {json.dumps(extra)}" if extra else "")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 405:
            return _json(405, {K_ERROR: "Method not allowed"})
        if exc.status_code == 404:
            return _json(404, {K_ERROR: "Not found"})
        return _json(exc.status_code, {K_ERROR: str(exc.detail)})

    # Preflight is answered before routing so unknown paths still 404 for GET.
    @app.middleware("http")
    async def preflight(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=PREFLIGHT_HEADERS)
        return await call_next(request)

    @app.get("/health")
    async def health() -> JSONResponse:
        return _json(200, {"status": "ok"})

    @app.get("/fetch")
    async def fetch(
        url: Optional[str] = Query(None, description="Page URL to fetch"),
        include_meta: Optional[str] = Query(None, alias="includeMeta"),
        allow_fallbacks: Optional[str] = Query(None, alias="allowFallbacks"),
        prefer_readability: Optional[str] = Query(None, alias="preferReadability"),
        user_agent_mode: Optional[str] = Query(None, alias="userAgentMode"),
        user_agent_family: Optional[str] = Query(None, alias="userAgentFamily"),
        timeout_ms: Optional[str] = Query(None, alias="timeoutMs"),
        max_chars: Optional[str] = Query(None, alias="maxChars"),
        max_bytes: Optional[str] = Query(None, alias="maxBytes"),
        redirect_limit: Optional[str] = Query(None, alias="redirectLimit"),
        chunk_size: Optional[str] = Query(None, alias="chunkSize"),
        chunk_overlap: Optional[str] = Query(None, alias="chunkOverlap"),
        max_chunks: Optional[str] = Query(None, alias="maxChunks"),
    ) -> JSONResponse:
        if not url:
            return _json(400, {K_ERROR: "Missing url parameter"})
        if len(url) > settings.max_url_length:
            return _json(400, {K_ERROR: "URL too long"})
        try:
            target = check_target(url, settings.allow_private)
        except BlockedHost:
            return _json(403, {K_ERROR: "Target host is not allowed"})
        except InvalidUrl as exc:
            return _json(400, {K_ERROR: str(exc) or "Invalid url"})

        base = FetchOptions.from_env(debug=settings.debug)
        options = FetchOptions(
            max_chars=parse_number(max_chars, base.max_chars),
            user_agent_mode=user_agent_mode or base.user_agent_mode,
            user_agent_family=user_agent_family or base.user_agent_family,
            user_agent=base.user_agent,
            timeout_ms=parse_number(timeout_ms, base.timeout_ms),
            max_bytes=parse_number(max_bytes, base.max_bytes),
            allow_fallbacks=parse_boolean(allow_fallbacks, base.allow_fallbacks),
            prefer_readability=parse_boolean(prefer_readability, base.prefer_readability),
            follow=parse_number(redirect_limit, base.follow),
            include_meta=parse_boolean(include_meta, False),
            allow_private=settings.allow_private,
            debug=settings.debug,
        )
        size = parse_number(chunk_size, None)

        request_id = str(uuid.uuid4())
        start = time.perf_counter()
        log_debug("request:start", request_id=request_id, url=target)
        try:
            outcome = await fetcher.fetch(target, options)
        except PageFetchError as exc:
            log_debug(
                "request:fail",
                request_id=request_id,
                duration_ms=int((time.perf_counter() - start) * 1000),
                error=str(exc),
            )
            return _json(502, {K_ERROR: str(exc)})

        payload: Dict[str, Any] = {K_URL: target, K_TEXT: outcome.text}
        if options.include_meta:
            payload[K_META] = outcome.meta()
        if size:
            payload[K_CHUNKS] = chunk_text(
                outcome.text,
                chunk_size=size,
                overlap=parse_number(chunk_overlap, DEFAULT_CHUNK_OVERLAP),
                max_chunks=parse_number(max_chunks, DEFAULT_MAX_CHUNKS),
            )
        log_debug(
            "request:success",
            request_id=request_id,
            duration_ms=int((time.perf_counter() - start) * 1000),
            chars=len(outcome.text),
        )
        return _json(200, payload)

    return app


def run(host: str = "0.0.0.0", port: Optional[int] = None, settings: Optional[ServiceSettings] = None) -> None:
    """Serve the app with uvicorn (blocking)."""

    load_dotenv()
    settings = settings or ServiceSettings.from_env()
    app = create_app(settings)
    logger.info("Fetch service listening on http://%s:%d", host, port or settings.port)
    uvicorn.run(app, host=host, port=port or settings.port, log_level="debug" if settings.debug else "info")


__all__ = [
    "ServiceSettings",
    "parse_boolean",
    "parse_number",
    "create_app",
    "run",
]
