import asyncio
from typing import Dict, List, Union

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as AiohttpTestServer

from pagefetch.workflows.bounded_fetch import FetchedPage
from pagefetch.workflows.errors import Cancelled, FetchExhausted, FetchTimeout, HttpError
from pagefetch.workflows.extract import Extraction
from pagefetch.workflows.mirrors import PrefixMirror
from pagefetch.workflows.page_fetch import FetchOptions, PageFetcher, fetch_page
from pagefetch.workflows.strategy_cache import CHANNEL_DIRECT, CHANNEL_PROXY, Strategy, StrategyCache

URL = "https://news.example/story"
MIRROR_HTTP = "https://r.jina.ai/http://news.example/story"
MIRROR_HTTPS = "https://r.jina.ai/https://news.example/story"

Route = Union[str, Exception, float]


class StubFetcher:
    """Serves canned bodies; exceptions are raised, floats are sleeps."""

    def __init__(self, routes: Dict[str, Route], calls: List[str]) -> None:
        self.routes = routes
        self.calls = calls

    async def fetch(self, url, user_agent, *, redirect_limit, max_bytes, deadline, redirect_guard=None):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            raise HttpError(404, "Not Found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, float):
            await asyncio.sleep(route)
            route = "late"
        return FetchedPage(url, url, 200, "text/html", route, len(route))


def fake_extractor(html, base_url, *, max_chars, prefer_readability):
    return Extraction(
        text=html.strip()[:max_chars],
        title="Story",
        byline="",
        excerpt="",
        method="extraction" if prefer_readability else "raw",
    )


def _fetcher(routes: Dict[str, Route], calls: List[str], cache: StrategyCache) -> PageFetcher:
    return PageFetcher(
        strategy_cache=cache,
        mirror_builder=PrefixMirror(),
        extractor=fake_extractor,
        fetcher_factory=lambda session: StubFetcher(routes, calls),
    )


def test_direct_success_records_strategy():
    calls: List[str] = []
    cache = StrategyCache()

    outcome = asyncio.run(_fetcher({URL: "hello world"}, calls, cache).fetch(URL, FetchOptions()))

    assert outcome.text == "hello world"
    assert outcome.via == CHANNEL_DIRECT
    assert outcome.method == "extraction"
    assert outcome.source_url == URL
    assert calls == [URL]
    assert cache.get("news.example") == Strategy(CHANNEL_DIRECT, True)


def test_direct_timeout_falls_back_to_proxy_and_caches_it():
    calls: List[str] = []
    cache = StrategyCache()
    routes: Dict[str, Route] = {URL: Cancelled("Request timed out"), MIRROR_HTTP: "mirror text"}

    outcome = asyncio.run(_fetcher(routes, calls, cache).fetch(URL, FetchOptions()))

    assert outcome.text == "mirror text"
    assert outcome.via == CHANNEL_PROXY
    assert outcome.strategy == Strategy(CHANNEL_PROXY, True)
    assert outcome.attempts == 3
    assert calls == [URL, URL, MIRROR_HTTP]
    assert cache.get("news.example") == Strategy(CHANNEL_PROXY, True)


def test_cached_strategy_is_tried_first_for_same_host():
    calls: List[str] = []
    cache = StrategyCache()
    cache.put("news.example", Strategy(CHANNEL_PROXY, True))
    other = "https://news.example/other"
    routes: Dict[str, Route] = {"https://r.jina.ai/http://news.example/other": "cached route"}

    outcome = asyncio.run(_fetcher(routes, calls, cache).fetch(other, FetchOptions()))

    assert outcome.via == CHANNEL_PROXY
    assert calls == ["https://r.jina.ai/http://news.example/other"]


def test_text_is_truncated_to_max_chars():
    calls: List[str] = []

    outcome = asyncio.run(
        _fetcher({URL: "a" * 500}, calls, StrategyCache()).fetch(URL, FetchOptions(max_chars=40))
    )

    assert len(outcome.text) == 40


def test_exhaustion_reports_last_error():
    calls: List[str] = []
    routes: Dict[str, Route] = {
        URL: HttpError(500, "Internal Server Error"),
        MIRROR_HTTP: HttpError(502, "Bad Gateway"),
        MIRROR_HTTPS: HttpError(503, "Service Unavailable"),
    }

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(_fetcher(routes, calls, StrategyCache()).fetch(URL, FetchOptions()))

    assert str(excinfo.value) == "Request failed: 503 Service Unavailable"
    assert len(excinfo.value.errors) == 6
    assert len(calls) == 6


def test_empty_text_everywhere_exhausts_with_generic_message():
    calls: List[str] = []
    cache = StrategyCache()
    routes: Dict[str, Route] = {URL: "   ", MIRROR_HTTP: "", MIRROR_HTTPS: ""}

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(_fetcher(routes, calls, cache).fetch(URL, FetchOptions()))

    assert str(excinfo.value) == "Unable to fetch page content"
    assert len(cache) == 0


def test_disabled_fallbacks_only_try_direct():
    calls: List[str] = []
    routes: Dict[str, Route] = {URL: HttpError(403, "Forbidden"), MIRROR_HTTP: "never"}

    with pytest.raises(FetchExhausted):
        asyncio.run(
            _fetcher(routes, calls, StrategyCache()).fetch(URL, FetchOptions(allow_fallbacks=False))
        )

    assert calls == [URL, URL]


def test_global_deadline_raises_fetch_timeout():
    calls: List[str] = []
    routes: Dict[str, Route] = {URL: 2.0}

    with pytest.raises(FetchTimeout) as excinfo:
        asyncio.run(_fetcher(routes, calls, StrategyCache()).fetch(URL, FetchOptions(timeout_ms=50)))

    assert str(excinfo.value) == "Timed out after 50 ms"


def test_fetch_page_applies_overrides(monkeypatch):
    monkeypatch.setenv("FETCH_MAX_CHARS", "1000")
    calls: List[str] = []
    fetcher = _fetcher({URL: "b" * 200}, calls, StrategyCache())

    outcome = asyncio.run(fetch_page(URL, fetcher=fetcher, max_chars=12))

    assert outcome.text == "b" * 12


ARTICLE = """
<html>
  <head>
    <title>Harbour Report</title>
    <meta name="author" content="Sam Doe">
    <meta name="description" content="A short report about the harbour.">
  </head>
  <body>
    <nav>Home | News | Sport</nav>
    <article>
      <h1>Harbour Report</h1>
      <p>The harbour authority announced on Tuesday that the northern quay will reopen after a two year restoration that replaced the timber piles and resurfaced the promenade.</p>
      <p>Engineers said the new foundations were designed to withstand higher tides, and the work finished slightly ahead of the schedule that was agreed with the city council last spring.</p>
      <p>Local fishing crews, who had been mooring at the southern breakwater during the closure, welcomed the news and said they expect to return to their old berths within the month.</p>
      <p>The authority will host an open day at the quay on Saturday with guided walks, a small exhibition about the restoration, and stalls run by traders from the harbour market.</p>
    </article>
    <footer>Copyright Harbour Gazette</footer>
  </body>
</html>
"""


def test_end_to_end_direct_extraction_over_http():
    async def article(request: web.Request) -> web.Response:
        return web.Response(text=ARTICLE, content_type="text/html")

    async def run():
        app = web.Application()
        app.router.add_get("/story", article)
        async with AiohttpTestServer(app) as server:
            fetcher = PageFetcher(strategy_cache=StrategyCache(), mirror_builder=lambda url: [])
            return await fetcher.fetch(str(server.make_url("/story")), FetchOptions(max_chars=60))

    outcome = asyncio.run(run())

    assert outcome.via == CHANNEL_DIRECT
    assert outcome.method == "extraction"
    assert 0 < len(outcome.text) <= 60
    assert "Home | News" not in outcome.text
    assert outcome.byline == "Sam Doe"


def test_end_to_end_mirror_fallback_over_http():
    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500, text="down")

    async def mirror(request: web.Request) -> web.Response:
        return web.Response(text=ARTICLE, content_type="text/html")

    async def run():
        app = web.Application()
        app.router.add_get("/story", broken)
        app.router.add_get("/mirror", mirror)
        async with AiohttpTestServer(app) as server:
            mirror_url = str(server.make_url("/mirror"))
            cache = StrategyCache()
            async with aiohttp.ClientSession() as session:
                fetcher = PageFetcher(strategy_cache=cache, mirror_builder=lambda url: [mirror_url], session=session)
                outcome = await fetcher.fetch(str(server.make_url("/story")), FetchOptions())
            return outcome, cache

    outcome, cache = asyncio.run(run())

    assert outcome.via == CHANNEL_PROXY
    assert "northern quay" in outcome.text
    assert cache.get("127.0.0.1") == Strategy(CHANNEL_PROXY, True)


class RedirectingFetcher(StubFetcher):
    """Direct URL redirects to a metadata address; everything else is canned."""

    async def fetch(self, url, user_agent, *, redirect_limit, max_bytes, deadline, redirect_guard=None):
        if url == URL and redirect_guard is not None:
            redirect_guard("http://169.254.169.254/latest/meta-data")
        return await super().fetch(
            url, user_agent, redirect_limit=redirect_limit, max_bytes=max_bytes, deadline=deadline
        )


def _redirecting(routes: Dict[str, Route], calls: List[str]) -> PageFetcher:
    return PageFetcher(
        strategy_cache=StrategyCache(),
        mirror_builder=PrefixMirror(),
        extractor=fake_extractor,
        fetcher_factory=lambda session: RedirectingFetcher(routes, calls),
    )


def test_redirect_into_private_range_fails_the_attempt():
    calls: List[str] = []
    routes: Dict[str, Route] = {URL: "internal secrets", MIRROR_HTTP: "public copy"}

    outcome = asyncio.run(_redirecting(routes, calls).fetch(URL, FetchOptions()))

    assert outcome.text == "public copy"
    assert outcome.via == CHANNEL_PROXY
    assert calls == [MIRROR_HTTP]


def test_allow_private_lets_redirect_through():
    calls: List[str] = []
    routes: Dict[str, Route] = {URL: "internal page"}

    outcome = asyncio.run(_redirecting(routes, calls).fetch(URL, FetchOptions(allow_private=True)))

    assert outcome.text == "internal page"
    assert outcome.via == CHANNEL_DIRECT
