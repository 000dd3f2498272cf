from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient

from pagefetch.service import ServiceSettings, create_app, parse_boolean, parse_number
from pagefetch.workflows.errors import FetchExhausted
from pagefetch.workflows.page_fetch import FetchOptions, FetchOutcome
from pagefetch.workflows.strategy_cache import CHANNEL_DIRECT, Strategy

BODY = " ".join(f"sentence{i}" for i in range(120))


class StubPageFetcher:
    def __init__(self, error: Exception = None) -> None:
        self.calls: List[Tuple[str, FetchOptions]] = []
        self.error = error

    async def fetch(self, url: str, options: FetchOptions) -> FetchOutcome:
        self.calls.append((url, options))
        if self.error is not None:
            raise self.error
        return FetchOutcome(
            url=url,
            text=BODY,
            title="Title",
            byline="Author",
            excerpt="Summary",
            method="extraction",
            via=CHANNEL_DIRECT,
            source_url=url,
            strategy=Strategy(CHANNEL_DIRECT, True),
        )


@pytest.fixture()
def stub() -> StubPageFetcher:
    return StubPageFetcher()


@pytest.fixture()
def client(stub: StubPageFetcher) -> TestClient:
    return TestClient(create_app(ServiceSettings(), page_fetcher=stub))


def test_missing_url_is_rejected(client):
    resp = client.get("/fetch")

    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing url parameter"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_unsupported_scheme_is_rejected(client):
    resp = client.get("/fetch", params={"url": "ftp://example.com/file"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Only http/https URLs are allowed"}


def test_loopback_target_is_forbidden_without_fetching(client, stub):
    resp = client.get("/fetch", params={"url": "http://127.0.0.1:9000/"})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Target host is not allowed"}
    assert stub.calls == []


def test_overlong_url_is_rejected(stub):
    client = TestClient(create_app(ServiceSettings(max_url_length=30), page_fetcher=stub))

    resp = client.get("/fetch", params={"url": "https://example.com/" + "a" * 40})

    assert resp.status_code == 400
    assert resp.json() == {"error": "URL too long"}


def test_success_with_meta_and_chunks(client, stub):
    resp = client.get(
        "/fetch",
        params={"url": "https://example.com/a", "includeMeta": "true", "chunkSize": "300", "maxChunks": "2"},
    )

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["url"] == "https://example.com/a"
    assert payload["text"] == BODY
    assert payload["meta"] == {
        "title": "Title",
        "byline": "Author",
        "excerpt": "Summary",
        "method": "extraction",
        "via": "direct",
    }
    assert len(payload["chunks"]) == 2
    assert all(len(chunk) <= 300 for chunk in payload["chunks"])


def test_plain_success_omits_meta_and_chunks(client):
    resp = client.get("/fetch", params={"url": "https://example.com/", "includeMeta": "yes"})

    assert resp.status_code == 200
    assert set(resp.json()) == {"url", "text"}


def test_query_parameters_reach_options(client, stub):
    client.get(
        "/fetch",
        params={
            "url": "https://example.com/",
            "redirectLimit": "0",
            "maxChars": "abc",
            "timeoutMs": "2500",
            "allowFallbacks": "false",
            "userAgentMode": "fixed",
        },
    )

    _, options = stub.calls[0]
    assert options.follow == 0
    assert options.max_chars == FetchOptions.from_env().max_chars
    assert options.timeout_ms == 2500
    assert options.allow_fallbacks is False
    assert options.user_agent_mode == "fixed"


def test_fetch_failure_maps_to_bad_gateway():
    stub = StubPageFetcher(error=FetchExhausted("Request failed: 500 Internal Server Error"))
    client = TestClient(create_app(ServiceSettings(), page_fetcher=stub))

    resp = client.get("/fetch", params={"url": "https://example.com/"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "Request failed: 500 Internal Server Error"}


def test_wrong_method_and_unknown_path(client):
    resp = client.post("/fetch")
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed"}

    resp = client.get("/elsewhere")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found"}


def test_unknown_path_is_not_found_for_get_but_preflight_succeeds(client):
    resp = client.get("/missing/page")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found"}
    assert resp.headers["access-control-allow-origin"] == "*"

    resp = client.options("/missing/page")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-methods"] == "GET, OPTIONS"


def test_preflight_and_health(client):
    resp = client.options("/fetch")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "GET" in resp.headers["access-control-allow-methods"]

    assert client.get("/health").json() == {"status": "ok"}


def test_query_parsers():
    assert parse_boolean("true", False) is True
    assert parse_boolean("1", False) is True
    assert parse_boolean("yes", True) is False
    assert parse_boolean(None, True) is True
    assert parse_number("12.7", 0) == 12
    assert parse_number("", 5) == 5
    assert parse_number("nan", 5) == 5
    assert parse_number(None, None) is None


def test_allow_private_setting_reaches_fetch_options():
    stub = StubPageFetcher()
    client = TestClient(create_app(ServiceSettings(allow_private=True), page_fetcher=stub))

    resp = client.get("/fetch", params={"url": "http://127.0.0.1:9000/"})

    assert resp.status_code == 200
    _, options = stub.calls[0]
    assert options.allow_private is True
