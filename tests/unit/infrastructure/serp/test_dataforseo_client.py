import base64
import json

import httpx
import pytest

from briefai.domain.models.errors import PermanentFailure, TransientFailure
from briefai.infrastructure.serp.dataforseo_client import (
    DataForSeoClient,
    parse_serp_response,
)
from briefai.domain.models.serp import domain_of


def organic(i, **overrides):
    item = {
        "type": "organic",
        "url": f"https://www.example{i}.com/post",
        "title": f"Result {i}",
        "domain": f"www.example{i}.com",
        "description": f"Description {i}",
        "rank_absolute": i + 1,
    }
    item.update(overrides)
    return item


def envelope(items, status_code=20000):
    return {
        "status_code": status_code,
        "status_message": "Ok." if status_code == 20000 else "Error.",
        "tasks": [{"result": [{"items": items}]}],
    }


def make_client(handler, **kwargs):
    return DataForSeoClient("login", "secret", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_posts_expected_request_and_parses_organic_results():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        items = [organic(0), {"type": "featured_snippet", "url": "https://x.com"}, organic(1)]
        return httpx.Response(200, json=envelope(items))

    client = make_client(handler, language_code="tr", location_code=2792)
    competitors = await client.fetch_serp_results("dijital pazarlama")
    await client.aclose()

    request = captured["request"]
    assert request.method == "POST"
    assert request.url.path == "/v3/serp/google/organic/live/advanced"
    expected_auth = "Basic " + base64.b64encode(b"login:secret").decode()
    assert request.headers["authorization"] == expected_auth
    assert json.loads(request.content) == [{
        "keyword": "dijital pazarlama",
        "location_code": 2792,
        "language_code": "tr",
        "device": "mobile",
        "os": "android",
    }]
    assert [c.title for c in competitors] == ["Result 0", "Result 1"]
    assert competitors[0].position == 1
    assert competitors[0].snippet == "Description 0"


@pytest.mark.asyncio
async def test_call_arguments_override_default_locale():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content)[0])
        return httpx.Response(200, json=envelope([]))

    client = make_client(handler)
    await client.fetch_serp_results("seo", location_code=2792, language_code="tr")

    assert (seen["location_code"], seen["language_code"]) == (2792, "tr")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 503])
async def test_throttling_and_server_errors_are_transient(status):
    client = make_client(lambda request: httpx.Response(status))
    with pytest.raises(TransientFailure):
        await client.fetch_serp_results("seo")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404])
async def test_client_errors_are_permanent(status):
    client = make_client(lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(PermanentFailure):
        await client.fetch_serp_results("seo")


@pytest.mark.asyncio
async def test_network_errors_are_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(TransientFailure):
        await client.fetch_serp_results("seo")


@pytest.mark.asyncio
async def test_non_ok_envelope_is_permanent():
    client = make_client(lambda request: httpx.Response(200, json=envelope([], status_code=40100)))
    with pytest.raises(PermanentFailure, match="40100"):
        await client.fetch_serp_results("seo")


@pytest.mark.asyncio
async def test_empty_envelope_yields_no_results():
    client = make_client(lambda request: httpx.Response(200, json={}))
    assert await client.fetch_serp_results("seo") == []


def test_parse_keeps_top_ten_and_falls_back_to_index_position():
    items = [organic(i, rank_absolute=None) for i in range(12)]
    competitors = parse_serp_response(envelope(items))

    assert len(competitors) == 10
    assert [c.position for c in competitors[:3]] == [1, 2, 3]


def test_parse_handles_missing_result_list():
    assert parse_serp_response({"status_code": 20000, "tasks": [{"result": None}]}) == []


def test_domain_of_strips_www():
    assert domain_of("https://www.example.com/a") == "example.com"
    assert domain_of("https://blog.example.com") == "blog.example.com"
