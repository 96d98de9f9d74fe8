import asyncio

import httpx
import pytest
import pytest_asyncio

from tests.fakes import PaceRecorder, make_settings
from tokendash.providers.coingecko import CoingeckoProvider
from tokendash.services.cancellation import CancellationToken


@pytest_asyncio.fixture
async def make_provider():
    clients = []

    def factory(handler, **overrides) -> CoingeckoProvider:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return CoingeckoProvider(make_settings(**overrides), client=client)

    yield factory
    for client in clients:
        await client.aclose()


@pytest.mark.asyncio
async def test_resolve_price_reads_usd_field(make_provider):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ethereum": {"usd": 2000}})

    provider = make_provider(handler)

    assert await provider.resolve_price("ethereum") == 2000.0
    assert seen[0].url.path.endswith("/simple/price")
    assert seen[0].url.params["ids"] == "ethereum"
    assert seen[0].url.params["vs_currencies"] == "usd"
    assert "X-CG-Demo-API-Key" not in seen[0].headers


@pytest.mark.asyncio
async def test_demo_key_header_sent_when_configured(make_provider):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"usd-coin": {"usd": 1.0}})

    provider = make_provider(handler, coingecko_api_key="demo")

    assert await provider.resolve_price("usd-coin") == 1.0
    assert seen[0].headers["X-CG-Demo-API-Key"] == "demo"


@pytest.mark.asyncio
async def test_empty_feed_id_skips_request(make_provider):
    seen = []
    provider = make_provider(lambda request: seen.append(request) or httpx.Response(200, json={}))

    assert await provider.resolve_price("") == 0.0
    assert seen == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, json={"status": {"error_code": 429}}),
        httpx.Response(200, json={}),
        httpx.Response(200, json={"ethereum": {}}),
        httpx.Response(200, json={"ethereum": {"usd": "2000"}}),
        httpx.Response(200, json={"ethereum": {"usd": None}}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_unusable_responses_price_at_zero(response, make_provider):
    provider = make_provider(lambda request: response)
    assert await provider.resolve_price("ethereum") == 0.0


@pytest.mark.asyncio
async def test_transport_error_prices_at_zero(make_provider):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = make_provider(handler)
    assert await provider.resolve_price("ethereum") == 0.0


@pytest.mark.asyncio
async def test_cancelled_before_pacing_skips_request(make_provider):
    seen = []
    provider = make_provider(
        lambda request: seen.append(request) or httpx.Response(200, json={"ethereum": {"usd": 1}}),
        price_pacing_ms=10_000,
    )
    cancel = CancellationToken()
    cancel.cancel()

    assert await provider.resolve_price("ethereum", cancel) == 0.0
    assert seen == []


@pytest.mark.asyncio
async def test_price_request_is_paced_before_sending(make_provider, monkeypatch):
    events = []
    monkeypatch.setattr("tokendash.providers.coingecko.pace", PaceRecorder(events))

    def handler(request):
        events.append(("request", request.url.params["ids"]))
        return httpx.Response(200, json={request.url.params["ids"]: {"usd": 1.5}})

    provider = make_provider(handler, price_pacing_ms=5)

    assert await provider.resolve_price("ethereum") == 1.5
    assert await provider.resolve_price("usd-coin") == 1.5
    assert events == [
        ("pace", 5),
        ("request", "ethereum"),
        ("pace", 5),
        ("request", "usd-coin"),
    ]


@pytest.mark.asyncio
async def test_cancel_while_pacing_skips_request(make_provider):
    seen = []
    provider = make_provider(
        lambda request: seen.append(request) or httpx.Response(200, json={"ethereum": {"usd": 1}}),
        price_pacing_ms=10_000,
    )
    cancel = CancellationToken()
    asyncio.get_running_loop().call_later(0.01, cancel.cancel)

    assert await provider.resolve_price("ethereum", cancel) == 0.0
    assert seen == []
