import asyncio
import json
import threading
from datetime import datetime, timezone

import pytest
import redis

from conftest import FakeMarketClient, snapshot_for, wavy_prices
from forecaster.data.market_client import (
    DEFAULT_MARKET_CAP,
    MarketClient,
    fallback_series,
    parse_chart_payload,
)
from forecaster.data.models import MarketSnapshot
from forecaster.errors import ForecastGenerationError, InsufficientDataError
from forecaster.services.forecast_cache import (
    ForecastCache,
    MemoryForecastCache,
    RedisForecastCache,
    forecast_cache_key,
)
from forecaster.services.forecast_service import ForecastService


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.store.pop(key, None)


class DownRedis:
    def get(self, key):
        raise redis.ConnectionError("connection refused")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("connection refused")

    def delete(self, key):
        raise redis.ConnectionError("connection refused")


def make_service(client=None, cache=None):
    return ForecastService(
        client=client or FakeMarketClient(),
        cache=cache or MemoryForecastCache(),
        cache_ttl=3600,
        seed=7,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def test_second_request_is_served_from_cache():
    client = FakeMarketClient()
    cache = MemoryForecastCache()
    service = make_service(client, cache)

    async def run():
        first = await service.get_forecast("solana")
        second = await service.get_forecast("solana")
        return first, second

    first, second = asyncio.run(run())
    assert first == second
    assert client.calls == 1
    assert cache.get(forecast_cache_key("solana")) == first
    assert first["assetId"] == "solana"
    assert first["rank"] == 5


def test_refresh_skips_cache():
    client = FakeMarketClient()
    service = make_service(client)

    async def run():
        await service.get_forecast("solana")
        await service.get_forecast("solana", refresh=True)

    asyncio.run(run())
    assert client.calls == 2


def test_concurrent_requests_synthesize_once():
    client = FakeMarketClient()
    service = make_service(client)

    async def run():
        return await asyncio.gather(*(service.get_forecast("solana") for _ in range(5)))

    results = asyncio.run(run())
    assert client.calls == 1
    assert all(r == results[0] for r in results)
    assert service._locks == {}


def test_concurrent_requests_without_lock_all_fetch():
    client = FakeMarketClient()
    service = make_service(client)
    service._lock_for = lambda key: asyncio.Lock()

    async def run():
        return await asyncio.gather(*(service.get_forecast("solana") for _ in range(5)))

    asyncio.run(run())
    assert client.calls > 1


def test_locks_are_dropped_after_each_coin():
    service = make_service()

    async def run():
        for i in range(5):
            await service.get_forecast(f"coin-{i}")

    asyncio.run(run())
    assert service._locks == {}
    assert service._lock_users == {}


def test_lock_is_released_after_failure():
    service = make_service(FakeMarketClient(error=RuntimeError("down")))
    with pytest.raises(ForecastGenerationError):
        asyncio.run(service.get_forecast("solana"))
    assert service._locks == {}


def test_synthesis_runs_off_the_event_loop_thread(monkeypatch):
    service = make_service()
    threads = []
    build = service.build_payload

    def recording_build(snapshot):
        threads.append(threading.get_ident())
        return build(snapshot)

    monkeypatch.setattr(service, "build_payload", recording_build)
    payload = asyncio.run(service.get_forecast("solana"))

    assert payload["assetId"] == "solana"
    assert threads and threads[0] != threading.get_ident()


def test_seeded_service_is_reproducible():
    first = make_service().build_payload(snapshot_for("solana", wavy_prices()))
    second = make_service().build_payload(snapshot_for("solana", wavy_prices()))
    assert first["yearlyPredictions"] == second["yearlyPredictions"]


def test_unexpected_client_error_is_wrapped():
    service = make_service(FakeMarketClient(error=RuntimeError("upstream exploded")))
    with pytest.raises(ForecastGenerationError):
        asyncio.run(service.get_forecast("solana"))


def test_empty_series_cannot_be_forecast():
    snapshot = MarketSnapshot(coin_id="solana", series=[])
    service = make_service(FakeMarketClient(snapshot=snapshot))
    with pytest.raises(InsufficientDataError):
        asyncio.run(service.get_forecast("solana"))


def test_failed_forecast_is_not_cached():
    cache = MemoryForecastCache()
    service = make_service(FakeMarketClient(error=RuntimeError("down")), cache)
    with pytest.raises(ForecastGenerationError):
        asyncio.run(service.get_forecast("solana"))
    assert cache.get(forecast_cache_key("solana")) is None


# ---------------------------------------------------------------------------
# Cache backends
# ---------------------------------------------------------------------------

def test_memory_cache_expires_entries():
    now = [0.0]
    cache = MemoryForecastCache(clock=lambda: now[0])
    cache.set("k", {"a": 1}, ttl_seconds=10)

    now[0] = 9.9
    assert cache.get("k") == {"a": 1}
    now[0] = 10.0
    assert cache.get("k") is None


def test_memory_cache_purges_expired_entries_on_write():
    now = [0.0]
    cache = MemoryForecastCache(clock=lambda: now[0])
    for i in range(40):
        cache.set(forecast_cache_key(f"coin-{i}"), {"i": i}, ttl_seconds=10)

    now[0] = 11.0
    cache.set(forecast_cache_key("bitcoin"), {"i": -1}, ttl_seconds=10)
    assert list(cache._entries) == [forecast_cache_key("bitcoin")]


def test_memory_cache_caps_entries():
    now = [0.0]
    cache = MemoryForecastCache(clock=lambda: now[0], max_entries=2)
    cache.set("a", {"v": 1}, 10)
    cache.set("b", {"v": 2}, 20)
    cache.set("c", {"v": 3}, 30)

    assert cache.get("a") is None
    assert cache.get("b") == {"v": 2}
    assert cache.get("c") == {"v": 3}


def test_partial_cache_backend_cannot_be_created():
    class GetOnlyCache(ForecastCache):
        def get(self, key):
            return None

    with pytest.raises(TypeError):
        GetOnlyCache()


def test_memory_cache_delete():
    cache = MemoryForecastCache()
    cache.set("k", {"a": 1}, 60)
    cache.delete("k")
    cache.delete("missing")
    assert cache.get("k") is None


def test_redis_cache_roundtrip():
    client = FakeRedis()
    cache = RedisForecastCache(client)
    assert cache.set("coin_prediction_btc", {"currentPrice": 1.5}, 86400)
    assert json.loads(client.store["coin_prediction_btc"]) == {"currentPrice": 1.5}
    assert client.ttls["coin_prediction_btc"] == 86400
    assert cache.get("coin_prediction_btc") == {"currentPrice": 1.5}
    assert cache.get("coin_prediction_eth") is None


def test_redis_errors_read_as_miss():
    cache = RedisForecastCache(DownRedis())
    assert cache.get("k") is None
    assert cache.set("k", {"a": 1}, 10) is False
    cache.delete("k")


def test_redis_cache_ignores_corrupt_entries():
    client = FakeRedis()
    client.store["k"] = "{not json"
    assert RedisForecastCache(client).get("k") is None


# ---------------------------------------------------------------------------
# Market client
# ---------------------------------------------------------------------------

def test_parse_chart_payload_sorts_by_timestamp():
    points = parse_chart_payload([
        {"timestamp": 1_700_086_400_000, "price": 2.0, "volume": 20},
        {"timestamp": 1_700_000_000_000, "price": 1.0},
    ])
    assert [p.price for p in points] == [1.0, 2.0]
    assert points[0].volume == 0.0
    assert points[0].timestamp == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


@pytest.mark.parametrize("payload", [None, {}, [], [{"timestamp": 1}], ["x"]])
def test_parse_chart_payload_rejects_bad_input(payload):
    with pytest.raises(ValueError):
        parse_chart_payload(payload)


def test_fallback_series_shape():
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)
    series = fallback_series(now)
    assert [p.price for p in series] == [1000.0, 1100.0]
    assert series[-1].timestamp == now


def test_fetchers_fall_back_on_errors(monkeypatch):
    client = MarketClient(base_url="http://upstream.invalid/api")

    async def failing(session, path):
        raise RuntimeError(f"{path} returned 503")

    monkeypatch.setattr(client, "_get_json", failing)
    snapshot = asyncio.run(client.fetch_snapshot("bitcoin"))

    assert snapshot.coin_id == "bitcoin"
    assert snapshot.prices == [1000.0, 1100.0]
    assert snapshot.current_price == 1100.0
    assert snapshot.market_cap == DEFAULT_MARKET_CAP
    assert (snapshot.info.name, snapshot.info.ticker, snapshot.info.rank) == ("Bitcoin", "BTC", 1)


def test_fetchers_use_upstream_payloads(monkeypatch):
    client = MarketClient(base_url="http://upstream.invalid/api/")
    responses = {
        "/coin/chart/ethereum": [
            {"timestamp": 1_700_086_400_000, "price": 2100.0, "volume": 5.0},
            {"timestamp": 1_700_000_000_000, "price": 2000.0, "volume": 4.0},
        ],
        "/coin/price/ethereum": {"market_cap": 2.5e11},
        "/coin/id/ethereum": {"name": "Ethereum", "ticker": "ETH", "rank": 2},
    }

    async def fake_get_json(session, path):
        return responses[path]

    monkeypatch.setattr(client, "_get_json", fake_get_json)
    snapshot = asyncio.run(client.fetch_snapshot("ethereum"))

    assert client.base_url == "http://upstream.invalid/api"
    assert snapshot.prices == [2000.0, 2100.0]
    assert snapshot.volumes == [4.0, 5.0]
    assert snapshot.market_cap == 2.5e11
    assert snapshot.info.name == "Ethereum"
    assert snapshot.info.rank == 2


def test_missing_market_cap_uses_default(monkeypatch):
    client = MarketClient(base_url="http://upstream.invalid/api")

    async def fake_get_json(session, path):
        return {"price": 10.0}

    monkeypatch.setattr(client, "_get_json", fake_get_json)
    assert asyncio.run(client.fetch_market_cap(None, "x")) == DEFAULT_MARKET_CAP
