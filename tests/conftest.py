import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from forecaster.data.models import CoinInfo, MarketSnapshot, PricePoint

AS_OF = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def wavy_prices(n: int = 60, start: float = 100.0, end: float = 120.0):
    """Upward drift with a small bump every third point, ending exactly at `end`"""
    prices = []
    for i in range(n):
        base = start + (end - start) * i / (n - 1)
        prices.append(base + (1.5 if i % 3 == 1 else 0.0))
    prices[-1] = end
    return prices


def volumes_for(prices):
    return [1_000_000.0 + 10_000.0 * i for i in range(len(prices))]


def snapshot_for(coin_id: str, prices, market_cap: float = 1e9) -> MarketSnapshot:
    volumes = volumes_for(prices)
    start = AS_OF - timedelta(days=len(prices))
    series = [
        PricePoint(timestamp=start + timedelta(days=i), price=p, volume=v)
        for i, (p, v) in enumerate(zip(prices, volumes))
    ]
    return MarketSnapshot(
        coin_id=coin_id,
        series=series,
        market_cap=market_cap,
        info=CoinInfo(name="Solana", ticker="SOL", rank=5),
    )


class FakeMarketClient:
    def __init__(self, snapshot=None, error=None):
        self.snapshot = snapshot
        self.error = error
        self.calls = 0

    async def fetch_snapshot(self, coin_id):
        self.calls += 1
        # yield like a real network call so concurrent requests interleave
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.snapshot or snapshot_for(coin_id, wavy_prices())


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def prices():
    return wavy_prices()


@pytest.fixture
def volumes(prices):
    return volumes_for(prices)
