"""
Coin Forecast - Market Data Client
==================================

Descarcă datele de intrare pentru un coin de la API-ul upstream:

1. /coin/chart/{id}  - istoric {timestamp, price, volume}
2. /coin/price/{id}  - market cap
3. /coin/id/{id}     - nume, ticker, rank

Fiecare fetch este izolat: o eroare este logată și înlocuită cu valoarea
implicită documentată, deci un upstream căzut nu oprește forecast-ul.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import aiohttp

from forecaster.config import get_settings
from forecaster.data.models import CoinInfo, MarketSnapshot, PricePoint

logger = logging.getLogger(__name__)

DEFAULT_MARKET_CAP = 1e9
DEFAULT_COIN_INFO = CoinInfo(name="Bitcoin", ticker="BTC", rank=1)


def fallback_series(now: Optional[datetime] = None) -> List[PricePoint]:
    """Minimal 2-point series used when the chart endpoint fails"""
    now = now or datetime.now(timezone.utc)
    return [
        PricePoint(timestamp=now - timedelta(days=30), price=1000.0, volume=1_000_000.0),
        PricePoint(timestamp=now, price=1100.0, volume=1_100_000.0),
    ]


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, (int, float)):
        # upstream sends epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return datetime.fromisoformat(str(value))


def parse_chart_payload(payload: Any) -> List[PricePoint]:
    """
    Convert the chart endpoint payload to an ordered PricePoint list.

    Raises ValueError on a non-list / empty payload or a point without a
    price, so the caller can substitute the fallback series.
    """
    if not isinstance(payload, list) or not payload:
        raise ValueError("Invalid chart data format")

    points = []
    for row in payload:
        if not isinstance(row, dict) or row.get("price") is None:
            raise ValueError(f"Invalid chart point: {row!r}")
        points.append(PricePoint(
            timestamp=_parse_timestamp(row.get("timestamp", 0)),
            price=float(row["price"]),
            volume=float(row.get("volume") or 0.0),
        ))

    points.sort(key=lambda p: p.timestamp)
    return points


class MarketClient:
    """
    Client async pentru API-ul de coin-uri.

    Usage:
        client = MarketClient()
        snapshot = await client.fetch_snapshot("bitcoin")
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.http_timeout)

    async def _get_json(self, session: aiohttp.ClientSession, path: str) -> Any:
        url = f"{self.base_url}{path}"
        async with session.get(url) as resp:
            if resp.status != 200:
                error = await resp.text()
                raise RuntimeError(f"{url} returned {resp.status}: {error[:200]}")
            return await resp.json()

    async def fetch_series(self, session: aiohttp.ClientSession, coin_id: str) -> List[PricePoint]:
        try:
            payload = await self._get_json(session, f"/coin/chart/{coin_id}")
            return parse_chart_payload(payload)
        except Exception as e:
            logger.warning(f"[MarketClient] Chart fetch failed for {coin_id}, using fallback series: {e}")
            return fallback_series()

    async def fetch_market_cap(self, session: aiohttp.ClientSession, coin_id: str) -> float:
        try:
            payload = await self._get_json(session, f"/coin/price/{coin_id}")
            market_cap = payload.get("market_cap") if isinstance(payload, dict) else None
            return float(market_cap) if market_cap else DEFAULT_MARKET_CAP
        except Exception as e:
            logger.warning(f"[MarketClient] Market cap fetch failed for {coin_id}: {e}")
            return DEFAULT_MARKET_CAP

    async def fetch_coin_info(self, session: aiohttp.ClientSession, coin_id: str) -> CoinInfo:
        try:
            payload = await self._get_json(session, f"/coin/id/{coin_id}")
            if not isinstance(payload, dict):
                raise ValueError("Invalid coin info format")
            return CoinInfo(
                name=payload.get("name") or DEFAULT_COIN_INFO.name,
                ticker=payload.get("ticker") or DEFAULT_COIN_INFO.ticker,
                rank=int(payload.get("rank") or DEFAULT_COIN_INFO.rank),
            )
        except Exception as e:
            logger.warning(f"[MarketClient] Coin info fetch failed for {coin_id}: {e}")
            return DEFAULT_COIN_INFO.model_copy()

    async def fetch_snapshot(self, coin_id: str) -> MarketSnapshot:
        """Fetch series, market cap and coin info concurrently"""
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            series, market_cap, info = await asyncio.gather(
                self.fetch_series(session, coin_id),
                self.fetch_market_cap(session, coin_id),
                self.fetch_coin_info(session, coin_id),
            )

        return MarketSnapshot(coin_id=coin_id, series=series, market_cap=market_cap, info=info)
