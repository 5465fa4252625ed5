"""
Forecast Service - fetch -> synthesize -> cache for one coin
"""
import asyncio
import logging
import random
from typing import Any, Dict, Optional

from forecaster.config import get_settings
from forecaster.data.market_client import MarketClient
from forecaster.data.models import MarketSnapshot
from forecaster.errors import ForecastError, ForecastGenerationError
from forecaster.forecast.engine import ForecastEngine
from forecaster.forecast.engine import engine as forecast_engine
from forecaster.services.forecast_cache import ForecastCache, forecast_cache_key, get_forecast_cache

logger = logging.getLogger(__name__)


class ForecastService:
    def __init__(
        self,
        client: Optional[MarketClient] = None,
        cache: Optional[ForecastCache] = None,
        engine: Optional[ForecastEngine] = None,
        cache_ttl: Optional[int] = None,
        seed: Optional[int] = None,
    ):
        settings = get_settings()
        self.client = client or MarketClient()
        self.cache = cache or get_forecast_cache()
        self.engine = engine or forecast_engine
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.cache_ttl
        self.seed = seed if seed is not None else settings.seed
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        """Per-key lock, registered as in use until `_release_lock(key)`"""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return self._locks[key]

    def _release_lock(self, key: str):
        # the last user drops the lock, so unknown ids leave nothing behind
        remaining = self._lock_users.get(key, 0) - 1
        if remaining > 0:
            self._lock_users[key] = remaining
        else:
            self._lock_users.pop(key, None)
            self._locks.pop(key, None)

    def _rngs(self):
        if self.seed is None:
            return random.Random(), random.Random()
        return random.Random(self.seed), random.Random(self.seed)

    def build_payload(self, snapshot: MarketSnapshot) -> Dict[str, Any]:
        rng, narrative_rng = self._rngs()
        bundle = self.engine.generate_forecast(
            asset_id=snapshot.coin_id,
            prices=snapshot.prices,
            volumes=snapshot.volumes,
            current_price=snapshot.current_price,
            market_cap=snapshot.market_cap,
            coin_name=snapshot.info.name,
            rank=snapshot.info.rank,
            rng=rng,
            narrative_rng=narrative_rng,
        )
        return bundle.to_payload()

    async def get_forecast(self, coin_id: str, refresh: bool = False) -> Dict[str, Any]:
        """
        Cached forecast payload for `coin_id`; `refresh` skips the cache read.

        Raises ForecastGenerationError when the forecast cannot be built.
        """
        key = forecast_cache_key(coin_id)

        if not refresh:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        lock = self._lock_for(key)
        try:
            async with lock:
                # another request may have filled the cache while we waited
                if not refresh:
                    cached = self.cache.get(key)
                    if cached is not None:
                        return cached

                try:
                    snapshot = await self.client.fetch_snapshot(coin_id)
                    # CPU-bound synthesis runs off the event loop
                    loop = asyncio.get_running_loop()
                    payload = await loop.run_in_executor(None, self.build_payload, snapshot)
                except ForecastError:
                    logger.exception(f"[ForecastService] Forecast failed for {coin_id}")
                    raise
                except Exception as e:
                    logger.exception(f"[ForecastService] Unexpected error for {coin_id}")
                    raise ForecastGenerationError(f"Error generating predictions for {coin_id}") from e

                self.cache.set(key, payload, self.cache_ttl)
                logger.info(f"[ForecastService] {coin_id} forecast cached for {self.cache_ttl}s")
                return payload
        finally:
            self._release_lock(key)


# Global instance
_service: Optional[ForecastService] = None


def get_forecast_service() -> ForecastService:
    """Get or create forecast service singleton"""
    global _service
    if _service is None:
        _service = ForecastService()
    return _service
