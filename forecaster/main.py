from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forecaster.api.routes_prediction import router as prediction_router
from forecaster.config import configure_logging, get_settings
from forecaster.services.forecast_cache import get_forecast_cache

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager - warm up the cache backend on startup"""
    settings = get_settings()
    logger.info("[STARTUP] Coin Forecast Server Starting...")
    logger.info(f"[STARTUP] Upstream API: {settings.api_base_url}")
    cache = get_forecast_cache()
    logger.info(f"[STARTUP] Forecast cache: {type(cache).__name__}, TTL {settings.cache_ttl}s")

    yield  # Server is running

    logger.info("[SHUTDOWN] Server stopped")


app = FastAPI(title="Coin Forecast API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(prediction_router, prefix="/api/coin/prediction", tags=["prediction"])


@app.get("/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("forecaster.main:app", host="0.0.0.0", port=8000)
