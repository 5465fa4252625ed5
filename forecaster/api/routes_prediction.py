from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from forecaster.errors import ForecastGenerationError
from forecaster.services.forecast_service import ForecastService, get_forecast_service

router = APIRouter()


@router.get("/ping")
def ping() -> dict:
    return {"message": "prediction router active"}


@router.get("/{coin_id}")
async def get_prediction(
    coin_id: str,
    refresh: bool = Query(False, description="Skip the cache and rebuild the forecast"),
    service: ForecastService = Depends(get_forecast_service),
) -> JSONResponse:
    """Multi-horizon forecast for a coin (cached for 24h)"""
    coin_id = coin_id.strip()
    if not coin_id:
        return JSONResponse(status_code=400, content={"message": "Invalid id parameter"})

    try:
        payload = await service.get_forecast(coin_id, refresh=refresh)
    except ForecastGenerationError:
        return JSONResponse(status_code=500, content={"message": "Error generating predictions"})

    return JSONResponse(content=payload)
