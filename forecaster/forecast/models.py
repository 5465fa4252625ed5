from typing import List, Optional

from forecaster.cycles.models import YearlyPredictions
from forecaster.data.models import ApiModel
from forecaster.predictive.models import PredictionResult

class ChartPoint(ApiModel):
    time: int          # epoch milliseconds
    price: float

class HorizonPredictions(ApiModel):
    three_day: PredictionResult
    five_day: PredictionResult
    one_month: PredictionResult
    three_month: PredictionResult
    six_month: PredictionResult
    one_year: PredictionResult

class TechnicalIndicators(ApiModel):
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    rsi14: float = 50.0
    fear_greed_index: int
    fear_greed_zone: str
    green_days: str
    is_profitable: bool

class ForecastBundle(ApiModel):
    asset_id: str
    current_price: float
    rank: int
    predictions: HorizonPredictions
    chart_series: List[ChartPoint]
    yearly_predictions: YearlyPredictions
    technical_indicators: TechnicalIndicators

    def to_payload(self) -> dict:
        """JSON-ready dict in the public camelCase shape"""
        return self.model_dump(mode="json", by_alias=True)
