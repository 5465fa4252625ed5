from pydantic import BaseModel
from typing import List, Literal, Optional

FearGreedZone = Literal["Extreme Fear", "Fear", "Greed", "Extreme Greed"]

# None marks a position without enough history for the indicator
Series = List[Optional[float]]

class MACDResult(BaseModel):
    macd: List[float]
    signal: List[float]
    histogram: List[float]

class BollingerBands(BaseModel):
    upper: Series
    middle: Series
    lower: Series

class SupportResistance(BaseModel):
    support: List[float]
    resistance: List[float]

class FearGreedReading(BaseModel):
    index: int
    zone: FearGreedZone
    volatility_score: float
    volume_score: float
    price_score: float

class IndicatorSet(BaseModel):
    rsi: Series
    macd: MACDResult
    bollinger: BollingerBands
    levels: SupportResistance
    volatility: float

    @staticmethod
    def last(values: Series) -> Optional[float]:
        return values[-1] if values else None

    @property
    def last_rsi(self) -> Optional[float]:
        return self.last(self.rsi)

    @property
    def last_histogram(self) -> Optional[float]:
        return self.last(self.macd.histogram)
