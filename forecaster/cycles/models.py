from enum import Enum
from typing import Dict, List, Optional

from pydantic import ConfigDict

from forecaster.data.models import ApiModel

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

class MarketPhase(str, Enum):
    NEUTRAL = "neutral"
    BULLISH = "bullish"
    BEARISH = "bearish"
    RECOVERY = "recovery"

# ROI ladder used for monthly entries, most bearish first
LONG_HORIZON_SENTIMENTS = [
    "extremely bearish",
    "moderately bearish",
    "slightly bearish",
    "neutral",
    "slightly bullish",
    "mildly bullish",
    "extremely bullish",
]

class MonthlyPrediction(ApiModel):
    month: str
    month_index: int           # 1-12
    year: int
    price: float
    min_price: float
    max_price: float
    roi: float
    sentiment: str
    market_phase: MarketPhase
    confidence: float
    description: Optional[str] = None
    bullish_scenario: Optional[str] = None
    bearish_scenario: Optional[str] = None

    model_config = ConfigDict(frozen=True)

# year -> months in calendar order; years without months are omitted
YearlyPredictions = Dict[int, List[MonthlyPrediction]]
