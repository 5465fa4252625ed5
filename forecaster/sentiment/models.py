from pydantic import BaseModel
from typing import Literal

SentimentLabel = Literal[
    "Very Bearish",
    "Bearish",
    "Neutral",
    "Bullish",
    "Very Bullish",
]

class SentimentInputs(BaseModel):
    rsi: float
    macd_histogram: float
    price_change_24h: float    # fraction, 0.05 = +5%
    volume_change_24h: float   # fraction

class SentimentScore(BaseModel):
    score: float
    label: SentimentLabel
