from typing import List, Tuple

from forecaster.sentiment.models import SentimentInputs, SentimentLabel, SentimentScore

# (lower bound, label), checked top-down; anything below the last bound is Very Bearish
LABEL_THRESHOLDS: List[Tuple[float, SentimentLabel]] = [
    (75.0, "Very Bullish"),
    (60.0, "Bullish"),
    (40.0, "Neutral"),
    (25.0, "Bearish"),
]


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def sentiment_label(score: float) -> SentimentLabel:
    for bound, label in LABEL_THRESHOLDS:
        if score >= bound:
            return label
    return "Very Bearish"


class SentimentScorer:
    """
    Maps indicator readings to a 0-100 score, starting from 50:

    - RSI: -20 above 70 (overbought), +20 below 30, else (rsi-50)/20 * 10
    - MACD histogram: histogram * 100, within ±15
    - 24h price change: change * 2, within ±10
    - 24h volume change: change / 20, within ±5
    """

    def score(self, inputs: SentimentInputs) -> SentimentScore:
        score = 50.0

        if inputs.rsi > 70:
            score -= 20
        elif inputs.rsi < 30:
            score += 20
        else:
            score += ((inputs.rsi - 50) / 20) * 10

        score += _clamp(inputs.macd_histogram * 100, -15, 15)
        score += _clamp(inputs.price_change_24h * 2, -10, 10)
        score += _clamp(inputs.volume_change_24h / 20, -5, 5)

        score = _clamp(score, 0, 100)
        return SentimentScore(score=score, label=sentiment_label(score))

engine = SentimentScorer()
