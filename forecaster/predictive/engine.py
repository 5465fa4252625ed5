import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from forecaster.indicators.engine import engine as indicator_engine
from forecaster.indicators.models import IndicatorSet
from forecaster.predictive.models import PredictionResult
from forecaster.sentiment.engine import engine as sentiment_engine
from forecaster.sentiment.models import SentimentInputs, SentimentScore

SHORT_HORIZON_DAYS = 14


@dataclass
class PredictorConfig:
    """Short-horizon skew constants (the bullish tilt is not fitted)."""
    # Sentiment inputs
    sentiment_bias: float = 0.25           # added to the 24h price change
    volume_bias_multiplier: float = 1.5    # volume change += sentiment_bias * this
    rsi_shift: float = 15.0
    rsi_cap: float = 75.0
    histogram_escape: float = -0.3         # below this the histogram is used as-is
    histogram_boost: float = 0.05
    histogram_floor: float = 0.1
    price_change_escape: float = -0.15
    price_change_floor: float = 0.02

    # Trend strength
    bullish_trend: float = 1.2
    bearish_trend: float = -0.3
    macd_bearish_below: float = -0.25
    rsi_bearish_below: float = 35.0
    trend_floor: float = 0.25
    severe_rsi_below: float = 25.0

    # Price biases
    base_bias: float = 0.1
    long_term_bias_slope: float = 0.4      # per year out
    long_term_bias_cap: float = 0.35

    # Floors and bands
    price_floor_ratio: float = 0.1
    min_price_floor_ratio: float = 0.05
    band_multiplier: float = 1.5
    default_support_ratio: float = 0.8
    default_resistance_ratio: float = 1.2

    # Confidence
    confidence_bias_up: float = 10.0
    confidence_bias_down: float = -5.0

    neutral_rsi: float = 50.0              # stands in for an undefined RSI


def change_24h(values: Sequence[float]) -> float:
    """Fractional change of the last value vs the one before; 0.0 when undefined"""
    if len(values) < 2 or values[-2] == 0:
        return 0.0
    return (values[-1] - values[-2]) / values[-2]


def nearest_level(levels: List[float], target: float, default: float) -> float:
    if not levels:
        return default
    # first level wins on ties
    best = levels[0]
    for level in levels[1:]:
        if abs(level - target) < abs(best - target):
            best = level
    return best


class ShortHorizonPredictor:
    def __init__(self, config: Optional[PredictorConfig] = None):
        self.config = config or PredictorConfig()

    def skewed_sentiment(
        self,
        last_rsi: float,
        last_histogram: float,
        price_change: float,
        volume_change: float,
    ) -> SentimentScore:
        """Sentiment with the deliberate bullish skew applied to every input"""
        c = self.config

        if last_histogram < c.histogram_escape:
            histogram = last_histogram
        else:
            histogram = max(c.histogram_floor, last_histogram + c.histogram_boost)

        if price_change < c.price_change_escape:
            skewed_price_change = price_change
        else:
            skewed_price_change = max(c.price_change_floor, price_change + c.sentiment_bias)

        return sentiment_engine.score(SentimentInputs(
            rsi=min(c.rsi_cap, last_rsi + c.rsi_shift),
            macd_histogram=histogram,
            price_change_24h=skewed_price_change,
            volume_change_24h=volume_change + c.sentiment_bias * c.volume_bias_multiplier,
        ))

    def is_severely_bearish(self, last_rsi: float, last_histogram: float, price_change: float) -> bool:
        c = self.config
        return (
            last_rsi < c.severe_rsi_below
            and last_histogram < c.histogram_escape
            and price_change < c.price_change_escape
        )

    def trend_strength(self, last_rsi: float, last_histogram: float, severely_bearish: bool) -> float:
        c = self.config
        macd_trend = c.bearish_trend if last_histogram < c.macd_bearish_below else c.bullish_trend
        rsi_trend = c.bearish_trend if last_rsi < c.rsi_bearish_below else c.bullish_trend
        strength = (macd_trend + rsi_trend) / 2
        if severely_bearish:
            return strength
        return max(c.trend_floor, strength)

    def predict(
        self,
        prices: Sequence[float],
        volumes: Sequence[float],
        current_price: float,
        days_to_target: int,
        indicators: Optional[IndicatorSet] = None,
    ) -> PredictionResult:
        c = self.config
        indicators = indicators or indicator_engine.compute(prices)

        last_rsi = indicators.last_rsi
        if last_rsi is None:
            last_rsi = c.neutral_rsi
        last_histogram = indicators.last_histogram or 0.0
        price_change = change_24h(prices)
        volume_change = change_24h(volumes)

        sentiment = self.skewed_sentiment(last_rsi, last_histogram, price_change, volume_change)

        days = max(days_to_target, 0)
        time_factor = min(1.0, 365 / max(days, 1))

        severely_bearish = self.is_severely_bearish(last_rsi, last_histogram, price_change)
        strength = self.trend_strength(last_rsi, last_histogram, severely_bearish)

        volatility_adjustment = indicators.volatility * math.sqrt(days / 365)
        predicted = current_price * (1 + strength * volatility_adjustment)

        if not severely_bearish:
            long_term_bias = min(c.long_term_bias_cap, days / 365 * c.long_term_bias_slope)
            predicted *= 1 + c.base_bias + long_term_bias

        price_floor = current_price * c.price_floor_ratio
        predicted = max(predicted, price_floor)

        min_price = max(
            predicted * (1 - volatility_adjustment * c.band_multiplier),
            current_price * c.min_price_floor_ratio,
        )
        max_price = predicted * (1 + volatility_adjustment * c.band_multiplier)

        support = nearest_level(indicators.levels.support, predicted, current_price * c.default_support_ratio)
        resistance = nearest_level(indicators.levels.resistance, predicted, current_price * c.default_resistance_ratio)

        if predicted < support:
            predicted = (predicted + support) / 2
        if predicted > resistance:
            predicted = (predicted + resistance) / 2
        predicted = max(predicted, price_floor)

        # the level pull can leave the band; widen it so min <= price <= max
        min_price = min(min_price, predicted)
        max_price = max(max_price, predicted)

        roi = (predicted / current_price - 1) * 100

        confidence_bias = c.confidence_bias_up if predicted > current_price else c.confidence_bias_down
        confidence = max(0.0, min(100.0, (
            sentiment.score * 0.3
            + time_factor * 40
            + (1 - volatility_adjustment) * 30
            + confidence_bias
        )))

        return PredictionResult(
            price=predicted,
            min_price=min_price,
            max_price=max_price,
            roi=roi,
            confidence=confidence,
            sentiment=sentiment.label,
        )

engine = ShortHorizonPredictor()
