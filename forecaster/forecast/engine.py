import calendar
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from forecaster.cycles.engine import LongHorizonSynthesizer
from forecaster.cycles.engine import engine as synthesizer_engine
from forecaster.cycles.models import MonthlyPrediction, YearlyPredictions
from forecaster.errors import ForecastError, ForecastGenerationError, InsufficientDataError
from forecaster.forecast.models import (
    ChartPoint,
    ForecastBundle,
    HorizonPredictions,
    TechnicalIndicators,
)
from forecaster.indicators.engine import engine as indicator_engine
from forecaster.indicators.engine import fear_greed_index, rsi, sma, volatility
from forecaster.indicators.models import IndicatorSet
from forecaster.predictive.engine import SHORT_HORIZON_DAYS, ShortHorizonPredictor
from forecaster.predictive.engine import engine as predictor_engine
from forecaster.predictive.models import PredictionResult

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar month shift; the day is clamped to the target month's length"""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, floored"""
    return int((end - start).total_seconds() // SECONDS_PER_DAY)


def to_epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def fallback_prediction(current_price: float) -> PredictionResult:
    return PredictionResult(
        price=current_price * 1.1,
        min_price=current_price * 0.9,
        max_price=current_price * 1.3,
        roi=10.0,
        confidence=70.0,
        sentiment="Neutral",
    )


def to_prediction_result(entry: MonthlyPrediction) -> PredictionResult:
    return PredictionResult(
        price=entry.price,
        min_price=entry.min_price,
        max_price=entry.max_price,
        roi=entry.roi,
        confidence=entry.confidence,
        sentiment=entry.sentiment,
    )


def closest_month(entries: Sequence[MonthlyPrediction], target_month: int) -> Optional[MonthlyPrediction]:
    """Entry nearest to target_month (1-12); the first one scanned wins ties"""
    closest = None
    min_distance = None
    for entry in entries:
        distance = abs(entry.month_index - target_month)
        if min_distance is None or distance < min_distance:
            min_distance = distance
            closest = entry
    return closest


def last_december(yearly: YearlyPredictions) -> Optional[MonthlyPrediction]:
    if not yearly:
        return None
    entries = yearly[max(yearly)]
    for entry in entries:
        if entry.month_index == 12:
            return entry
    return entries[-1] if entries else None


def find_closest_monthly_prediction(
    yearly: YearlyPredictions,
    target_year: int,
    target_month: int,
    current_price: float,
) -> PredictionResult:
    """
    Monthly entry of `target_year` closest to `target_month` (1-12).

    A year missing from the table yields the fixed fallback
    (+10% price, -10%/+30% band, ROI 10, confidence 70, Neutral).
    """
    entries = yearly.get(target_year)
    if not entries:
        return fallback_prediction(current_price)

    entry = closest_month(entries, target_month)
    if entry is None:
        return fallback_prediction(current_price)
    return to_prediction_result(entry)


class HorizonDispatcher:
    """Short-horizon predictor under 14 days out, the monthly table beyond."""

    def __init__(
        self,
        predictor: Optional[ShortHorizonPredictor] = None,
        short_horizon_days: int = SHORT_HORIZON_DAYS,
    ):
        self.predictor = predictor or predictor_engine
        self.short_horizon_days = short_horizon_days

    def predict(
        self,
        target: datetime,
        as_of: datetime,
        prices: Sequence[float],
        volumes: Sequence[float],
        current_price: float,
        yearly: YearlyPredictions,
        indicators: Optional[IndicatorSet] = None,
    ) -> PredictionResult:
        days = days_between(as_of, target)
        if days < self.short_horizon_days:
            return self.predictor.predict(prices, volumes, current_price, days, indicators=indicators)

        if yearly and target.year not in yearly:
            # past the synthesized horizon
            return to_prediction_result(last_december(yearly))

        return find_closest_monthly_prediction(yearly, target.year, target.month, current_price)


class ChartInterpolator:
    def __init__(self, intervals: int = 30, max_days: int = 365, interpolation_days: int = 10):
        self.intervals = intervals
        self.max_days = max_days
        self.interpolation_days = interpolation_days

    def estimate_price(
        self,
        date: datetime,
        as_of: datetime,
        current_price: float,
        yearly: YearlyPredictions,
    ) -> float:
        days = days_between(as_of, date)

        if days <= self.interpolation_days:
            first_year = yearly.get(as_of.year)
            if not first_year:
                return current_price
            earliest = min(first_year, key=lambda e: e.month_index)
            span = max(30, (earliest.month_index - as_of.month) * 30)
            progress = days / span
            return current_price + progress * (earliest.price - current_price)

        if date.year not in yearly:
            december = last_december(yearly)
            return december.price if december else current_price

        entry = closest_month(yearly[date.year], date.month)
        return entry.price if entry else current_price

    def build(self, as_of: datetime, current_price: float, yearly: YearlyPredictions) -> List[ChartPoint]:
        points = [ChartPoint(time=to_epoch_ms(as_of), price=current_price)]
        for i in range(1, self.intervals + 1):
            days_ahead = i * self.max_days // self.intervals
            date = as_of + timedelta(days=days_ahead)
            points.append(ChartPoint(
                time=to_epoch_ms(date),
                price=self.estimate_price(date, as_of, current_price, yearly),
            ))
        return points


def green_days(prices: Sequence[float], window: int = 30) -> int:
    recent = prices[-window:]
    return sum(1 for i in range(1, len(recent)) if recent[i] > recent[i - 1])


class ForecastEngine:
    def __init__(
        self,
        synthesizer: Optional[LongHorizonSynthesizer] = None,
        dispatcher: Optional[HorizonDispatcher] = None,
        chart: Optional[ChartInterpolator] = None,
        volatility_window: int = 30,
    ):
        self.synthesizer = synthesizer or synthesizer_engine
        self.dispatcher = dispatcher or HorizonDispatcher()
        self.chart = chart or ChartInterpolator()
        self.volatility_window = volatility_window

    def technical_snapshot(self, prices: Sequence[float], volumes: Sequence[float]) -> TechnicalIndicators:
        sma50 = sma(prices, 50)[-1]
        sma200 = sma(prices, 200)[-1]
        rsi14 = rsi(prices, 14)[-1]
        if rsi14 is None:
            rsi14 = 50.0

        fear_greed = fear_greed_index(prices, volumes)
        greens = green_days(prices)

        return TechnicalIndicators(
            sma50=sma50,
            sma200=sma200,
            rsi14=rsi14,
            fear_greed_index=fear_greed.index,
            fear_greed_zone=fear_greed.zone,
            green_days=f"{greens}/30 ({round(greens / 30 * 100)}%)",
            is_profitable=(
                rsi14 > 50
                and sma50 is not None
                and sma200 is not None
                and sma50 > sma200
                and greens > 15
            ),
        )

    def generate_forecast(
        self,
        asset_id: str,
        prices: Sequence[float],
        volumes: Sequence[float],
        current_price: float,
        market_cap: float,
        coin_name: str,
        rank: int = 1,
        as_of: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
        narrative_rng: Optional[random.Random] = None,
    ) -> ForecastBundle:
        """
        Full multi-horizon forecast for one asset.

        `as_of` is captured once and used for every date in the run. Pass a
        seeded `rng` for reproducible phases and noise; narratives draw from
        `narrative_rng` so they never shift the numeric path.
        """
        if not prices:
            raise InsufficientDataError(f"Empty price series for {asset_id}")
        if len(volumes) < len(prices):
            raise InsufficientDataError(
                f"Volume series for {asset_id} has {len(volumes)} points, expected {len(prices)}"
            )
        if current_price is None or current_price <= 0:
            raise InsufficientDataError(f"Non-positive current price for {asset_id}: {current_price}")

        as_of = as_of or datetime.now(timezone.utc)
        rng = rng or random.Random()
        narrative_rng = narrative_rng or random.Random()

        try:
            indicators = indicator_engine.compute(prices)
            historical_volatility = volatility(prices, window=self.volatility_window)

            yearly = self.synthesizer.synthesize(
                current_price,
                historical_volatility,
                market_cap,
                as_of,
                rng,
                coin_name=coin_name,
                narrative_rng=narrative_rng,
            )

            def predict(target: datetime) -> PredictionResult:
                return self.dispatcher.predict(
                    target, as_of, prices, volumes, current_price, yearly, indicators=indicators,
                )

            predictions = HorizonPredictions(
                three_day=predict(as_of + timedelta(days=3)),
                five_day=predict(as_of + timedelta(days=5)),
                one_month=predict(add_months(as_of, 1)),
                three_month=predict(add_months(as_of, 3)),
                six_month=predict(add_months(as_of, 6)),
                one_year=predict(add_months(as_of, 12)),
            )

            return ForecastBundle(
                asset_id=asset_id,
                current_price=current_price,
                rank=rank,
                predictions=predictions,
                chart_series=self.chart.build(as_of, current_price, yearly),
                yearly_predictions=yearly,
                technical_indicators=self.technical_snapshot(prices, volumes),
            )
        except ForecastError:
            raise
        except Exception as e:
            logger.exception(f"[ForecastEngine] Forecast failed for {asset_id}")
            raise ForecastGenerationError(f"Error generating predictions for {asset_id}: {e}") from e

engine = ForecastEngine()
