import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from forecaster.cycles.models import (
    LONG_HORIZON_SENTIMENTS,
    MONTH_NAMES,
    MarketPhase,
    MonthlyPrediction,
    YearlyPredictions,
)
from forecaster.narrative.engine import NarrativeGenerator
from forecaster.narrative.engine import engine as narrative_engine


def _default_growth_rates() -> Dict[MarketPhase, float]:
    return {
        MarketPhase.BULLISH: 1.15,    # +15% / month
        MarketPhase.NEUTRAL: 1.03,
        MarketPhase.BEARISH: 0.92,    # -8% / month
        MarketPhase.RECOVERY: 1.08,
    }


def _default_cap_multipliers() -> List[Tuple[float, float]]:
    # (market cap upper bound, growth elasticity); above the last bound the last multiplier applies
    return [
        (1e6, 1.3),
        (1e7, 1.2),
        (1e8, 1.15),
        (1e9, 1.1),
        (1e10, 1.0),
        (1e11, 0.9),
        (1e12, 0.8),
    ]


@dataclass
class SynthesizerConfig:
    horizon_years: int = 31
    growth_rates: Dict[MarketPhase, float] = field(default_factory=_default_growth_rates)
    cap_multipliers: List[Tuple[float, float]] = field(default_factory=_default_cap_multipliers)

    # Phase durations in months, (min, max) inclusive
    initial_neutral_months: int = 3
    bullish_months: Tuple[int, int] = (10, 14)
    bearish_months: Tuple[int, int] = (8, 12)
    recovery_months: Tuple[int, int] = (6, 10)
    neutral_months: Tuple[int, int] = (15, 21)

    # Growth damping beyond `damping_after_years`
    damping_after_years: int = 10
    damping_span_years: float = 50.0
    damping_floor: float = 0.8

    # Noise
    noise_divisor: float = 300.0
    bullish_noise_multiplier: float = 1.2
    bearish_noise_multiplier: float = 1.5

    # Cap: current_price * (cap_base + years_from_now * cap_per_year)
    cap_base: float = 30.0
    cap_per_year: float = 0.7

    # Band
    band_max_pct: float = 30.0
    bullish_band_multiplier: float = 1.2
    bearish_band_multiplier: float = 1.5

    # Confidence decays from 90 by a point every 4 months, floor 60
    confidence_start: float = 90.0
    confidence_months_per_point: float = 4.0
    confidence_floor: float = 60.0

    # Keeps the chain strictly positive under extreme noise
    price_floor_ratio: float = 1e-6


def market_cap_multiplier(market_cap: float, table: Sequence[Tuple[float, float]]) -> float:
    for threshold, multiplier in table:
        if market_cap <= threshold:
            return multiplier
    return table[-1][1]


def roi_sentiment(roi: float, phase: MarketPhase) -> str:
    if roi < -50:
        idx = 0
    elif roi < -30:
        idx = 1
    elif roi < 0:
        idx = 2
    elif roi < 20:
        idx = 3
    elif roi < 100:
        idx = 4
    elif roi < 500:
        idx = 5
    else:
        idx = 6

    neutral = LONG_HORIZON_SENTIMENTS.index("neutral")
    if phase == MarketPhase.BULLISH and idx >= neutral:
        idx = min(idx + 1, len(LONG_HORIZON_SENTIMENTS) - 1)
    elif phase == MarketPhase.BEARISH and idx <= neutral:
        idx = max(idx - 1, 0)

    return LONG_HORIZON_SENTIMENTS[idx]


class MarketCycleGenerator:
    """
    neutral (initial) -> bullish -> bearish -> recovery -> neutral -> bullish ...

    One phase per month; a full cycle runs roughly 48 months. Durations are
    drawn from `rng` so a seeded generator yields the same sequence.
    """

    def __init__(self, config: Optional[SynthesizerConfig] = None):
        self.config = config or SynthesizerConfig()

    def generate(self, total_months: int, rng: random.Random) -> List[MarketPhase]:
        c = self.config
        phases = [MarketPhase.NEUTRAL] * min(total_months, c.initial_neutral_months)

        cycle = [
            (MarketPhase.BULLISH, c.bullish_months),
            (MarketPhase.BEARISH, c.bearish_months),
            (MarketPhase.RECOVERY, c.recovery_months),
            (MarketPhase.NEUTRAL, c.neutral_months),
        ]

        while len(phases) < total_months:
            for phase, (shortest, longest) in cycle:
                remaining = total_months - len(phases)
                if remaining <= 0:
                    break
                duration = min(remaining, rng.randint(shortest, longest))
                phases.extend([phase] * duration)

        return phases


class LongHorizonSynthesizer:
    def __init__(
        self,
        config: Optional[SynthesizerConfig] = None,
        narrator: Optional[NarrativeGenerator] = None,
    ):
        self.config = config or SynthesizerConfig()
        self.cycles = MarketCycleGenerator(self.config)
        self.narrator = narrator

    def monthly_growth_rate(
        self,
        phase: MarketPhase,
        cap_multiplier: float,
        years_from_now: int,
    ) -> float:
        """Phase base rate after market-cap elasticity and long-term damping (no noise)"""
        c = self.config
        rate = c.growth_rates[phase]

        if phase in (MarketPhase.BULLISH, MarketPhase.RECOVERY):
            # smaller caps run further in up-moves
            rate = 1 + (rate - 1) * cap_multiplier
        elif phase == MarketPhase.BEARISH:
            # and fall less in down-moves, large caps the reverse
            bearish_multiplier = 1 + (1 - cap_multiplier) * 0.5
            rate = 1 - (1 - rate) * bearish_multiplier

        if years_from_now > c.damping_after_years:
            factor = max(c.damping_floor, 1 - (years_from_now - c.damping_after_years) / c.damping_span_years)
            if rate > 1:
                rate = 1 + (rate - 1) * factor
            elif rate < 1:
                rate = 1 - (1 - rate) * factor

        return rate

    def noise_factor(self, phase: MarketPhase, volatility: float, rng: random.Random) -> float:
        c = self.config
        multiplier = 1.0
        if phase == MarketPhase.BULLISH:
            multiplier = c.bullish_noise_multiplier
        elif phase == MarketPhase.BEARISH:
            multiplier = c.bearish_noise_multiplier
        return 1 + (rng.random() * 2 - 1) * (volatility / c.noise_divisor) * multiplier

    def band_pct(self, phase: MarketPhase, volatility: float, months_from_now: int) -> float:
        c = self.config
        pct = min(c.band_max_pct, volatility * (1 + months_from_now / 100))
        if phase == MarketPhase.BULLISH:
            pct *= c.bullish_band_multiplier
        elif phase == MarketPhase.BEARISH:
            pct *= c.bearish_band_multiplier
        return pct

    def synthesize(
        self,
        current_price: float,
        volatility: float,
        market_cap: float,
        as_of: datetime,
        rng: random.Random,
        coin_name: str = "Bitcoin",
        phases: Optional[Sequence[MarketPhase]] = None,
        narrative_rng: Optional[random.Random] = None,
    ) -> YearlyPredictions:
        """
        Month-by-month forecast from `as_of`'s month through `horizon_years`.

        Each month's price is the previous month's price times that month's
        rate, capped at current_price * (30 + 0.7 * years_from_now). Passing
        `phases` replaces the generated cycle (missing months read neutral).
        """
        c = self.config
        current_year = as_of.year
        current_month = as_of.month

        total_months = c.horizon_years * 12
        if phases is None:
            phases = self.cycles.generate(total_months, rng)

        cap_multiplier = market_cap_multiplier(market_cap, c.cap_multipliers)
        price_floor = current_price * c.price_floor_ratio

        yearly: YearlyPredictions = {}
        cumulative_price = current_price
        step = 0

        for year in range(current_year, current_year + c.horizon_years):
            years_from_now = year - current_year
            max_allowed = current_price * (c.cap_base + years_from_now * c.cap_per_year)
            months: List[MonthlyPrediction] = []

            for month in range(1, 13):
                if year == current_year and month < current_month:
                    continue

                months_from_now = years_from_now * 12 + month - current_month
                phase = phases[step] if step < len(phases) else MarketPhase.NEUTRAL
                step += 1

                rate = self.monthly_growth_rate(phase, cap_multiplier, years_from_now)
                cumulative_price = cumulative_price * rate * self.noise_factor(phase, volatility, rng)
                cumulative_price = max(price_floor, min(cumulative_price, max_allowed))

                band = self.band_pct(phase, volatility, months_from_now)
                min_price = cumulative_price * (1 - band / 100)
                max_price = cumulative_price * (1 + band / 100)

                roi = (cumulative_price / current_price - 1) * 100
                confidence = max(
                    c.confidence_floor,
                    c.confidence_start - months_from_now / c.confidence_months_per_point,
                )

                bullish_text = bearish_text = None
                if self.narrator is not None:
                    narrative_args = (
                        coin_name, month, year, min_price, max_price, cumulative_price, roi, confidence,
                    )
                    bullish_text = self.narrator.bullish(*narrative_args, rng=narrative_rng)
                    bearish_text = self.narrator.bearish(*narrative_args, rng=narrative_rng)

                months.append(MonthlyPrediction(
                    month=MONTH_NAMES[month - 1],
                    month_index=month,
                    year=year,
                    price=cumulative_price,
                    min_price=min_price,
                    max_price=max_price,
                    roi=roi,
                    sentiment=roi_sentiment(roi, phase),
                    market_phase=phase,
                    confidence=confidence,
                    description=bullish_text if roi >= 0 else bearish_text,
                    bullish_scenario=bullish_text,
                    bearish_scenario=bearish_text,
                ))

            if months:
                yearly[year] = months

        return yearly

engine = LongHorizonSynthesizer(narrator=narrative_engine)
