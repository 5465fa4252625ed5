import math
from typing import List, Optional, Sequence

from forecaster.indicators.models import (
    BollingerBands,
    FearGreedReading,
    IndicatorSet,
    MACDResult,
    Series,
    SupportResistance,
)

TRADING_DAYS_PER_YEAR = 252


def sma(prices: Sequence[float], period: int) -> Series:
    out: Series = []
    for i in range(len(prices)):
        if i < period - 1:
            out.append(None)
            continue
        window = prices[i - period + 1:i + 1]
        out.append(sum(window) / period)
    return out


def rsi(prices: Sequence[float], period: int = 14) -> Series:
    """
    RSI over the trailing `period` price deltas.

    Position i uses the deltas ending at prices[i]; positions before
    `period` are undefined. A window without losses reads exactly 100.
    """
    gains = []
    losses = []
    for i in range(1, len(prices)):
        change = prices[i] - prices[i - 1]
        gains.append(max(0.0, change))
        losses.append(max(0.0, -change))

    out: Series = []
    for i in range(len(prices)):
        if i < period:
            out.append(None)
            continue

        avg_gain = sum(gains[i - period:i]) / period
        avg_loss = sum(losses[i - period:i]) / period

        if avg_loss == 0:
            out.append(100.0)
        else:
            rs = avg_gain / avg_loss
            out.append(100.0 - (100.0 / (1.0 + rs)))
    return out


def ema(values: Sequence[float], period: int) -> List[float]:
    """EMA seeded with the first value, k = 2 / (period + 1)"""
    if not values:
        return []
    k = 2.0 / (period + 1)
    out = [float(values[0])]
    for value in values[1:]:
        out.append(value * k + out[-1] * (1.0 - k))
    return out


def macd(
    prices: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    fast = ema(prices, fast_period)
    slow = ema(prices, slow_period)
    line = [f - s for f, s in zip(fast, slow)]
    signal = ema(line, signal_period)
    histogram = [m - s for m, s in zip(line, signal)]
    return MACDResult(macd=line, signal=signal, histogram=histogram)


def bollinger_bands(prices: Sequence[float], period: int = 20, multiplier: float = 2.0) -> BollingerBands:
    middle = sma(prices, period)
    upper: Series = []
    lower: Series = []

    for i in range(len(prices)):
        if middle[i] is None:
            upper.append(None)
            lower.append(None)
            continue

        window = prices[i - period + 1:i + 1]
        std_dev = math.sqrt(sum((x - middle[i]) ** 2 for x in window) / period)
        upper.append(middle[i] + multiplier * std_dev)
        lower.append(middle[i] - multiplier * std_dev)

    return BollingerBands(upper=upper, middle=middle, lower=lower)


def support_resistance(prices: Sequence[float], period: int = 20) -> SupportResistance:
    """Price values that are the min (support) / max (resistance) of their ±period neighbourhood"""
    support = []
    resistance = []

    for i in range(period, len(prices) - period):
        window = prices[i - period:i + period]
        price = prices[i]
        if price <= min(window):
            support.append(price)
        if price >= max(window):
            resistance.append(price)

    return SupportResistance(support=support, resistance=resistance)


def simple_returns(prices: Sequence[float]) -> List[float]:
    returns = []
    for i in range(1, len(prices)):
        prev = prices[i - 1]
        returns.append(0.0 if prev == 0 else (prices[i] - prev) / prev)
    return returns


def volatility(prices: Sequence[float], window: Optional[int] = None) -> float:
    """
    Annualized volatility: population stdev of simple daily returns x sqrt(252).

    `window` limits the calculation to the last `window` prices. Fewer than
    two prices give 0.0.
    """
    if window is not None:
        prices = prices[-window:]
    returns = simple_returns(prices)
    if not returns:
        return 0.0

    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    return math.sqrt(variance) * math.sqrt(TRADING_DAYS_PER_YEAR)


def average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _ratio_change(last: float, avg: float) -> float:
    # a zero average reads as "no change" instead of inf
    if avg == 0:
        return 0.0
    return last / avg - 1.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def fear_greed_zone(index: float) -> str:
    if index <= 24:
        return "Extreme Fear"
    if index <= 49:
        return "Fear"
    if index <= 74:
        return "Greed"
    return "Extreme Greed"


def fear_greed_index(prices: Sequence[float], volumes: Sequence[float]) -> FearGreedReading:
    vol = volatility(prices, window=30)

    volume_change = _ratio_change(volumes[-1], average(volumes[-7:])) if volumes else 0.0
    price_change = _ratio_change(prices[-1], average(prices[-7:])) if prices else 0.0

    volatility_score = _clamp(50 - vol * 100)
    volume_score = _clamp(50 + volume_change * 100)
    price_score = _clamp(50 + price_change * 100)

    index = int(round((volatility_score + volume_score + price_score) / 3))
    return FearGreedReading(
        index=index,
        zone=fear_greed_zone(index),
        volatility_score=volatility_score,
        volume_score=volume_score,
        price_score=price_score,
    )


class IndicatorEngine:
    def __init__(
        self,
        rsi_period: int = 14,
        macd_fast: int = 12,
        macd_slow: int = 26,
        macd_signal: int = 9,
        bollinger_period: int = 20,
        bollinger_multiplier: float = 2.0,
        level_period: int = 20,
    ):
        self.rsi_period = rsi_period
        self.macd_fast = macd_fast
        self.macd_slow = macd_slow
        self.macd_signal = macd_signal
        self.bollinger_period = bollinger_period
        self.bollinger_multiplier = bollinger_multiplier
        self.level_period = level_period

    def compute(self, prices: Sequence[float]) -> IndicatorSet:
        return IndicatorSet(
            rsi=rsi(prices, self.rsi_period),
            macd=macd(prices, self.macd_fast, self.macd_slow, self.macd_signal),
            bollinger=bollinger_bands(prices, self.bollinger_period, self.bollinger_multiplier),
            levels=support_resistance(prices, self.level_period),
            volatility=volatility(prices),
        )

engine = IndicatorEngine()
