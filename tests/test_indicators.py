import math

import pytest

from forecaster.indicators.engine import (
    bollinger_bands,
    ema,
    engine,
    fear_greed_index,
    fear_greed_zone,
    macd,
    rsi,
    sma,
    support_resistance,
    volatility,
)


def test_sma_marks_missing_history_as_undefined():
    assert sma([1, 2, 3, 4, 5], 3) == [None, None, 2.0, 3.0, 4.0]


def test_sma_shorter_than_period_is_all_undefined():
    assert sma([1, 2], 5) == [None, None]


def test_rsi_is_aligned_and_undefined_before_period(prices):
    values = rsi(prices, 14)
    assert len(values) == len(prices)
    assert values[:14] == [None] * 14
    assert all(v is not None for v in values[14:])


def test_rsi_is_exactly_100_without_losses():
    values = rsi([float(i) for i in range(1, 31)], 14)
    assert values[-1] == 100.0


def test_rsi_is_zero_without_gains():
    values = rsi([float(i) for i in range(30, 0, -1)], 14)
    assert values[-1] == pytest.approx(0.0)


def test_rsi_stays_within_bounds(prices):
    assert all(0.0 <= v <= 100.0 for v in rsi(prices) if v is not None)


def test_rsi_short_series_never_raises():
    assert rsi([100.0] * 5) == [None] * 5


def test_ema_seeds_with_first_value():
    assert ema([10.0, 20.0], 3) == [10.0, 15.0]
    assert ema([], 3) == []


def test_macd_of_flat_series_is_zero():
    result = macd([50.0] * 40)
    assert len(result.macd) == 40
    assert all(v == pytest.approx(0.0) for v in result.histogram)


def test_macd_histogram_is_line_minus_signal(prices):
    result = macd(prices)
    for line, signal, hist in zip(result.macd, result.signal, result.histogram):
        assert hist == pytest.approx(line - signal)


def test_bollinger_uses_population_stdev():
    bands = bollinger_bands([1.0, 2.0, 3.0], period=3, multiplier=2)
    std = math.sqrt(2 / 3)
    assert bands.upper[:2] == [None, None]
    assert bands.middle[2] == pytest.approx(2.0)
    assert bands.upper[2] == pytest.approx(2.0 + 2 * std)
    assert bands.lower[2] == pytest.approx(2.0 - 2 * std)


def test_bollinger_flat_series_collapses():
    bands = bollinger_bands([10.0] * 25)
    assert bands.upper[-1] == bands.middle[-1] == bands.lower[-1] == 10.0


def test_support_level_is_local_minimum():
    levels = support_resistance([50.0] * 20 + [10.0] + [50.0] * 20, period=20)
    assert levels.support == [10.0]
    assert levels.resistance == []


def test_resistance_level_is_local_maximum():
    levels = support_resistance([10.0] * 20 + [50.0] + [10.0] * 20, period=20)
    assert levels.resistance == [50.0]
    assert levels.support == []


def test_levels_need_a_full_neighbourhood():
    assert support_resistance([1.0, 2.0, 3.0], period=20).support == []


def test_volatility_is_annualized_population_stdev():
    assert volatility([100.0, 110.0, 99.0]) == pytest.approx(0.1 * math.sqrt(252))


def test_volatility_window_uses_trailing_prices():
    assert volatility([1.0, 2.0, 100.0, 110.0, 99.0], window=3) == pytest.approx(0.1 * math.sqrt(252))


def test_volatility_degenerate_inputs():
    assert volatility([100.0]) == 0.0
    assert volatility([50.0] * 10) == 0.0
    assert volatility([0.0, 10.0]) == 0.0


def test_fear_greed_flat_market_is_fifty():
    reading = fear_greed_index([100.0] * 30, [500.0] * 30)
    assert reading.index == 50
    assert reading.zone == "Greed"


def test_fear_greed_zero_volume_is_neutral_sub_score():
    reading = fear_greed_index([100.0] * 30, [0.0] * 30)
    assert reading.volume_score == 50.0


def test_fear_greed_sub_scores_are_clamped():
    prices = [100.0] * 29 + [1000.0]
    volumes = [1.0] * 29 + [1000.0]
    reading = fear_greed_index(prices, volumes)
    assert reading.volatility_score == 0.0
    assert reading.volume_score == 100.0
    assert reading.price_score == 100.0
    assert 0 <= reading.index <= 100


@pytest.mark.parametrize("index,zone", [
    (0, "Extreme Fear"),
    (24, "Extreme Fear"),
    (25, "Fear"),
    (49, "Fear"),
    (50, "Greed"),
    (74, "Greed"),
    (75, "Extreme Greed"),
])
def test_fear_greed_zones(index, zone):
    assert fear_greed_zone(index) == zone


def test_engine_bundles_all_indicators(prices):
    result = engine.compute(prices)
    assert len(result.rsi) == len(prices)
    assert len(result.bollinger.middle) == len(prices)
    assert result.last_rsi == result.rsi[-1]
    assert result.last_histogram == result.macd.histogram[-1]
    assert result.volatility > 0
