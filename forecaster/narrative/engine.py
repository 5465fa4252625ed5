"""
Monthly narrative templates.

Pure templating over numbers the synthesizer already computed: one phrase
is drawn per category (opening, price analysis, context, confidence) and
joined into a paragraph. Nothing here feeds back into the forecast.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

from forecaster.cycles.models import MONTH_NAMES


@dataclass(frozen=True)
class MonthContext:
    event: str
    market: str
    seasonal: str


# index 0 = January
MONTH_CONTEXTS: List[MonthContext] = [
    MonthContext("the beginning of the year", "post-holiday trading patterns",
                 "typically a month of portfolio repositioning"),
    MonthContext("early Q1 earnings season", "evolving Q1 market sentiment",
                 "often shows consolidation after January moves"),
    MonthContext("the end of Q1", "fiscal quarter-end institutional flows",
                 "historically a transition month with mixed volatility"),
    MonthContext("Q1 earnings results", "beginning of Q2 positioning",
                 "traditionally a period of renewed market activity"),
    MonthContext("mid-quarter economic reports", "evolving Q2 trends",
                 "often marks directional clarity after Q1 uncertainty"),
    MonthContext("mid-year portfolio rebalancing", "end of Q2 adjustments",
                 "frequently displays pre-summer positioning activity"),
    MonthContext("Q2 earnings season", "beginning of Q3 trading patterns",
                 "often shows decreased volatility with summer trading volumes"),
    MonthContext("late summer market activity", "traditionally thinner liquidity conditions",
                 "historically a period of range-bound trading"),
    MonthContext("end of Q3 positioning", "pre-Q4 adjustments",
                 "typically exhibits increased volatility"),
    MonthContext("Q3 earnings reports", "beginning of Q4 strategies",
                 "often marks a pivot month for yearly trends"),
    MonthContext("pre-holiday market positioning", "early holiday season trading patterns",
                 "traditionally a period of trend continuation"),
    MonthContext("year-end portfolio adjustments", "reduced holiday trading volumes",
                 "typically marked by tax-related positioning and window dressing"),
]

YEAR_CONTEXTS: List[Tuple[int, str]] = [
    (2025, "the post-ETF adoption phase"),
    (2026, "the post-halving market cycle"),
    (2027, "the maturing digital asset ecosystem"),
    (2028, "the pre-halving anticipation period"),
    (2030, "the established institutional framework"),
]
DEFAULT_YEAR_CONTEXT = "ongoing market evolution"


def month_context(month_index: int) -> MonthContext:
    """month_index is 1-12; anything else reads as January"""
    if 1 <= month_index <= 12:
        return MONTH_CONTEXTS[month_index - 1]
    return MONTH_CONTEXTS[0]


def year_context(year: int) -> str:
    for context_year, text in YEAR_CONTEXTS:
        if context_year == year:
            return text
    return DEFAULT_YEAR_CONTEXT


def quarter(month_index: int) -> str:
    return f"Q{(max(1, min(12, month_index)) - 1) // 3 + 1}"


def format_price(price: float) -> str:
    if price < 0.0001:
        return f"{price:.8f}"
    if price < 0.01:
        return f"{price:.6f}"
    if price < 1:
        return f"{price:.4f}"
    if price < 100:
        return f"{price:.2f}"
    return f"{price:,.0f}"


def roi_description(roi: float) -> str:
    if roi > 35:
        return f"substantial return ({roi:.2f}%)"
    if roi >= 15:
        return f"significant return ({roi:.2f}%)"
    if roi > 0:
        return f"positive potential return ({roi:.2f}%)"
    if roi == 0:
        return "neutral return"
    if roi >= -5:
        return f"slightly negative return ({roi:.2f}%)"
    if roi >= -10:
        return f"moderately negative return ({roi:.2f}%)"
    return f"significantly negative return ({roi:.2f}%)"


def gain_description(roi: float) -> str:
    if roi > 25:
        return f"an impressive gain ({roi:.2f}%)"
    if roi >= 10:
        return f"a significant surge ({roi:.2f}%)"
    if roi > 0:
        return f"a slight gain ({roi:.2f}%)"
    if roi >= -5:
        return f"a slight decline ({roi:.2f}%)"
    if roi >= -20:
        return f"a notable decline ({roi:.2f}%)"
    return f"a terrifying decline ({roi:.2f}%)"


def confidence_description(confidence: float) -> str:
    if confidence >= 75:
        return f"strong confidence of {confidence:.1f}%"
    if confidence >= 50:
        return f"reliable confidence level of {confidence:.1f}%"
    return f"neutral sentiments at {confidence:.1f}%"


def valuation_description(roi: float) -> str:
    if roi > 50:
        return "amusingly above"
    if roi >= 25:
        return "satisfactorily above"
    if roi >= 10:
        return "notably above"
    if roi > 0:
        return "slightly above"
    if roi == 0:
        return "at"
    if roi >= -5:
        return "slightly below"
    if roi >= -30:
        return "notably below"
    return "horrifyingly below"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


class NarrativeGenerator:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _compose(self, pools: List[List[str]], rng: Optional[random.Random]) -> str:
        rng = rng or self.rng
        return " ".join(rng.choice(pool) for pool in pools)

    def bullish(
        self,
        coin_name: str,
        month_index: int,
        year: int,
        min_price: float,
        max_price: float,
        avg_price: float,
        roi: float,
        confidence: float,
        rng: Optional[random.Random] = None,
    ) -> str:
        month = MONTH_NAMES[month_index - 1]
        context = month_context(month_index)
        low, high, avg = format_price(min_price), format_price(max_price), format_price(avg_price)
        conf = confidence_description(confidence)

        openings = [
            f"{month} {year} shows {coin_name} establishing a trading range from ${low} to ${high}.",
            f"{coin_name} price action in {month} {year} points to a trading corridor of ${low}-${high}.",
            f"{month} {year} projects {coin_name} trading between ${low} and ${high}.",
            f"{coin_name} could reach ${low}-${high} during {month} {year}.",
            f"A bullish {month} {year} outlook places {coin_name} at the range of ${low}-${high}.",
        ]
        analysis = [
            f"Our research and analysis model calculates an average price of ${avg}, "
            f"representing {gain_description(roi)} from current levels.",
            f"Technical analysis suggests an average value of ${avg}, {gain_description(roi)} from today's price.",
            f"The forecast indicates an average price target of ${avg}, "
            f"{roi:.2f}% {valuation_description(roi)} the current valuation.",
            f"Analysis projects an average of ${avg}, yielding a {roi_description(roi)} on investment.",
        ]
        supporting = [
            "This bullish scenario aligns with traditional trend continuation patterns observed during this period.",
            f"{quarter(month_index)}'s typical market dynamics support this outlook.",
            f"{_capitalize(context.market)} contributes to this positive projection.",
            f"{_capitalize(year_context(year))} creates a favorable backdrop for this prediction.",
        ]
        confidence_lines = [
            f"Technical indicators also support this prediction with {conf}.",
            f"Our research and analysis model shows {conf}.",
            f"The projection carries {conf} based on multiple indicators.",
            f"Analysis indicates {conf} in this bullish scenario.",
        ]
        return self._compose([openings, analysis, supporting, confidence_lines], rng)

    def bearish(
        self,
        coin_name: str,
        month_index: int,
        year: int,
        min_price: float,
        max_price: float,
        avg_price: float,
        roi: float,
        confidence: float,
        rng: Optional[random.Random] = None,
    ) -> str:
        month = MONTH_NAMES[month_index - 1]
        context = month_context(month_index)
        low, high, avg = format_price(min_price), format_price(max_price), format_price(avg_price)
        conf = confidence_description(confidence)
        # a positive-ROI month gets a "conservative" rather than "bearish" downside case
        tone = "bearish" if roi < 0 else "conservative"

        openings = [
            f"{month} {year} suggests {coin_name} trading between ${low} and ${high}.",
            f"{coin_name} may trade in a range of ${low}-${high} during {month} {year}.",
            f"{month} {year} indicates a {coin_name} price corridor of ${low}-${high}.",
            f"A {tone} {month} {year} places {coin_name} at ${low}-${high}.",
            f"{coin_name} price action for {month} {year} shows a range of ${low}-${high}.",
        ]
        analysis = [
            f"Our well-established and trained analysis model calculates an average price of ${avg}, "
            f"representing {gain_description(roi)} from current levels.",
            f"Technical analysis suggests an average value of ${avg}, {gain_description(roi)} from today's price.",
            f"The forecast indicates an average price target of ${avg}, "
            f"{roi:.2f}% {valuation_description(roi)} the current valuation.",
            f"Analysis projects an average of ${avg}, yielding a {roi_description(roi)} on investment.",
        ]
        supporting = [
            f"This {tone} scenario accounts for {context.seasonal}.",
            f"{quarter(month_index)}'s market dynamics factor into this projection.",
            f"{_capitalize(context.market)} influences this {tone} outlook.",
            f"{_capitalize(year_context(year))} provides important context for this forecast.",
        ]
        confidence_lines = [
            f"Our indicators-based and reliable analysis model shows {conf}.",
            f"Technical indicators also support this prediction with {conf}.",
            f"The projection carries {conf} based on multiple factors.",
            f"Analysis indicates {conf} in this scenario.",
        ]
        return self._compose([openings, analysis, supporting, confidence_lines], rng)

engine = NarrativeGenerator()
