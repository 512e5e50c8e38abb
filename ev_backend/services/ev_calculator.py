"""
EV opportunity engine — statistical model vs. bookmaker prices.

For every bookmaker quote on a market the model has an estimate for:

    EV% = (bookmaker_odds × model_probability − 1) × 100

Quotes at or above the minimum EV threshold are kept, ranked by descending
EV% and annotated with a short narrative.  The model probabilities are the
"true" probabilities here; bookmaker prices are never de-vigged into a
consensus.

Sparse inputs are absorbed locally: a market nobody quotes, or that the
model has no estimate for, yields ``None`` for that market without failing
the others.  Missing, non-numeric or ≤ 1.0 prices are skipped per outcome.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

from ev_backend.core.odds_math import expected_value_pct, is_valid_price
from ev_backend.services.statistical_model import (
    MARKET_1X2,
    MARKET_BTTS,
    MARKET_OU25,
    MARKET_OUTCOMES,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_EV_THRESHOLD = 4.0
MODEL_TYPE = "statistical"

# Market-specific fields passed through from the model to the response.
MARKET_EXTRA_FIELDS = {
    MARKET_1X2: "data_quality",
    MARKET_OU25: "expected_total_goals",
    MARKET_BTTS: "team_scoring",
}

DEFAULT_EXPLANATIONS = {
    MARKET_1X2: "Based on statistical analysis of team form and H2H history.",
    MARKET_OU25: "Based on expected goals from statistical analysis.",
    MARKET_BTTS: "Based on team scoring rates from statistical analysis.",
}

# A price within 5% of the best available counts as "among the highest".
TOP_OF_MARKET_RATIO = 0.95


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class BookmakerQuote:
    """One bookmaker's decimal prices, keyed market → outcome → price."""

    name: str
    markets: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    updated_at: Dict[str, Optional[str]] = field(default_factory=dict)
    handicaps: Dict[str, str] = field(default_factory=dict)


@dataclass
class EVOpportunity:
    """A single bookmaker price that clears the EV threshold."""

    market: str
    outcome: str
    bookmaker: str
    bookmaker_odds: float
    fair_odds: float
    probability: float
    ev_pct: float
    reason: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Market helpers
# ---------------------------------------------------------------------------

def calculate_odds_range(
    bookmakers: Sequence[BookmakerQuote],
    market: str,
    outcomes: Sequence[str],
) -> Dict[str, Dict[str, float]]:
    """
    Min / max / spread of valid prices per outcome across bookmakers.

    Outcomes nobody prices get zeros.
    """
    odds_range: Dict[str, Dict[str, float]] = {}
    for outcome in outcomes:
        prices = [
            b.markets[market].get(outcome)
            for b in bookmakers
            if market in b.markets
        ]
        prices = [p for p in prices if is_valid_price(p)]
        if prices:
            lo, hi = min(prices), max(prices)
            odds_range[outcome] = {"min": lo, "max": hi, "spread": hi - lo}
        else:
            odds_range[outcome] = {"min": 0.0, "max": 0.0, "spread": 0.0}
    return odds_range


def _ev_tier(ev_pct: float) -> str:
    if ev_pct > 20:
        return "Exceptional value! "
    if ev_pct > 10:
        return "Strong value. "
    if ev_pct > 5:
        return "Good value. "
    return "Marginal value. "


def _probability_tier(probability: float) -> str:
    if probability > 0.6:
        return "Favorite - high probability but lower returns."
    if probability > 0.4:
        return "Balanced probability - moderate risk."
    if probability > 0.25:
        return "Underdog - lower probability but higher returns."
    return "Long shot - verify this isn't a mistake!"


def describe_opportunity(
    opportunity: EVOpportunity,
    odds_range: Dict[str, Dict[str, float]],
) -> str:
    """Narrative for one opportunity: value tier, market position, risk tier."""
    text = _ev_tier(opportunity.ev_pct)
    text += (
        f"{opportunity.bookmaker} offers {opportunity.bookmaker_odds:g} "
        f"vs fair odds of {opportunity.fair_odds:.2f}. "
    )

    price_range = odds_range.get(opportunity.outcome)
    if price_range and price_range["max"] > 0:
        if opportunity.bookmaker_odds >= price_range["max"] * TOP_OF_MARKET_RATIO:
            text += "This is among the highest odds in the market. "
        elif price_range["spread"] > 0:
            position = (opportunity.bookmaker_odds - price_range["min"]) / price_range["spread"] * 100
            if position > 75:
                text += "Above-average odds compared to other bookmakers. "

    text += _probability_tier(opportunity.probability)
    return text


# ---------------------------------------------------------------------------
# EV calculation
# ---------------------------------------------------------------------------

def calculate_market_ev(
    market: str,
    bookmakers: Sequence[BookmakerQuote],
    market_model: Optional[Dict],
    min_ev_threshold: float = DEFAULT_MIN_EV_THRESHOLD,
) -> Optional[Dict]:
    """
    Score every bookmaker price on one market against the model.

    Args:
        market: Market key (``"1X2"``, ``"O/U 2.5"``, ``"BTTS"``).
        bookmakers: All quotes for the fixture; those without this market
            are ignored.
        market_model: The model's entry for this market (``probabilities``,
            ``fair_odds``, ``explanation`` and an optional extra field).
        min_ev_threshold: Minimum unrounded EV% to keep; the stored
            ``ev_pct`` is rounded to 2 dp afterwards.

    Returns:
        ``{probabilities, fair_odds, odds_range, explanation, opportunities,
        <extra>}`` with opportunities sorted by descending EV%, or None when
        no bookmaker quotes the market or the model has no estimate.
    """
    relevant = [b for b in bookmakers if market in b.markets]
    if not relevant or not market_model:
        return None

    outcomes = MARKET_OUTCOMES[market]
    probabilities = market_model["probabilities"]
    fair_odds = market_model["fair_odds"]
    odds_range = calculate_odds_range(bookmakers, market, outcomes)

    logger.debug("Calculating %s EV from %d bookmakers", market, len(relevant))

    opportunities: List[EVOpportunity] = []
    for bookmaker in relevant:
        quotes = bookmaker.markets[market]
        for outcome in outcomes:
            price = quotes.get(outcome)
            if not is_valid_price(price):
                continue
            probability = probabilities.get(outcome)
            fair = fair_odds.get(outcome)
            if probability is None or fair is None:
                # Zero-probability outcome: nothing to compare against.
                continue

            ev_pct = expected_value_pct(price, probability)
            if ev_pct < min_ev_threshold:
                continue

            opportunity = EVOpportunity(
                market=market,
                outcome=outcome,
                bookmaker=bookmaker.name,
                bookmaker_odds=price,
                fair_odds=fair,
                probability=probability,
                ev_pct=round(ev_pct, 2),
            )
            opportunity.reason = describe_opportunity(opportunity, odds_range)
            opportunities.append(opportunity)

    opportunities.sort(key=lambda o: o.ev_pct, reverse=True)
    logger.info("Found %d %s opportunities", len(opportunities), market)

    result = {
        "probabilities": probabilities,
        "fair_odds": fair_odds,
        "odds_range": odds_range,
        "explanation": market_model.get("explanation") or DEFAULT_EXPLANATIONS[market],
        "opportunities": [o.to_dict() for o in opportunities],
    }
    extra = MARKET_EXTRA_FIELDS[market]
    result[extra] = market_model.get(extra)
    return result


def _empty_result(error: Optional[str] = None) -> Dict:
    result = {
        MARKET_1X2: None,
        MARKET_OU25: None,
        MARKET_BTTS: None,
        "all_opportunities": [],
        "model": MODEL_TYPE,
    }
    if error:
        result["error"] = error
    return result


def calculate_match_ev(
    bookmakers: Optional[Sequence[BookmakerQuote]],
    model: Optional[Dict],
    min_ev_threshold: float = DEFAULT_MIN_EV_THRESHOLD,
) -> Dict:
    """
    EV for all three markets plus a cross-market ranking.

    Returns:
        Dict with one entry per market (None when unavailable),
        ``all_opportunities`` sorted by descending EV%, ``model``,
        ``metadata`` and ``stats_predictions``.  With no bookmakers or no
        model, every market is None and the opportunity list is empty.
    """
    if not bookmakers:
        return _empty_result()

    if not model:
        logger.warning("No statistical probabilities available - cannot calculate EV")
        return _empty_result("Statistical probabilities not available")

    logger.info("Statistical EV calculation for %d bookmakers", len(bookmakers))

    markets = {
        market: calculate_market_ev(market, bookmakers, model.get(market), min_ev_threshold)
        for market in (MARKET_1X2, MARKET_OU25, MARKET_BTTS)
    }

    all_opportunities = [
        opp
        for market_ev in markets.values()
        if market_ev
        for opp in market_ev["opportunities"]
    ]
    all_opportunities.sort(key=lambda o: o["ev_pct"], reverse=True)

    if all_opportunities:
        best = all_opportunities[0]
        logger.info(
            "%d opportunities; best %s %s @ %s (%.2f%% EV)",
            len(all_opportunities), best["market"], best["outcome"],
            best["bookmaker"], best["ev_pct"],
        )
    else:
        logger.info("No opportunities above %.1f%% EV", min_ev_threshold)

    return {
        **markets,
        "all_opportunities": all_opportunities,
        "model": MODEL_TYPE,
        "metadata": model.get("metadata"),
        "stats_predictions": model.get("stats_predictions"),
    }
