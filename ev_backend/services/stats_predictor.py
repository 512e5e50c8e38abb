"""
Secondary match-statistics predictions (corners, shots, fouls, cards, offsides).

The predictions are heuristics, not fitted models: every count is a fixed
ratio of the side's expected goals (λ).  Each category carries a static
confidence score reflecting how predictable that statistic tends to be.

A small corner-market generator sits on top of the corner prediction: it
treats the predicted total corners as the rate of a Poisson count and calls
over/under on a fixed ladder of lines when one side is at least 60% likely.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

from ev_backend.core.poisson import line_probabilities
from ev_backend.services.form import HistoricalDataBundle, MatchResult, TeamForm

logger = logging.getLogger(__name__)

# Ratios applied to a side's expected goals.
CORNERS_PER_GOAL = 4.5
SHOTS_PER_GOAL = 7.0
SHOTS_ON_TARGET_RATIO = 0.35
OFFSIDES_PER_GOAL = 2.0

# Fouls per side before the competitiveness adjustment.
FOULS_BASE = 12.0
COMPETITIVENESS_FACTOR = 0.2
CARDS_PER_FOUL = 0.25

# Static confidence (0-100) per statistic, highest = most predictable.
STAT_CONFIDENCE = {
    "corners": 75,
    "shots": 70,
    "shots_on_target": 68,
    "offsides": 60,
    "fouls": 65,
    "cards": 55,
}
DEFAULT_CONFIDENCE = 60

# Half-width of the reported total range per statistic.
RANGE_HALF_WIDTH = {
    "corners": 3,
    "shots": 5,
    "shots_on_target": 3,
}

CORNER_LINES = (8.5, 9.5, 10.5, 11.5, 12.5)
MIN_CORNER_MARKET_PROB = 0.6

# Recent matches per list sampled for the historical corner estimate.
RECENT_CORNER_SAMPLE = 5
MAX_CORNER_SAMPLES = 10


@dataclass
class CornerMarketPrediction:
    """Directional call on a single corners over/under line."""

    market: str
    prediction: str  # "Over" or "Under"
    probability: float
    reasoning: str

    def to_dict(self) -> Dict:
        return asdict(self)


def _round_count(value: float) -> int:
    """Round a predicted event count half-up to a whole number."""
    return int(math.floor(value + 0.5))


def stat_confidence(category: str) -> int:
    """Static confidence score for a statistic category."""
    return STAT_CONFIDENCE.get(category, DEFAULT_CONFIDENCE)


def _total_block(category: str, total: int) -> Dict:
    half_width = RANGE_HALF_WIDTH[category]
    return {
        "prediction": total,
        "range": {"min": max(total - half_width, 0), "max": total + half_width},
        "confidence": stat_confidence(category),
    }


def generate_corner_markets(
    total_corners: float,
    lines: Sequence[float] = CORNER_LINES,
    min_probability: float = MIN_CORNER_MARKET_PROB,
) -> List[CornerMarketPrediction]:
    """
    Call over/under on each corners line where one side is ≥ ``min_probability``.

    At most one prediction is produced per line.  Lines where neither side
    reaches the threshold are omitted.
    """
    markets: List[CornerMarketPrediction] = []
    if total_corners <= 0:
        return markets

    for line in lines:
        over, under = line_probabilities(total_corners, line)
        if over < min_probability and under < min_probability:
            continue
        prediction = "Over" if over > under else "Under"
        probability = max(over, under)
        markets.append(CornerMarketPrediction(
            market=f"Corners O/U {line}",
            prediction=prediction,
            probability=probability,
            reasoning=(
                f"Based on {total_corners:g} predicted corners. "
                f"{prediction} has {probability * 100:.0f}% probability."
            ),
        ))
    return markets


def estimate_recent_corners(history: Optional[HistoricalDataBundle]) -> Optional[Dict]:
    """
    Rough corner range implied by goals in recent matches.

    Samples up to five results from each of the home, away and H2H lists,
    keeps those with a parseable score (at most ten) and converts total goals
    into corners with the same per-goal ratio as the prediction.
    """
    if history is None:
        return None

    sample: List[MatchResult] = [
        *history.home[:RECENT_CORNER_SAMPLE],
        *history.away[:RECENT_CORNER_SAMPLE],
        *history.h2h[:RECENT_CORNER_SAMPLE],
    ]
    estimates = [
        sum(m.goals) * CORNERS_PER_GOAL
        for m in sample
        if m.goals is not None
    ][:MAX_CORNER_SAMPLES]

    if not estimates:
        return None

    return {
        "min": _round_count(min(estimates)),
        "max": _round_count(max(estimates)),
        "avg": _round_count(sum(estimates) / len(estimates)),
        "matches": len(estimates),
    }


def predict_match_stats(
    home_form: TeamForm,
    away_form: TeamForm,
    home_lambda: float,
    away_lambda: float,
    history: Optional[HistoricalDataBundle] = None,
) -> Dict:
    """
    Predict secondary statistics for both sides from the goal rates.

    Args:
        home_form / away_form: Used only for the corners narrative.
        home_lambda / away_lambda: Expected goals per side.
        history: Optional raw history for the recent-corners estimate.

    Returns:
        Dict keyed by statistic (corners, shots, shots_on_target, offsides,
        fouls, cards) with per-side counts, totals and confidence.
    """
    home_corners = _round_count(home_lambda * CORNERS_PER_GOAL)
    away_corners = _round_count(away_lambda * CORNERS_PER_GOAL)
    total_corners = home_corners + away_corners

    home_shots = _round_count(home_lambda * SHOTS_PER_GOAL)
    away_shots = _round_count(away_lambda * SHOTS_PER_GOAL)
    total_shots = home_shots + away_shots

    home_sot = _round_count(home_shots * SHOTS_ON_TARGET_RATIO)
    away_sot = _round_count(away_shots * SHOTS_ON_TARGET_RATIO)

    home_offsides = _round_count(home_lambda * OFFSIDES_PER_GOAL)
    away_offsides = _round_count(away_lambda * OFFSIDES_PER_GOAL)

    # Both sides share the base; a lopsided rate gap scales it up.
    competitive = 1.0 + abs(home_lambda - away_lambda) * COMPETITIVENESS_FACTOR
    home_fouls = _round_count(FOULS_BASE * competitive)
    away_fouls = _round_count(FOULS_BASE * competitive)

    home_cards = _round_count(home_fouls * CARDS_PER_FOUL)
    away_cards = _round_count(away_fouls * CARDS_PER_FOUL)

    logger.info(
        "Stats prediction: corners %d (%d-%d), shots %d (%d-%d), fouls %d-%d, cards %d-%d",
        total_corners, home_corners, away_corners,
        total_shots, home_shots, away_shots,
        home_fouls, away_fouls, home_cards, away_cards,
    )

    home_avg_corners = home_form.goals_scored * CORNERS_PER_GOAL
    away_avg_corners = away_form.goals_scored * CORNERS_PER_GOAL
    recent = estimate_recent_corners(history)
    if recent is not None:
        historical = {
            "note": "Historical corner estimates from recent matches:",
            "recent_matches": (
                f"In last {recent['matches']} matches: Min {recent['min']} corners, "
                f"Max {recent['max']} corners, Avg {recent['avg']} corners"
            ),
            "h2h_note": (
                f"Home team averages {home_avg_corners:.1f} corners, "
                f"Away team averages {away_avg_corners:.1f} corners"
            ),
        }
    else:
        historical = {
            "note": "Corner estimates based on attacking patterns:",
            "recent_matches": (
                f"Home team averages {home_avg_corners:.1f} corners per match, "
                f"away team averages {away_avg_corners:.1f} corners per match."
            ),
            "h2h_note": "Based on goal expectations",
        }

    corners_total = _total_block("corners", total_corners)
    corners_total["markets"] = [m.to_dict() for m in generate_corner_markets(total_corners)]
    corners_total["historical"] = historical

    return {
        "corners": {
            "total": corners_total,
            "home": home_corners,
            "away": away_corners,
        },
        "shots": {
            "total": _total_block("shots", total_shots),
            "home": home_shots,
            "away": away_shots,
        },
        "shots_on_target": {
            "total": _total_block("shots_on_target", home_sot + away_sot),
            "home": home_sot,
            "away": away_sot,
        },
        "offsides": {
            "total": home_offsides + away_offsides,
            "home": home_offsides,
            "away": away_offsides,
            "confidence": stat_confidence("offsides"),
        },
        "fouls": {
            "total": home_fouls + away_fouls,
            "home": home_fouls,
            "away": away_fouls,
            "confidence": stat_confidence("fouls"),
        },
        "cards": {
            "total": home_cards + away_cards,
            "home": home_cards,
            "away": away_cards,
            "confidence": stat_confidence("cards"),
        },
    }
