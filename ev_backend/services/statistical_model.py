"""
Statistical goal model for a single fixture.

Methodology:
1. Summarise H2H meetings and each side's recent form.
2. Synthesise Poisson goal rates: home form × home advantage, blended with
   H2H averages when enough meetings exist, then averaged with the
   opponent's concession rate.
3. Derive 1X2, O/U 2.5 and BTTS probabilities from the rates.
4. Invert the probabilities into fair (vig-free) prices.
5. Predict secondary statistics from the same rates.

Everything here is a deterministic function of its inputs.  The model never
fetches data; the caller supplies a fully resolved history bundle.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Optional

from ev_backend.core.model_config import ModelConfig
from ev_backend.core.odds_math import fair_prices
from ev_backend.core.poisson import (
    btts_probabilities,
    match_result_probabilities,
    over_under_probabilities,
)
from ev_backend.services.form import (
    HeadToHeadSummary,
    HistoricalDataBundle,
    TeamForm,
    analyze_h2h,
    analyze_team_form,
)
from ev_backend.services.stats_predictor import predict_match_stats

logger = logging.getLogger(__name__)

MODEL_NAME = "Statistical Poisson"

MARKET_1X2 = "1X2"
MARKET_OU25 = "O/U 2.5"
MARKET_BTTS = "BTTS"

# Outcome keys per market, in display order.
MARKET_OUTCOMES = {
    MARKET_1X2: ("home", "draw", "away"),
    MARKET_OU25: ("over", "under"),
    MARKET_BTTS: ("yes", "no"),
}


@dataclass(frozen=True)
class ExpectedGoals:
    """Poisson rate per side.  Both values are floored at the config minimum."""

    home: float
    away: float

    @property
    def total(self) -> float:
        return self.home + self.away


def calculate_expected_goals(
    home_form: TeamForm,
    away_form: TeamForm,
    h2h: HeadToHeadSummary,
    config: Optional[ModelConfig] = None,
) -> ExpectedGoals:
    """
    Combine form, H2H and opponent defence into a pair of goal rates.

    The H2H blend only kicks in once ``h2h.match_count`` reaches
    ``config.min_h2h_matches``; below that, H2H averages are ignored.
    """
    cfg = config or ModelConfig()

    home_xg = home_form.goals_scored * cfg.home_advantage
    away_xg = away_form.goals_scored

    if h2h.match_count >= cfg.min_h2h_matches:
        home_xg = home_xg * cfg.form_weight + h2h.avg_home_goals * cfg.h2h_weight
        away_xg = away_xg * cfg.form_weight + h2h.avg_away_goals * cfg.h2h_weight

    # Opponent defence
    home_xg = (home_xg + away_form.goals_conceded) / 2.0
    away_xg = (away_xg + home_form.goals_conceded) / 2.0

    return ExpectedGoals(
        home=max(cfg.min_lambda, home_xg),
        away=max(cfg.min_lambda, away_xg),
    )


def calculate_reliability(h2h_count: int, home_form_count: int, away_form_count: int) -> float:
    """
    Data-quality score in [0, 100].

    H2H contributes up to 30 points (5 per meeting); each side's form up to
    35 points (3.5 per match).
    """
    score = min(h2h_count * 5, 30)
    score += min(home_form_count * 3.5, 35)
    score += min(away_form_count * 3.5, 35)
    return min(score, 100)


def calculate_probabilities(
    history: Optional[HistoricalDataBundle],
    home_team_id: Optional[str],
    away_team_id: Optional[str],
    config: Optional[ModelConfig] = None,
) -> Optional[Dict]:
    """
    Run the full statistical model for one fixture.

    Args:
        history: H2H and recent results.  None means the data provider had
            nothing for this fixture.
        home_team_id / away_team_id: Identifiers of today's sides, matched
            against ``MatchResult.home_id`` / ``away_id``.
        config: Model constants; defaults to :class:`ModelConfig`.

    Returns:
        None when ``history`` is None (insufficient data, not an error).
        Otherwise a dict keyed by market (``"1X2"``, ``"O/U 2.5"``,
        ``"BTTS"``), each holding ``probabilities``, ``fair_odds``,
        ``explanation`` and a market-specific extra field, plus
        ``metadata`` and ``stats_predictions``.
    """
    if history is None:
        logger.warning("No history data available for %s vs %s", home_team_id, away_team_id)
        return None

    cfg = config or ModelConfig()
    logger.info(
        "Statistical model: %d H2H, %d home recent, %d away recent matches",
        len(history.h2h), len(history.home), len(history.away),
    )

    h2h = analyze_h2h(history.h2h, home_team_id, away_team_id)
    home_form = analyze_team_form(history.home, home_team_id, window=cfg.recent_matches)
    away_form = analyze_team_form(history.away, away_team_id, window=cfg.recent_matches)

    logger.info(
        "H2H %dW-%dD-%dL (avg %.2f-%.2f); home form %s (%.2f/%.2f); away form %s (%.2f/%.2f)",
        h2h.home_wins, h2h.draws, h2h.away_wins, h2h.avg_home_goals, h2h.avg_away_goals,
        home_form.record, home_form.goals_scored, home_form.goals_conceded,
        away_form.record, away_form.goals_scored, away_form.goals_conceded,
    )

    xg = calculate_expected_goals(home_form, away_form, h2h, cfg)
    logger.info("Expected goals (Poisson λ): home %.2f, away %.2f", xg.home, xg.away)

    prob_1x2 = match_result_probabilities(xg.home, xg.away, cfg.max_goals)
    prob_ou = over_under_probabilities(xg.home, xg.away, cfg.max_goals)
    prob_btts = btts_probabilities(xg.home, xg.away)

    logger.info(
        "1X2 %.1f/%.1f/%.1f%%, O/U %.1f/%.1f%%, BTTS %.1f/%.1f%%",
        prob_1x2["home"] * 100, prob_1x2["draw"] * 100, prob_1x2["away"] * 100,
        prob_ou["over"] * 100, prob_ou["under"] * 100,
        prob_btts["yes"] * 100, prob_btts["no"] * 100,
    )

    stats_predictions = predict_match_stats(home_form, away_form, xg.home, xg.away, history)

    return {
        MARKET_1X2: {
            "probabilities": prob_1x2,
            "fair_odds": fair_prices(prob_1x2),
            "explanation": (
                f"Calculated from {h2h.match_count} H2H matches, "
                f"{home_form.match_count} home team matches, "
                f"{away_form.match_count} away team matches. "
                f"Expected goals: {xg.home:.2f} - {xg.away:.2f}."
            ),
            "data_quality": {
                "h2h_matches": h2h.match_count,
                "home_form_matches": home_form.match_count,
                "away_form_matches": away_form.match_count,
                "reliability": calculate_reliability(
                    h2h.match_count, home_form.match_count, away_form.match_count
                ),
            },
        },
        MARKET_OU25: {
            "probabilities": prob_ou,
            "fair_odds": fair_prices(prob_ou),
            "explanation": (
                f"Based on expected total goals of {xg.total:.2f} from statistical analysis."
            ),
            "expected_total_goals": xg.total,
        },
        MARKET_BTTS: {
            "probabilities": prob_btts,
            "fair_odds": fair_prices(prob_btts),
            "explanation": (
                f"Based on team scoring rates. Home averages {home_form.goals_scored:.2f} goals, "
                f"away averages {away_form.goals_scored:.2f} goals."
            ),
            "team_scoring": {
                "home_avg": home_form.goals_scored,
                "away_avg": away_form.goals_scored,
            },
        },
        "metadata": {
            "model": MODEL_NAME,
            "home_expected_goals": xg.home,
            "away_expected_goals": xg.away,
            "h2h_summary": asdict(h2h),
            "home_form": asdict(home_form),
            "away_form": asdict(away_form),
        },
        "stats_predictions": stats_predictions,
    }
