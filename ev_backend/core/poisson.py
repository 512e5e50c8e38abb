"""Poisson goal model — market probabilities from a pair of scoring rates.

Each side's goal count is modelled as an independent Poisson variable with
rate λ (expected goals).  The joint distribution of scorelines is the outer
product of the two marginal pmfs, evaluated on a truncated grid.

Truncation
----------
The grid covers ``0..MAX_GOALS`` goals per side (a 7×7 grid by default).
The probability mass outside the grid is ``1 − F(6; λ)`` per side:
≈ 0.0045 at λ = 2.0 and ≈ 0.0335 at λ = 3.0, beyond which realistic
football rates rarely go.  1X2 probabilities are renormalised by the grid
total, so the truncated tail is redistributed proportionally rather than
silently dropped.  The O/U 2.5 market only needs cells with at most two total
goals, all of which are inside the grid, so its under probability is exact;
BTTS uses the closed-form P(0 goals) and is not affected at all.

Markets are computed independently from the same (λ_home, λ_away) pair and
are not forced to be mutually consistent.
"""

from __future__ import annotations

from typing import Dict, Final, Tuple

import numpy as np
from scipy.stats import poisson

#: Highest per-side goal count on the summation grid.
MAX_GOALS: Final[int] = 6

#: Total-goals line for the over/under market (2.5 → "under" means ≤ 2).
OVER_UNDER_LINE: Final[float] = 2.5


def poisson_pmf(k: int, lam: float) -> float:
    """P(X = k) for X ~ Poisson(lam)."""
    return float(poisson.pmf(k, lam))


def poisson_cdf(k: int, lam: float) -> float:
    """P(X ≤ k) for X ~ Poisson(lam)."""
    return float(poisson.cdf(k, lam))


def score_matrix(
    home_lambda: float,
    away_lambda: float,
    max_goals: int = MAX_GOALS,
) -> np.ndarray:
    """Joint scoreline probabilities on a truncated grid.

    Returns:
        ``(max_goals + 1, max_goals + 1)`` array where ``m[i, j]`` is
        ``P(home = i) · P(away = j)``.  Rows index home goals, columns away
        goals.  The array does **not** sum to exactly 1 (see module notes).
    """
    goals = np.arange(max_goals + 1)
    home_pmf = poisson.pmf(goals, home_lambda)
    away_pmf = poisson.pmf(goals, away_lambda)
    return np.outer(home_pmf, away_pmf)


def match_result_probabilities(
    home_lambda: float,
    away_lambda: float,
    max_goals: int = MAX_GOALS,
) -> Dict[str, float]:
    """1X2 probabilities, renormalised over the truncated grid.

    Home wins on cells below the diagonal (home goals > away goals), draws on
    the diagonal, away wins above it.
    """
    m = score_matrix(home_lambda, away_lambda, max_goals)
    home = float(np.tril(m, k=-1).sum())
    draw = float(np.trace(m))
    away = float(np.triu(m, k=1).sum())
    total = home + draw + away
    return {
        "home": home / total,
        "draw": draw / total,
        "away": away / total,
    }


def over_under_probabilities(
    home_lambda: float,
    away_lambda: float,
    max_goals: int = MAX_GOALS,
    line: float = OVER_UNDER_LINE,
) -> Dict[str, float]:
    """Total-goals over/under probabilities for a half-goal line."""
    m = score_matrix(home_lambda, away_lambda, max_goals)
    goals = np.arange(max_goals + 1)
    total_goals = goals[:, None] + goals[None, :]
    under = float(m[total_goals <= int(np.floor(line))].sum())
    return {
        "over": 1.0 - under,
        "under": under,
    }


def btts_probabilities(home_lambda: float, away_lambda: float) -> Dict[str, float]:
    """Both-teams-to-score probabilities.

    ``yes = 1 − P(home blank ∪ away blank)`` by inclusion-exclusion over the
    two independent "scores zero" events.
    """
    home_blank = poisson_pmf(0, home_lambda)
    away_blank = poisson_pmf(0, away_lambda)
    yes = 1.0 - (home_blank + away_blank - home_blank * away_blank)
    return {
        "yes": yes,
        "no": 1.0 - yes,
    }


def line_probabilities(lam: float, line: float) -> Tuple[float, float]:
    """(over, under) probabilities of a single Poisson count around a half line."""
    under = poisson_cdf(int(np.floor(line)), lam)
    return 1.0 - under, under
