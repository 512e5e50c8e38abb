"""Fundamental odds mathematics — the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services.

The pillars exposed are:

1. **Fair prices** — inversion of a model probability into a decimal price.
2. **Implied probability / overround** — what a bookmaker price says on its own.
3. **Expected value** — ``EV% = (price × probability − 1) × 100``.

Design decisions
----------------
* All prices are **decimal** (European) odds, the format BetsAPI returns.
* Fair prices carry no margin and no smoothing.  They are the theoretical
  vig-free price of the statistical estimate, not a margin-removed
  bookmaker consensus.
* A zero-probability outcome has no finite fair price.  Instead of returning
  a misleading ``0`` the deriver returns :data:`NO_FAIR_PRICE` (``None``),
  which serialises to JSON ``null`` and is skipped by the EV engine.
"""

from __future__ import annotations

from typing import Dict, Final, Iterable, Mapping, Optional

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Sentinel fair price for an outcome whose model probability is zero.
NO_FAIR_PRICE: Final[None] = None

#: A decimal price must exceed this to be a real wager (1.0 returns the stake
#: and nothing else).
MIN_DECIMAL_ODDS: Final[float] = 1.0


# ---------------------------------------------------------------------------
# Fair prices
# ---------------------------------------------------------------------------


def fair_price(probability: float) -> Optional[float]:
    """Invert a probability into a vig-free decimal price.

    Args:
        probability: Model probability in ``[0, 1]``.

    Returns:
        ``1 / probability``, or :data:`NO_FAIR_PRICE` when
        ``probability <= 0``.

    Examples::

        fair_price(0.5)  → 2.0
        fair_price(0.25) → 4.0
        fair_price(0.0)  → None
    """
    if probability <= 0.0:
        return NO_FAIR_PRICE
    return 1.0 / probability


def fair_prices(probabilities: Mapping[str, float]) -> Dict[str, Optional[float]]:
    """Apply :func:`fair_price` to every outcome of a market."""
    return {outcome: fair_price(p) for outcome, p in probabilities.items()}


# ---------------------------------------------------------------------------
# Bookmaker prices
# ---------------------------------------------------------------------------


def is_valid_price(price: object) -> bool:
    """True when ``price`` is a usable decimal price (numeric and > 1.0)."""
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return False
    return price > MIN_DECIMAL_ODDS


def implied_probability(decimal_odds: float) -> float:
    """Raw implied probability of a decimal price (vig-inclusive).

    Returns 0.0 for prices that are not valid wagers (≤ 1.0).

    Examples::

        implied_probability(2.0)  → 0.5
        implied_probability(1.91) → 0.5236
    """
    if not is_valid_price(decimal_odds):
        return 0.0
    return 1.0 / decimal_odds


def overround(prices: Iterable[float]) -> float:
    """Bookmaker margin of a complete market as a fraction.

    ``overround([1.91, 1.91]) → 0.0471`` (4.7% margin).  Invalid prices
    contribute nothing, so a partial market understates the margin.
    """
    return sum(implied_probability(p) for p in prices) - 1.0


def expected_value_pct(decimal_odds: float, probability: float) -> float:
    """Expected value of a unit stake, in percent.

    ``EV% = (decimal_odds × probability − 1) × 100``.  Strictly increasing
    in ``decimal_odds`` for any positive ``probability``.

    Examples::

        expected_value_pct(3.0, 0.40) → 20.0
        expected_value_pct(2.0, 0.50) →  0.0
    """
    return (decimal_odds * probability - 1.0) * 100.0
