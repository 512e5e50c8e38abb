"""Model configuration — every tunable constant of the goal model in one place.

:class:`ModelConfig` is a frozen dataclass carrying the constants that shape
the expected-goals synthesis and the EV filter.  Nowhere else in the codebase
should the home-advantage factor, blend weights or EV threshold be hard-coded.

Instances are read-only after construction and are passed explicitly to the
functions that need them, so concurrent requests never share mutable state.

Typical usage::

    from ev_backend.core.model_config import ModelConfig

    cfg = ModelConfig()                      # defaults
    cfg = ModelConfig.from_env()             # honour environment overrides

    # Override a single constant for an experiment:
    from dataclasses import replace
    strict_cfg = replace(cfg, min_ev_threshold=8.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Final, Mapping, Optional

#: Environment variable → field name.  All overrides are optional.
ENV_OVERRIDES: Final[dict] = {
    "HOME_ADVANTAGE": "home_advantage",
    "FORM_WEIGHT": "form_weight",
    "H2H_WEIGHT": "h2h_weight",
    "RECENT_MATCHES_COUNT": "recent_matches",
    "MIN_H2H_MATCHES": "min_h2h_matches",
    "MIN_EV_THRESHOLD": "min_ev_threshold",
}

_INT_FIELDS: Final[frozenset] = frozenset({"recent_matches", "min_h2h_matches", "max_goals"})


@dataclass(frozen=True)
class ModelConfig:
    """Immutable configuration bundle for the statistical goal model.

    Attributes:
        home_advantage: Multiplier applied to the home side's scoring rate
            before blending.  1.15 = 15% boost.
        form_weight: Weight of recent form when blending with H2H averages.
        h2h_weight: Weight of H2H averages in the same blend.
        recent_matches: Number of most recent results considered per team.
        min_h2h_matches: Minimum valid H2H meetings before the H2H blend is
            applied at all.
        min_ev_threshold: EV% an opportunity must reach to be reported.
        min_lambda: Floor for each Poisson rate.  Prevents a degenerate
            zero-mean distribution.
        max_goals: Upper bound of the per-side goal grid used for Poisson
            summation.  See :mod:`ev_backend.core.poisson` for the
            truncation error this implies.
    """

    home_advantage: float = 1.15
    form_weight: float = 0.7
    h2h_weight: float = 0.3
    recent_matches: int = 10
    min_h2h_matches: int = 3
    min_ev_threshold: float = 4.0
    min_lambda: float = 0.3
    max_goals: int = 6

    def __post_init__(self) -> None:
        if self.home_advantage <= 0:
            raise ValueError(f"home_advantage must be positive, got {self.home_advantage!r}")
        if self.form_weight < 0 or self.h2h_weight < 0:
            raise ValueError(
                f"Blend weights must be non-negative "
                f"(form={self.form_weight!r}, h2h={self.h2h_weight!r})"
            )
        if self.recent_matches < 1:
            raise ValueError(f"recent_matches must be >= 1, got {self.recent_matches!r}")
        if self.min_h2h_matches < 0:
            raise ValueError(f"min_h2h_matches must be >= 0, got {self.min_h2h_matches!r}")
        if self.min_lambda <= 0:
            raise ValueError(f"min_lambda must be positive, got {self.min_lambda!r}")
        if self.max_goals < 2:
            # The O/U 2.5 market needs at least the 0..2 goal cells.
            raise ValueError(f"max_goals must be >= 2, got {self.max_goals!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ModelConfig:
        """Build a config from defaults plus any environment overrides.

        Args:
            environ: Mapping to read from.  Defaults to ``os.environ``.

        Raises:
            ValueError: If an override is not a number or fails validation.
        """
        env = os.environ if environ is None else environ
        overrides = {}
        for var, field_name in ENV_OVERRIDES.items():
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                value = float(raw)
            except ValueError:
                raise ValueError(f"{var}={raw!r} is not a number") from None
            overrides[field_name] = int(value) if field_name in _INT_FIELDS else value
        return replace(cls(), **overrides)

    def __repr__(self) -> str:
        return (
            f"ModelConfig(home_adv={self.home_advantage}, "
            f"weights={self.form_weight}/{self.h2h_weight}, "
            f"window={self.recent_matches}, "
            f"min_ev={self.min_ev_threshold})"
        )
