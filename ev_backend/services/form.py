"""
Team form and head-to-head summaries from historical match results.

Both analyzers are pure aggregations over a list of :class:`MatchResult`.
Unparseable scores are skipped rather than treated as errors, and an empty
sample falls back to league-typical defaults with ``match_count == 0``.
Callers must read ``match_count == 0`` as "no evidence", not as "this team
averages 1.5 goals".
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ev_backend.core.model_config import ModelConfig

logger = logging.getLogger(__name__)

# Goals per match assumed when a team has no usable history.
DEFAULT_GOALS = 1.5

_SCORE_RE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


# ---------------------------------------------------------------------------
# Score parsing
# ---------------------------------------------------------------------------

def parse_score(score: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse a final score string such as ``"2-1"`` into ``(home, away)``.

    Returns None for anything that is not two non-negative integers joined
    by a single hyphen (``None``, ``""``, ``"2-x"``, ``"1-1-0"``).
    """
    if not isinstance(score, str):
        return None
    match = _SCORE_RE.match(score)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchResult:
    """A finished historical fixture as supplied by the data provider."""

    home_id: Optional[str]
    away_id: Optional[str]
    score: Optional[str]

    @property
    def goals(self) -> Optional[Tuple[int, int]]:
        return parse_score(self.score)

    @classmethod
    def from_event(cls, event: Dict) -> "MatchResult":
        """Build from a BetsAPI event dict (``home.id``, ``away.id``, ``ss``)."""
        home = event.get("home") or {}
        away = event.get("away") or {}
        return cls(
            home_id=_as_id(home.get("id")),
            away_id=_as_id(away.get("id")),
            score=event.get("ss"),
        )


@dataclass
class HistoricalDataBundle:
    """H2H meetings plus each team's recent results, most recent first."""

    h2h: List[MatchResult] = field(default_factory=list)
    home: List[MatchResult] = field(default_factory=list)
    away: List[MatchResult] = field(default_factory=list)

    def all_matches(self) -> List[MatchResult]:
        return [*self.h2h, *self.home, *self.away]


@dataclass
class TeamForm:
    """Scoring summary of one team's recent results."""

    goals_scored: float = DEFAULT_GOALS
    goals_conceded: float = DEFAULT_GOALS
    wins: int = 0
    draws: int = 0
    losses: int = 0
    match_count: int = 0

    @property
    def record(self) -> str:
        return f"{self.wins}W-{self.draws}D-{self.losses}L"


@dataclass
class HeadToHeadSummary:
    """Prior meetings oriented onto the current fixture's home/away roles."""

    home_wins: int = 0
    draws: int = 0
    away_wins: int = 0
    avg_home_goals: float = DEFAULT_GOALS
    avg_away_goals: float = DEFAULT_GOALS
    match_count: int = 0


def _as_id(value) -> Optional[str]:
    return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Analyzers
# ---------------------------------------------------------------------------

def analyze_team_form(
    matches: Optional[Sequence[MatchResult]],
    team_id: Optional[str],
    window: int = ModelConfig().recent_matches,
) -> TeamForm:
    """
    Average goals for/against and W/D/L over a team's recent results.

    Only the first ``window`` entries are considered; unparseable scores
    inside that window are skipped, so the effective sample can be smaller.
    Goals are attributed by whether ``team_id`` was the home side in each
    historical fixture.

    Args:
        matches: Team's results, most recent first.
        team_id: The team whose perspective is taken.
        window: Maximum number of results considered.

    Returns:
        TeamForm; defaults with ``match_count == 0`` when nothing is usable.
    """
    if not matches:
        return TeamForm()

    team_key = _as_id(team_id)
    scored = conceded = 0
    wins = draws = losses = 0
    valid = 0

    for match in list(matches)[:window]:
        goals = match.goals
        if goals is None:
            logger.debug("Skipping unparseable score %r", match.score)
            continue

        valid += 1
        was_home = match.home_id == team_key
        team_goals, opp_goals = goals if was_home else (goals[1], goals[0])

        scored += team_goals
        conceded += opp_goals

        if team_goals > opp_goals:
            wins += 1
        elif team_goals == opp_goals:
            draws += 1
        else:
            losses += 1

    if valid == 0:
        return TeamForm()

    return TeamForm(
        goals_scored=scored / valid,
        goals_conceded=conceded / valid,
        wins=wins,
        draws=draws,
        losses=losses,
        match_count=valid,
    )


def analyze_h2h(
    matches: Optional[Sequence[MatchResult]],
    home_team_id: Optional[str],
    away_team_id: Optional[str],
) -> HeadToHeadSummary:
    """
    Summarise prior meetings from the current home side's perspective.

    A meeting where today's home team played away is mirrored, so
    ``avg_home_goals`` always means "goals by the team that is home today".
    ``away_team_id`` is accepted for symmetry; any side that is not today's
    home team is treated as today's away team.
    """
    if not matches:
        return HeadToHeadSummary()

    home_key = _as_id(home_team_id)
    home_total = away_total = 0
    home_wins = draws = away_wins = 0
    valid = 0

    for match in matches:
        goals = match.goals
        if goals is None:
            logger.debug("Skipping unparseable H2H score %r", match.score)
            continue

        valid += 1
        if match.home_id == home_key:
            home_goals, away_goals = goals
        else:
            away_goals, home_goals = goals

        home_total += home_goals
        away_total += away_goals

        if home_goals > away_goals:
            home_wins += 1
        elif home_goals == away_goals:
            draws += 1
        else:
            away_wins += 1

    if valid == 0:
        return HeadToHeadSummary()

    return HeadToHeadSummary(
        home_wins=home_wins,
        draws=draws,
        away_wins=away_wins,
        avg_home_goals=home_total / valid,
        avg_away_goals=away_total / valid,
        match_count=valid,
    )
