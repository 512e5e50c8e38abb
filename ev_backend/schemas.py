"""
Pydantic response schemas for the Fixture EV API.

The model output (``markets``) is a nested dict built by the EV engine and
is passed through as-is; the envelopes around it are validated here so the
OpenAPI docs describe every endpoint.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    ok: bool = True
    timestamp: str
    latency_ms: float = Field(..., ge=0)
    environment: str
    betsapi_configured: bool


# ---------------------------------------------------------------------------
# Leagues & fixtures
# ---------------------------------------------------------------------------

class LeagueSchema(BaseModel):
    league_id: str
    name: str
    country: str
    logo: str
    season_id: Optional[str] = None


class LeaguesResponse(BaseModel):
    leagues: List[LeagueSchema]
    count: int


class UpcomingMatch(BaseModel):
    match_id: Optional[str] = None
    home_team: str
    away_team: str
    start_time: Optional[str] = None
    start_time_formatted: Optional[str] = None
    status: Literal["scheduled", "live", "finished"]
    home_logo: Optional[str] = None
    away_logo: Optional[str] = None
    league_name: str = ""


class UpcomingMatchesResponse(BaseModel):
    matches: List[UpcomingMatch]
    count: int
    league_id: str


class LeagueRef(BaseModel):
    league_id: Optional[str] = None
    name: Optional[str] = None


class MatchSummaryResponse(BaseModel):
    """Compact fixture view from ``/api/match/{id}/summary``."""

    match_id: Optional[str] = None
    home_team: str
    away_team: str
    home_id: Optional[str] = None
    away_id: Optional[str] = None
    start_time: Optional[str] = None
    status: Literal["scheduled", "live", "finished"]
    score: str = "0-0"
    home_logo: Optional[str] = None
    away_logo: Optional[str] = None
    league: LeagueRef


# ---------------------------------------------------------------------------
# Odds & model
# ---------------------------------------------------------------------------

class MarketQuote(BaseModel):
    market: str
    market_name: str
    odds: Dict[str, Optional[float]]
    updated_at: Optional[str] = None
    overround: Optional[float] = None
    handicap: Optional[str] = None


class BookmakerOdds(BaseModel):
    name: str
    markets: Dict[str, MarketQuote]


class MatchOddsResponse(BaseModel):
    bookmakers: List[BookmakerOdds]


class MatchInfo(BaseModel):
    home_team: str
    away_team: str


class MatchModelResponse(BaseModel):
    """
    Fair odds, probabilities and EV opportunities for one fixture.

    ``markets`` holds one entry per market ("1X2", "O/U 2.5", "BTTS"; null
    when unavailable) plus ``all_opportunities``, ``model``, ``metadata``
    and ``stats_predictions``.
    """

    match_id: str
    timestamp: str
    min_ev_threshold: float
    model_type: Literal["statistical"] = "statistical"
    markets: Dict[str, Any]
    match_info: MatchInfo


# ---------------------------------------------------------------------------
# Live statistics & details
# ---------------------------------------------------------------------------

class StatPair(BaseModel):
    home: float = 0
    away: float = 0


class MatchExtra(BaseModel):
    stadium: Optional[str] = None
    referee: Optional[str] = None
    round: Optional[str] = None


class MatchStatisticsResponse(BaseModel):
    """In-play or final statistics; ``match_stats`` is null before kick-off."""

    match_id: str
    status: Optional[str] = None
    score: str = "0-0"
    match_stats: Optional[Dict[str, StatPair]] = None
    extra: Optional[MatchExtra] = None


class RecentForm(BaseModel):
    home: List[Any] = Field(default_factory=list)
    away: List[Any] = Field(default_factory=list)


class MatchDetailsResponse(BaseModel):
    lineups: Optional[Any] = None
    stats: Optional[Dict[str, Any]] = None
    form: RecentForm
