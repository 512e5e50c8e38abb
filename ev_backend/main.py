"""
FastAPI application for Fixture EV.
League and fixture browsing, bookmaker odds, and the statistical EV model.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from ev_backend.core.model_config import ModelConfig
from ev_backend.schemas import (
    HealthResponse,
    LeaguesResponse,
    MatchDetailsResponse,
    MatchModelResponse,
    MatchOddsResponse,
    MatchStatisticsResponse,
    MatchSummaryResponse,
    UpcomingMatchesResponse,
)
from ev_backend.services.betsapi import (
    BetsAPIClient,
    BetsAPIError,
    MatchNotFoundError,
    get_betsapi_client,
    serialize_bookmaker,
)
from ev_backend.services.ev_calculator import calculate_match_ev
from ev_backend.services.leagues import get_top_leagues
from ev_backend.services.statistical_model import calculate_probabilities

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"

app = FastAPI(
    title="Fixture EV",
    description="Football fair odds and EV opportunities from a statistical Poisson model",
    version="1.0",
)

# CORS (set CORS_ORIGINS to a comma-separated list in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# DEPENDENCIES
# ============================================================================

_model_config: Optional[ModelConfig] = None


def get_client() -> BetsAPIClient:
    return get_betsapi_client()


def get_model_config() -> ModelConfig:
    global _model_config
    if _model_config is None:
        _model_config = ModelConfig.from_env()
        logger.info("Loaded %r", _model_config)
    return _model_config


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    start = time.perf_counter()
    return HealthResponse(
        ok=True,
        timestamp=_utc_now_iso(),
        latency_ms=round((time.perf_counter() - start) * 1000, 3),
        environment=os.getenv("ENVIRONMENT", "development"),
        betsapi_configured=bool(os.getenv("BETSAPI_KEY")),
    )


@app.get("/api/leagues/top20", response_model=LeaguesResponse)
async def top_leagues():
    """The tracked top-20 football leagues."""
    leagues = get_top_leagues()
    return {"leagues": leagues, "count": len(leagues)}


@app.get("/api/matches/upcoming", response_model=UpcomingMatchesResponse)
def upcoming_matches(
    league_id: str = Query(..., min_length=1),
    limit: int = Query(default=10, ge=1, le=100),
    client: BetsAPIClient = Depends(get_client),
):
    """Upcoming fixtures for a league."""
    matches = client.get_upcoming_matches(league_id, limit)
    return {"matches": matches, "count": len(matches), "league_id": league_id}


@app.get("/api/match/{match_id}/summary", response_model=MatchSummaryResponse)
def match_summary(match_id: str, client: BetsAPIClient = Depends(get_client)):
    return client.get_match_summary(match_id)


@app.get("/api/match/{match_id}/statistics", response_model=MatchStatisticsResponse)
def match_statistics(match_id: str, client: BetsAPIClient = Depends(get_client)):
    """Shots, corners, possession, cards and xG as BetsAPI reports them."""
    return client.get_match_statistics(match_id)


@app.get("/api/match/{match_id}/details", response_model=MatchDetailsResponse)
def match_details(match_id: str, client: BetsAPIClient = Depends(get_client)):
    return client.get_match_details(match_id)


@app.get("/api/match/{match_id}/odds", response_model=MatchOddsResponse)
def match_odds(match_id: str, client: BetsAPIClient = Depends(get_client)):
    """Every bookmaker's 1X2, O/U 2.5 and BTTS prices for a fixture."""
    quotes = client.get_match_odds(match_id)
    return {"bookmakers": [serialize_bookmaker(q) for q in quotes]}


@app.get("/api/match/{match_id}/model", response_model=MatchModelResponse)
def match_model(
    match_id: str,
    client: BetsAPIClient = Depends(get_client),
    config: ModelConfig = Depends(get_model_config),
):
    """
    Fair odds, probabilities and EV opportunities from the statistical model.

    Missing history or odds are not errors: the affected markets come back
    null and the opportunity list is empty.
    """
    summary = client.get_match_summary(match_id)
    logger.info(
        "Model request %s: %s (%s) vs %s (%s)",
        match_id, summary["home_team"], summary["home_id"],
        summary["away_team"], summary["away_id"],
    )

    history = client.get_event_history(match_id)
    probabilities = calculate_probabilities(
        history, summary["home_id"], summary["away_id"], config
    )
    bookmakers = client.get_match_odds(match_id)
    markets = calculate_match_ev(bookmakers, probabilities, config.min_ev_threshold)

    return {
        "match_id": match_id,
        "timestamp": _utc_now_iso(),
        "min_ev_threshold": config.min_ev_threshold,
        "model_type": "statistical",
        "markets": markets,
        "match_info": {
            "home_team": summary["home_team"],
            "away_team": summary["away_team"],
        },
    }


# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.exception_handler(MatchNotFoundError)
async def match_not_found_handler(request, exc):
    logger.warning("Match not found: %s", exc)
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(BetsAPIError)
async def betsapi_error_handler(request, exc):
    logger.error("BetsAPI failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
