"""
BetsAPI integration for football fixtures, odds and match history.
https://betsapi.com/docs/

Every request carries the ``token`` query parameter and a 10 s timeout.
Responses are cached per endpoint + parameters with an endpoint-specific
TTL:

    /v3/events/upcoming      300 s   fixtures per league
    /v1/event/view           180 s   single fixture summary
    /v2/event/odds/summary    60 s   closing ("end") prices per bookmaker
    /v1/event/history        600 s   H2H + each side's recent results
    /v2/event/view           300 s   live statistics, lineups and form

Odds summary codes mapped onto the model's markets:

    1_1  → "1X2"      (home_od / draw_od / away_od)
    1_3  → "O/U 2.5"  (over_od / under_od; only when the main line is 2.5)
    1_8  → "BTTS"     (home_od = yes, draw_od = no)

The cache is an explicit collaborator with an injectable clock, so expiry is
deterministic under test.  It is shared by every request thread, so all
access goes through a lock.
"""

import json
import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from cachetools import TLRUCache

from ev_backend.core.odds_math import is_valid_price, overround
from ev_backend.services.ev_calculator import BookmakerQuote
from ev_backend.services.form import HistoricalDataBundle, MatchResult
from ev_backend.services.statistical_model import MARKET_1X2, MARKET_BTTS, MARKET_OU25

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.betsapi.com"
REQUEST_TIMEOUT = 10
FOOTBALL_SPORT_ID = 1

TEAM_LOGO_URL = "https://assets.betsapi.com/v2/images/teams/{image_id}.png"

# Cache TTLs (seconds) per endpoint.
UPCOMING_TTL = 300
SUMMARY_TTL = 180
ODDS_TTL = 60
HISTORY_TTL = 600
DETAILS_TTL = 300
DEFAULT_TTL = 300

CACHE_MAXSIZE = 1024

# BetsAPI odds code → (market key, display name, {outcome: BetsAPI field}).
ODDS_MARKETS = {
    "1_1": (MARKET_1X2, "Match Result", {"home": "home_od", "draw": "draw_od", "away": "away_od"}),
    "1_3": (MARKET_OU25, "Over/Under 2.5 Goals", {"over": "over_od", "under": "under_od"}),
    "1_8": (MARKET_BTTS, "Both Teams To Score", {"yes": "home_od", "no": "draw_od"}),
}
# Goal line the model prices; other 1_3 lines are not comparable.
OU_MAIN_LINE = 2.5

MARKET_NAMES = {market: name for market, name, _ in ODDS_MARKETS.values()}

EVENT_STATUS = {"0": "scheduled", "1": "live"}

# /v2/event/view stat name → (BetsAPI field, numeric type).
MATCH_STAT_FIELDS = {
    "shots": ("goalattempts", int),
    "shots_on_target": ("on_target", int),
    "shots_off_target": ("off_target", int),
    "corners": ("corners", int),
    "possession": ("possession_rt", int),
    "attacks": ("attacks", int),
    "dangerous_attacks": ("dangerous_attacks", int),
    "fouls": ("fouls", int),
    "yellow_cards": ("yellowcards", int),
    "red_cards": ("redcards", int),
    "offsides": ("offsides", int),
    "saves": ("saves", int),
    "xg": ("xg", float),
}


class BetsAPIError(RuntimeError):
    """Transport failure or an unsuccessful BetsAPI payload."""


class MatchNotFoundError(BetsAPIError):
    """The requested event does not exist."""


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class ResponseCache:
    """
    Per-entry TTL cache for decoded API payloads.

    Entries expire once ``timer()`` reaches insertion time + TTL.  ``timer``
    defaults to :func:`time.monotonic`; tests pass a fake clock.  TLRUCache
    mutates its expiry order on reads too, so every call holds the lock.
    """

    def __init__(self, maxsize: int = CACHE_MAXSIZE, timer: Callable[[], float] = time.monotonic):
        self._cache = TLRUCache(
            maxsize=maxsize,
            ttu=lambda _key, value, now: now + value[0],
            timer=timer,
        )
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
        return None if entry is None else entry[1]

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._cache[key] = (ttl, value)

    def clear(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def _to_price(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _epoch_to_iso(value) -> Optional[str]:
    try:
        ts = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _as_str(value) -> Optional[str]:
    return None if value is None else str(value)


def _goal_line(handicap) -> Optional[float]:
    """
    Goal line of a ``1_3`` entry.  ``"2.5"`` is a single line; a split
    handicap such as ``"2.5,3.0"`` settles half on each, i.e. line 2.75.
    """
    try:
        parts = [float(p) for p in str(handicap).split(",")]
    except (TypeError, ValueError):
        return None
    return sum(parts) / len(parts)


def _team_logo(team: Dict) -> Optional[str]:
    image_id = team.get("image_id")
    return TEAM_LOGO_URL.format(image_id=image_id) if image_id else None


def parse_odds_summary(results: Optional[Dict]) -> List[BookmakerQuote]:
    """
    Convert ``/v2/event/odds/summary`` results into bookmaker quotes.

    ``results`` is keyed by bookmaker name.  Only the closing (``end``)
    snapshot is used.  Bookmakers without any recognised market are dropped.
    Unparseable prices become None and are skipped later by the EV engine.
    A goals over/under entry is kept only when its line is 2.5, since the
    model has no estimate for any other line.
    """
    quotes: List[BookmakerQuote] = []
    if not results:
        return quotes

    for name, data in results.items():
        odds = ((data or {}).get("odds") or {}).get("end")
        if not odds:
            continue

        quote = BookmakerQuote(name=name)
        for code, (market, _, fields) in ODDS_MARKETS.items():
            entry = odds.get(code)
            if not entry:
                continue
            if market == MARKET_OU25:
                line = _goal_line(entry.get("handicap"))
                if line != OU_MAIN_LINE:
                    logger.debug("%s: skipping goals line %s", name, entry.get("handicap"))
                    continue
                quote.handicaps[market] = str(entry["handicap"]).strip()
            quote.markets[market] = {
                outcome: _to_price(entry.get(field_name))
                for outcome, field_name in fields.items()
            }
            quote.updated_at[market] = _epoch_to_iso(entry.get("add_time"))

        if quote.markets:
            quotes.append(quote)

    return quotes


def serialize_bookmaker(quote: BookmakerQuote) -> Dict:
    """JSON shape of a bookmaker's quotes; overround is None for incomplete markets."""
    markets = {}
    for market, prices in quote.markets.items():
        entry = {
            "market": market,
            "market_name": MARKET_NAMES.get(market, market),
            "odds": prices,
            "updated_at": quote.updated_at.get(market),
            "overround": (
                round(overround(prices.values()), 4)
                if all(is_valid_price(p) for p in prices.values())
                else None
            ),
        }
        if market in quote.handicaps:
            entry["handicap"] = quote.handicaps[market]
        markets[market] = entry
    return {"name": quote.name, "markets": markets}


def parse_event_history(results: Optional[Dict]) -> Optional[HistoricalDataBundle]:
    """Convert ``/v1/event/history`` results (``h2h``, ``home``, ``away``)."""
    if not results:
        return None
    return HistoricalDataBundle(
        h2h=[MatchResult.from_event(e) for e in results.get("h2h") or []],
        home=[MatchResult.from_event(e) for e in results.get("home") or []],
        away=[MatchResult.from_event(e) for e in results.get("away") or []],
    )


def parse_upcoming_event(event: Dict) -> Dict:
    home = event.get("home") or {}
    away = event.get("away") or {}
    return {
        "match_id": _as_str(event.get("id")),
        "home_team": home.get("name") or "Home Team",
        "away_team": away.get("name") or "Away Team",
        "start_time": _as_str(event.get("time")),
        "start_time_formatted": _epoch_to_iso(event.get("time")),
        "status": EVENT_STATUS.get(str(event.get("time_status")), "finished"),
        "home_logo": _team_logo(home),
        "away_logo": _team_logo(away),
        "league_name": (event.get("league") or {}).get("name") or "",
    }


def parse_event_summary(event: Dict) -> Dict:
    home = event.get("home") or {}
    away = event.get("away") or {}
    league = event.get("league") or {}

    if (event.get("timer") or {}).get("tm"):
        status = "live"
    elif str(event.get("time_status")) == "3":
        status = "finished"
    else:
        status = "scheduled"

    return {
        "match_id": _as_str(event.get("id")),
        "home_team": home.get("name") or "Home Team",
        "away_team": away.get("name") or "Away Team",
        "home_id": _as_str(home.get("id")),
        "away_id": _as_str(away.get("id")),
        "start_time": _as_str(event.get("time")),
        "status": status,
        "score": event.get("ss") or "0-0",
        "home_logo": _team_logo(home),
        "away_logo": _team_logo(away),
        "league": {"league_id": _as_str(league.get("id")), "name": league.get("name")},
    }


def _stat_value(values, index: int, cast: Callable):
    try:
        return cast(float(values[index]))
    except (IndexError, TypeError, ValueError):
        return cast(0)


def parse_match_statistics(match_id: str, event: Dict) -> Dict:
    """
    Live/final statistics from a ``/v2/event/view`` event.

    BetsAPI reports each stat as a ``[home, away]`` pair of strings; missing
    or unparseable sides read as 0.  ``match_stats`` is None before kick-off,
    when BetsAPI has no ``stats`` block, and ``extra`` is None without an
    ``extra`` block.
    """
    stats = event.get("stats")
    match_stats = None
    if stats:
        match_stats = {}
        for name, (field_name, cast) in MATCH_STAT_FIELDS.items():
            values = stats.get(field_name) or []
            match_stats[name] = {
                "home": _stat_value(values, 0, cast),
                "away": _stat_value(values, 1, cast),
            }

    extra = event.get("extra")
    extra_info = None
    if extra:
        extra_info = {
            "stadium": (extra.get("stadium_data") or {}).get("name"),
            "referee": (extra.get("referee") or {}).get("name"),
            "round": _as_str(extra.get("round")) or None,
        }

    return {
        "match_id": match_id,
        "status": _as_str(event.get("time_status")),
        "score": event.get("ss") or "0-0",
        "match_stats": match_stats,
        "extra": extra_info,
    }


def parse_match_details(event: Optional[Dict]) -> Dict:
    """Lineups, raw stats and each side's ``last_form`` from ``/v2/event/view``."""
    event = event or {}
    return {
        "lineups": event.get("lineups") or None,
        "stats": event.get("stats") or None,
        "form": {
            "home": (event.get("home") or {}).get("last_form") or [],
            "away": (event.get("away") or {}).get("last_form") or [],
        },
    }


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class BetsAPIClient:
    """Client for the BetsAPI football endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or os.getenv("BETSAPI_KEY")
        self.base_url = (base_url or os.getenv("BETSAPI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.cache = cache if cache is not None else ResponseCache()
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _request(self, endpoint: str, params: Optional[Dict] = None, ttl: float = DEFAULT_TTL) -> Dict:
        """
        GET ``endpoint`` with caching.

        Raises:
            BetsAPIError: On transport errors, non-JSON bodies, or a payload
                flagged ``success: false``.
        """
        params = params or {}
        cache_key = f"{endpoint}_{json.dumps(params, sort_keys=True)}"

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Cache hit: %s", cache_key)
            return cached

        if not self.api_key:
            raise BetsAPIError("BETSAPI_KEY not set in environment")

        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(
                url,
                params={"token": self.api_key, **params},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error("BetsAPI error (%s): %s", endpoint, e)
            raise BetsAPIError(f"BetsAPI request failed: {endpoint}") from e
        except ValueError as e:
            logger.error("BetsAPI returned non-JSON body (%s): %s", endpoint, e)
            raise BetsAPIError(f"Invalid response from {endpoint}") from e

        if not isinstance(data, dict) or data.get("success") in (False, 0):
            error = data.get("error") if isinstance(data, dict) else None
            logger.error("BetsAPI unsuccessful response (%s): %s", endpoint, error)
            raise BetsAPIError(error or "API request failed")

        self.cache.set(cache_key, data, ttl)
        logger.info("BetsAPI %s fetched (cached %ss)", endpoint, ttl)
        return data

    def get_upcoming_matches(self, league_id: str, limit: int = 10) -> List[Dict]:
        """Upcoming fixtures for a league, at most ``limit``."""
        data = self._request(
            "/v3/events/upcoming",
            {"sport_id": FOOTBALL_SPORT_ID, "league_id": league_id},
            UPCOMING_TTL,
        )
        results = data.get("results") or []
        matches = [parse_upcoming_event(e) for e in results[:limit]]
        logger.info("League %s: %d upcoming matches (%d available)", league_id, len(matches), len(results))
        return matches

    def get_match_summary(self, match_id: str) -> Dict:
        """
        Compact fixture summary including both team ids.

        Raises:
            MatchNotFoundError: If BetsAPI has no such event.
        """
        data = self._request("/v1/event/view", {"event_id": match_id}, SUMMARY_TTL)
        results = data.get("results") or []
        if not results:
            raise MatchNotFoundError(f"Match not found: {match_id}")
        return parse_event_summary(results[0])

    def get_match_odds(self, match_id: str) -> List[BookmakerQuote]:
        data = self._request("/v2/event/odds/summary", {"event_id": match_id}, ODDS_TTL)
        quotes = parse_odds_summary(data.get("results"))
        logger.info("Match %s: %d bookmakers with odds", match_id, len(quotes))
        return quotes

    def get_event_history(self, match_id: str) -> Optional[HistoricalDataBundle]:
        """H2H and recent results for both sides; None when BetsAPI has none."""
        data = self._request("/v1/event/history", {"event_id": match_id}, HISTORY_TTL)
        return parse_event_history(data.get("results"))

    def _event_view(self, match_id: str) -> Optional[Dict]:
        data = self._request("/v2/event/view", {"event_id": match_id}, DETAILS_TTL)
        results = data.get("results") or []
        return results[0] if results else None

    def get_match_statistics(self, match_id: str) -> Dict:
        """
        Shots, corners, possession, cards, xG and venue info for a fixture.

        Raises:
            MatchNotFoundError: If BetsAPI has no such event.
        """
        event = self._event_view(match_id)
        if event is None:
            raise MatchNotFoundError(f"Match not found: {match_id}")
        statistics = parse_match_statistics(match_id, event)
        logger.info(
            "Match %s statistics: %s",
            match_id, "available" if statistics["match_stats"] else "not yet available",
        )
        return statistics

    def get_match_details(self, match_id: str) -> Dict:
        """Lineups, raw stats and recent form; empty when BetsAPI has no event."""
        return parse_match_details(self._event_view(match_id))

    def clear_cache(self, key: Optional[str] = None) -> None:
        self.cache.clear(key)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_client: Optional[BetsAPIClient] = None
_client_lock = threading.Lock()


def get_betsapi_client() -> BetsAPIClient:
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = BetsAPIClient()
    return _client
