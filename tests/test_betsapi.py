"""
Tests for the BetsAPI client, its parsers and the response cache.
Run with: pytest tests/test_betsapi.py -v
"""

import threading

import pytest
import requests
from unittest.mock import MagicMock

from ev_backend.services import betsapi
from ev_backend.services.betsapi import (
    BetsAPIClient,
    BetsAPIError,
    MatchNotFoundError,
    ResponseCache,
    parse_event_history,
    parse_event_summary,
    parse_match_details,
    parse_match_statistics,
    parse_odds_summary,
    parse_upcoming_event,
    serialize_bookmaker,
)
from ev_backend.services.ev_calculator import calculate_match_ev


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeClock:
    """Settable clock for cache expiry."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def _client(payload, clock=None):
    session = MagicMock()
    session.get.return_value.json.return_value = payload
    cache = ResponseCache(timer=clock or FakeClock())
    client = BetsAPIClient(
        api_key="test-key",
        base_url="https://api.example.com",
        cache=cache,
        session=session,
    )
    return client, session


ODDS_RESULTS = {
    "Bet365": {
        "odds": {
            "end": {
                "1_1": {"home_od": "2.10", "draw_od": "3.40", "away_od": "3.60", "add_time": "1700000000"},
                "1_3": {"over_od": "1.90", "under_od": "1.95", "handicap": "2.5", "add_time": "1700000000"},
                "1_8": {"home_od": "1.80", "draw_od": "2.00", "add_time": "1700000000"},
            }
        }
    },
    "CornersOnly": {"odds": {"end": {"1_6": {"over_od": "1.85"}}}},
    "NoEnd": {"odds": {"start": {"1_1": {"home_od": "2.0"}}}},
}


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class TestResponseCache:
    """Per-entry TTL cache."""

    def test_hit_within_ttl(self):
        """Entries are served until their TTL elapses."""
        clock = FakeClock()
        cache = ResponseCache(timer=clock)
        cache.set("k", {"a": 1}, ttl=60)
        clock.now = 59
        assert cache.get("k") == {"a": 1}

    def test_expires_after_ttl(self):
        """Entries vanish once their TTL elapses."""
        clock = FakeClock()
        cache = ResponseCache(timer=clock)
        cache.set("k", {"a": 1}, ttl=60)
        clock.now = 61
        assert cache.get("k") is None

    def test_per_entry_ttl(self):
        """Each entry keeps its own TTL."""
        clock = FakeClock()
        cache = ResponseCache(timer=clock)
        cache.set("short", 1, ttl=60)
        cache.set("long", 2, ttl=600)
        clock.now = 300
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_clear(self):
        """Clear one key or everything."""
        cache = ResponseCache(timer=FakeClock())
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)
        cache.clear("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.clear()
        assert len(cache) == 0

    def test_concurrent_access(self):
        """Interleaved reads, writes and expiry from many threads stay consistent."""
        clock = FakeClock()
        cache = ResponseCache(maxsize=64, timer=clock)
        errors = []

        def worker(n):
            try:
                for i in range(500):
                    clock.now = i
                    cache.set(f"{n}-{i % 100}", i, ttl=5)
                    cache.get(f"{n}-{(i * 7) % 100}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) <= 64


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

class TestParseOdds:
    """Odds summary → bookmaker quotes."""

    def test_maps_codes_to_markets(self):
        """BetsAPI codes map onto the model's markets."""
        quotes = parse_odds_summary(ODDS_RESULTS)
        assert [q.name for q in quotes] == ["Bet365"]
        markets = quotes[0].markets
        assert markets["1X2"] == {"home": 2.1, "draw": 3.4, "away": 3.6}
        assert markets["O/U 2.5"] == {"over": 1.9, "under": 1.95}
        assert markets["BTTS"] == {"yes": 1.8, "no": 2.0}

    def test_handicap_and_timestamp(self):
        """The goals line and update time are kept."""
        quote = parse_odds_summary(ODDS_RESULTS)[0]
        assert quote.handicaps["O/U 2.5"] == "2.5"
        assert quote.updated_at["1X2"] == "2023-11-14T22:13:20Z"

    def test_unparseable_price_is_none(self):
        """Unparseable prices become None."""
        quotes = parse_odds_summary({"X": {"odds": {"end": {"1_8": {"home_od": "-", "draw_od": "1.9"}}}}})
        assert quotes[0].markets["BTTS"] == {"yes": None, "no": 1.9}
        assert quotes[0].updated_at["BTTS"] is None

    def test_empty_results(self):
        """No results means no quotes."""
        assert parse_odds_summary(None) == []
        assert parse_odds_summary({}) == []

    def test_serialize_bookmaker(self):
        """Serialised quotes carry names and overround."""
        data = serialize_bookmaker(parse_odds_summary(ODDS_RESULTS)[0])
        assert data["name"] == "Bet365"
        one_x_two = data["markets"]["1X2"]
        assert one_x_two["market_name"] == "Match Result"
        assert one_x_two["overround"] == pytest.approx(0.0481, abs=1e-4)
        assert data["markets"]["O/U 2.5"]["handicap"] == "2.5"
        assert "handicap" not in one_x_two

    def test_serialize_incomplete_market_has_no_overround(self):
        """Overround needs every price in the market."""
        quotes = parse_odds_summary({"X": {"odds": {"end": {"1_8": {"home_od": "-", "draw_od": "1.9"}}}}})
        assert serialize_bookmaker(quotes[0])["markets"]["BTTS"]["overround"] is None

    def test_other_goal_lines_dropped(self):
        """Only the 2.5 goals line maps onto the model's O/U market."""
        results = {
            "Line35": {"odds": {"end": {
                "1_1": {"home_od": "2.0", "draw_od": "3.4", "away_od": "4.0"},
                "1_3": {"handicap": "3.5", "over_od": "3.10", "under_od": "1.35"},
            }}},
            "Split": {"odds": {"end": {"1_3": {"handicap": "2.5,3.0", "over_od": "2.0", "under_od": "1.8"}}}},
            "NoLine": {"odds": {"end": {"1_3": {"over_od": "2.0", "under_od": "1.8"}}}},
        }
        quotes = parse_odds_summary(results)
        assert [q.name for q in quotes] == ["Line35"]
        assert "O/U 2.5" not in quotes[0].markets
        assert "O/U 2.5" not in quotes[0].handicaps

    def test_other_goal_lines_never_scored(self):
        """A 3.5-line quote yields no O/U 2.5 opportunity."""
        quotes = parse_odds_summary({
            "Line35": {"odds": {"end": {
                "1_1": {"home_od": "1.5", "draw_od": "4.0", "away_od": "6.0"},
                "1_3": {"handicap": "3.5", "over_od": "3.10", "under_od": "1.35"},
            }}},
        })
        model = {
            "O/U 2.5": {
                "probabilities": {"over": 0.5, "under": 0.5},
                "fair_odds": {"over": 2.0, "under": 2.0},
            },
        }
        result = calculate_match_ev(quotes, model)
        assert result["O/U 2.5"] is None
        assert result["all_opportunities"] == []


class TestParseHistory:
    """Event history → HistoricalDataBundle."""

    def test_none(self):
        """Missing history parses to None."""
        assert parse_event_history(None) is None
        assert parse_event_history({}) is None

    def test_bundle(self):
        """Each list is converted to match results."""
        bundle = parse_event_history({
            "h2h": [{"home": {"id": "1"}, "away": {"id": "2"}, "ss": "2-1"}],
            "home": [{"home": {"id": 1}, "away": {"id": 3}, "ss": "0-0"}],
        })
        assert len(bundle.h2h) == 1
        assert bundle.home[0].home_id == "1"
        assert bundle.away == []


class TestParseStatistics:
    """Live statistics and details from /v2/event/view."""

    EVENT = {
        "time_status": "1",
        "ss": "1-0",
        "stats": {
            "goalattempts": ["12", "7"],
            "on_target": ["5", "2"],
            "corners": ["6", "3"],
            "possession_rt": ["58", "42"],
            "yellowcards": ["1"],
            "xg": ["1.34", "0.61"],
        },
        "extra": {
            "stadium_data": {"name": "Emirates Stadium"},
            "referee": {"name": "M. Oliver"},
            "round": "12",
        },
        "home": {"last_form": ["W", "D", "W"]},
        "lineups": {"home": {"startinglineup": []}},
    }

    def test_stat_pairs(self):
        """Each stat becomes a home/away pair of numbers."""
        stats = parse_match_statistics("9", self.EVENT)["match_stats"]
        assert stats["shots"] == {"home": 12, "away": 7}
        assert stats["possession"] == {"home": 58, "away": 42}
        assert stats["xg"] == {"home": pytest.approx(1.34), "away": pytest.approx(0.61)}

    def test_missing_sides_read_as_zero(self):
        """Absent stats and missing away values default to 0."""
        stats = parse_match_statistics("9", self.EVENT)["match_stats"]
        assert stats["yellow_cards"] == {"home": 1, "away": 0}
        assert stats["saves"] == {"home": 0, "away": 0}
        assert stats["xg"]["away"] == pytest.approx(0.61)

    def test_envelope_and_extra(self):
        """Status, score and venue info are carried alongside the stats."""
        statistics = parse_match_statistics("9", self.EVENT)
        assert statistics["match_id"] == "9"
        assert statistics["status"] == "1"
        assert statistics["score"] == "1-0"
        assert statistics["extra"] == {
            "stadium": "Emirates Stadium",
            "referee": "M. Oliver",
            "round": "12",
        }

    def test_pre_match_has_no_stats(self):
        """Before kick-off there are no stats and no extra block."""
        statistics = parse_match_statistics("9", {"time_status": "0"})
        assert statistics["match_stats"] is None
        assert statistics["extra"] is None
        assert statistics["score"] == "0-0"

    def test_details(self):
        """Details expose lineups, raw stats and each side's recent form."""
        details = parse_match_details(self.EVENT)
        assert details["lineups"] == {"home": {"startinglineup": []}}
        assert details["stats"]["corners"] == ["6", "3"]
        assert details["form"] == {"home": ["W", "D", "W"], "away": []}

    def test_details_without_event(self):
        """A missing event gives the empty details shape."""
        assert parse_match_details(None) == {
            "lineups": None,
            "stats": None,
            "form": {"home": [], "away": []},
        }


class TestParseEvents:
    """Upcoming fixtures and event summaries."""

    def test_upcoming_event(self):
        """An upcoming event is flattened for the API."""
        event = {
            "id": 555,
            "time": "1700000000",
            "time_status": "0",
            "home": {"name": "Arsenal", "image_id": 42},
            "away": {"name": "Chelsea"},
            "league": {"name": "England Premier League"},
        }
        match = parse_upcoming_event(event)
        assert match["match_id"] == "555"
        assert match["status"] == "scheduled"
        assert match["start_time_formatted"] == "2023-11-14T22:13:20Z"
        assert match["home_logo"] == "https://assets.betsapi.com/v2/images/teams/42.png"
        assert match["away_logo"] is None
        assert match["league_name"] == "England Premier League"

    def test_upcoming_status(self):
        """time_status maps to a readable status."""
        assert parse_upcoming_event({"time_status": "1"})["status"] == "live"
        assert parse_upcoming_event({"time_status": "3"})["status"] == "finished"
        assert parse_upcoming_event({})["home_team"] == "Home Team"

    def test_summary(self):
        """The summary exposes ids as strings."""
        summary = parse_event_summary({
            "id": "9",
            "home": {"id": 10, "name": "A"},
            "away": {"id": 20, "name": "B"},
            "league": {"id": 94, "name": "EPL"},
            "time_status": "0",
        })
        assert summary["home_id"] == "10"
        assert summary["away_id"] == "20"
        assert summary["score"] == "0-0"
        assert summary["status"] == "scheduled"
        assert summary["league"] == {"league_id": "94", "name": "EPL"}

    def test_summary_status(self):
        """A running timer means live; status 3 means finished."""
        assert parse_event_summary({"timer": {"tm": 37}})["status"] == "live"
        assert parse_event_summary({"time_status": "3", "ss": "2-2"})["status"] == "finished"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class TestClient:
    """HTTP behaviour, caching and error handling."""

    def test_request_carries_token_and_timeout(self):
        """Every request sends the token and a 10 s timeout."""
        client, session = _client({"success": 1, "results": []})
        client.get_upcoming_matches("94")
        args, kwargs = session.get.call_args
        assert args[0] == "https://api.example.com/v3/events/upcoming"
        assert kwargs["params"]["token"] == "test-key"
        assert kwargs["params"]["league_id"] == "94"
        assert kwargs["params"]["sport_id"] == 1
        assert kwargs["timeout"] == 10

    def test_cached_within_ttl(self):
        """Fixtures are cached for five minutes."""
        clock = FakeClock()
        client, session = _client({"success": 1, "results": []}, clock)
        client.get_upcoming_matches("94")
        clock.now = 299
        client.get_upcoming_matches("94")
        assert session.get.call_count == 1
        clock.now = 301
        client.get_upcoming_matches("94")
        assert session.get.call_count == 2

    def test_clear_cache_forces_refetch(self):
        """Clearing the cache forces a new request."""
        client, session = _client({"success": 1, "results": []})
        client.get_upcoming_matches("94")
        client.clear_cache()
        client.get_upcoming_matches("94")
        assert session.get.call_count == 2

    def test_upcoming_limit(self):
        """The fixture list is cut to the limit."""
        results = [{"id": str(i), "time_status": "0"} for i in range(15)]
        client, _ = _client({"success": 1, "results": results})
        assert len(client.get_upcoming_matches("94", limit=5)) == 5

    def test_unsuccessful_payload_raises(self):
        """success: 0 raises with the API's error."""
        client, _ = _client({"success": 0, "error": "TOKEN_INVALID"})
        with pytest.raises(BetsAPIError, match="TOKEN_INVALID"):
            client.get_match_odds("1")

    def test_failed_payload_not_cached(self):
        """Failed payloads are fetched again."""
        client, session = _client({"success": False})
        for _ in range(2):
            with pytest.raises(BetsAPIError):
                client.get_match_odds("1")
        assert session.get.call_count == 2

    def test_transport_error_raises(self):
        """Connection errors become BetsAPIError."""
        client, session = _client({})
        session.get.side_effect = requests.exceptions.ConnectionError("boom")
        with pytest.raises(BetsAPIError):
            client.get_match_odds("1")

    def test_missing_key_raises(self, monkeypatch):
        """No key means no request."""
        monkeypatch.delenv("BETSAPI_KEY", raising=False)
        client = BetsAPIClient(cache=ResponseCache(timer=FakeClock()), session=MagicMock())
        assert not client.configured
        with pytest.raises(BetsAPIError):
            client.get_match_odds("1")

    def test_summary_not_found(self):
        """An empty result raises MatchNotFoundError."""
        client, _ = _client({"success": 1, "results": []})
        with pytest.raises(MatchNotFoundError):
            client.get_match_summary("404")

    def test_match_odds(self):
        """Odds are parsed from the payload."""
        client, _ = _client({"success": 1, "results": ODDS_RESULTS})
        quotes = client.get_match_odds("1")
        assert len(quotes) == 1

    def test_event_history(self):
        """History is requested for the event id."""
        payload = {"success": 1, "results": {"h2h": [], "home": [{"ss": "1-0"}], "away": []}}
        client, session = _client(payload)
        bundle = client.get_event_history("1")
        assert len(bundle.home) == 1
        assert session.get.call_args[1]["params"]["event_id"] == "1"

    def test_match_statistics(self):
        """Statistics come from /v2/event/view for the given event."""
        payload = {"success": 1, "results": [{"time_status": "3", "ss": "2-1", "stats": {"corners": ["4", "5"]}}]}
        client, session = _client(payload)
        statistics = client.get_match_statistics("77")
        assert session.get.call_args[0][0] == "https://api.example.com/v2/event/view"
        assert session.get.call_args[1]["params"]["event_id"] == "77"
        assert statistics["match_stats"]["corners"] == {"home": 4, "away": 5}

    def test_match_statistics_not_found(self):
        """An unknown event raises MatchNotFoundError."""
        client, _ = _client({"success": 1, "results": []})
        with pytest.raises(MatchNotFoundError):
            client.get_match_statistics("404")

    def test_event_view_cached_for_five_minutes(self):
        """Statistics and details share one cached /v2/event/view payload."""
        clock = FakeClock()
        client, session = _client({"success": 1, "results": [{"ss": "0-0"}]}, clock)
        client.get_match_statistics("1")
        clock.now = 299
        client.get_match_details("1")
        assert session.get.call_count == 1
        clock.now = 301
        client.get_match_details("1")
        assert session.get.call_count == 2

    def test_match_details_empty(self):
        """Details for an event BetsAPI does not know are empty, not an error."""
        client, _ = _client({"success": 1, "results": []})
        assert client.get_match_details("404")["lineups"] is None


class TestSingleton:
    """Process-wide client."""

    def test_same_instance_across_threads(self, monkeypatch):
        """Concurrent first calls build a single client."""
        monkeypatch.setattr(betsapi, "_client", None)
        seen = []
        threads = [
            threading.Thread(target=lambda: seen.append(betsapi.get_betsapi_client()))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(seen) == 8
        assert all(c is seen[0] for c in seen)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
