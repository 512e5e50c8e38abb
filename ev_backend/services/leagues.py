"""
Tracked football leagues.

BetsAPI lists thousands of leagues across dozens of pages, so the service
works from a fixed list of twenty competitions with reliable odds coverage.
:func:`match_top_leagues` rebuilds such a list from a full league dump by
exact (case-insensitive) name matching against a tiered keyword table.
"""

import logging
from typing import Dict, Iterable, List, NamedTuple

logger = logging.getLogger(__name__)

FLAG_URL = "https://assets.betsapi.com/v2/images/flags/{cc}.svg"
TOP_LEAGUE_LIMIT = 20


class TrackedLeague(NamedTuple):
    league_id: str
    name: str
    country: str
    cc: str


TOP_LEAGUES: List[TrackedLeague] = [
    TrackedLeague("94", "England Premier League", "England", "gb-eng"),
    TrackedLeague("38223", "Spain La Liga", "Spain", "es"),
    TrackedLeague("123", "Germany Bundesliga I", "Germany", "de"),
    TrackedLeague("199", "Italy Serie A", "Italy", "it"),
    TrackedLeague("99", "France Ligue 1", "France", "fr"),
    TrackedLeague("1040", "UEFA Champions League", "International", "int"),
    TrackedLeague("1067", "UEFA Europa League", "International", "int"),
    TrackedLeague("880", "England Championship", "England", "gb-eng"),
    TrackedLeague("172", "Portugal Primeira Liga", "Portugal", "pt"),
    TrackedLeague("24792", "Holland Eredivisie", "Netherlands", "nl"),
    TrackedLeague("39111", "Turkey Super Lig", "Turkey", "tr"),
    TrackedLeague("901", "Scotland Premiership", "Scotland", "gb-sct"),
    TrackedLeague("34541", "UEFA Conference League", "International", "int"),
    TrackedLeague("155", "Brazil Serie A", "Brazil", "br"),
    TrackedLeague("166", "Austria Bundesliga", "Austria", "at"),
    TrackedLeague("26549", "Argentina Liga Profesional", "Argentina", "ar"),
    TrackedLeague("3514", "Copa Libertadores", "International", "int"),
    TrackedLeague("125", "Poland Ekstraklasa", "Poland", "pl"),
    TrackedLeague("126", "Norway Eliteserien", "Norway", "no"),
    TrackedLeague("153", "Russia Premier League", "Russia", "ru"),
]


class LeagueKeyword(NamedTuple):
    exact: str
    region: str
    tier: int


# Tier 1 = elite competitions, tier 5 = peripheral leagues.
LEAGUE_KEYWORDS: List[LeagueKeyword] = [
    LeagueKeyword("england premier league", "England", 1),
    LeagueKeyword("spain la liga", "Spain", 1),
    LeagueKeyword("germany bundesliga i", "Germany", 1),
    LeagueKeyword("italy serie a", "Italy", 1),
    LeagueKeyword("france ligue 1", "France", 1),
    LeagueKeyword("uefa champions league", "Europe", 1),
    LeagueKeyword("uefa europa league", "Europe", 1),

    LeagueKeyword("holland eredivisie", "Netherlands", 2),
    LeagueKeyword("portugal primeira liga", "Portugal", 2),
    LeagueKeyword("scotland premiership", "Scotland", 2),
    LeagueKeyword("belgium pro league", "Belgium", 2),
    LeagueKeyword("türkiye super lig", "Turkey", 2),
    LeagueKeyword("england championship", "England", 2),
    LeagueKeyword("uefa conference league", "Europe", 2),

    LeagueKeyword("greece super league", "Greece", 3),
    LeagueKeyword("russia premier league", "Russia", 3),
    LeagueKeyword("denmark superligaen", "Denmark", 3),
    LeagueKeyword("norway eliteserien", "Norway", 3),
    LeagueKeyword("sweden allsvenskan", "Sweden", 3),
    LeagueKeyword("austria bundesliga", "Austria", 3),
    LeagueKeyword("switzerland super league", "Switzerland", 3),
    LeagueKeyword("poland ekstraklasa", "Poland", 3),
    LeagueKeyword("czech liga", "Czech Republic", 3),
    LeagueKeyword("brazil serie a", "Brazil", 3),
    LeagueKeyword("argentina liga profesional", "Argentina", 3),
    LeagueKeyword("copa libertadores", "South America", 3),

    LeagueKeyword("spain segunda", "Spain", 4),
    LeagueKeyword("germany bundesliga ii", "Germany", 4),
    LeagueKeyword("italy serie b", "Italy", 4),
    LeagueKeyword("france ligue 2", "France", 4),
    LeagueKeyword("usa mls", "USA", 4),
    LeagueKeyword("mexico liga mx", "Mexico", 4),

    LeagueKeyword("saudi pro league", "Saudi Arabia", 5),
    LeagueKeyword("japan j-league", "Japan", 5),
    LeagueKeyword("china super league", "China", 5),
    LeagueKeyword("south korea k-league", "South Korea", 5),
]

_KEYWORDS_BY_NAME: Dict[str, LeagueKeyword] = {k.exact: k for k in LEAGUE_KEYWORDS}


def get_top_leagues() -> List[Dict]:
    """The tracked leagues in API response shape."""
    return [
        {
            "league_id": league.league_id,
            "name": league.name,
            "country": league.country,
            "logo": FLAG_URL.format(cc=league.cc),
            "season_id": None,
        }
        for league in TOP_LEAGUES
    ]


def match_top_leagues(leagues: Iterable[Dict], limit: int = TOP_LEAGUE_LIMIT) -> List[Dict]:
    """
    Pick the top leagues out of a raw BetsAPI league list.

    Args:
        leagues: League dicts with at least ``id`` and ``name``.
        limit: Maximum number of leagues returned.

    Returns:
        Matched league dicts extended with ``region`` and ``tier``, sorted by
        tier (input order within a tier), one entry per league id.
    """
    matched: List[Dict] = []
    seen = set()

    for league in leagues:
        name = str(league.get("name") or "").lower()
        keyword = _KEYWORDS_BY_NAME.get(name)
        if keyword is None or league.get("id") in seen:
            continue
        seen.add(league.get("id"))
        matched.append({**league, "region": keyword.region, "tier": keyword.tier})

    matched.sort(key=lambda l: l["tier"])
    logger.info("Matched %d top leagues, returning %d", len(matched), min(limit, len(matched)))
    return matched[:limit]
