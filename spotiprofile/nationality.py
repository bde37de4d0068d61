"""
Artist nationality lookup and country distribution.

Nationality is resolved through a chain of strategies tried in order: a
local table of well-known artists, then Wikidata, then MusicBrainz. The first
strategy with an answer wins. Network failures count as "no answer".

Countries are identified by ISO-3166 numeric codes, which is what world map
topologies key their shapes on.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple, Union

import pandas as pd
import requests

from .models import CountryCount, EnrichedEvent, ListeningEvent, Nationality

logger = logging.getLogger(__name__)

WIKIDATA_API = "https://www.wikidata.org/w/api.php"
MUSICBRAINZ_API = "https://musicbrainz.org/ws/2/artist/"
DEFAULT_USER_AGENT = "spotiprofile/0.1 (https://github.com/spotiprofile/spotiprofile)"
REQUEST_TIMEOUT = 10

# ISO 3166-1 alpha-2 -> numeric
ISO_ALPHA_TO_NUMERIC: Dict[str, str] = {
    "US": "840", "PR": "630", "CO": "170", "MX": "484", "AR": "032",
    "ES": "724", "DO": "214", "PA": "591", "JM": "388", "CA": "124",
    "BR": "076", "CL": "152", "PE": "604", "VE": "862", "FR": "250",
    "DE": "276", "IT": "380", "JP": "392", "KR": "410", "AU": "036",
    "NZ": "554", "SE": "752", "NO": "578", "NL": "528", "BE": "056",
    "IE": "372", "CH": "756", "AT": "040", "PT": "620", "GR": "300",
    "TR": "792", "RU": "643", "PL": "616", "IN": "356", "CN": "156",
    "ZA": "710", "NG": "566", "EG": "818", "KE": "404", "GB": "826",
    "CU": "192", "UY": "858", "PY": "600", "BO": "068", "EC": "218",
    "GT": "320", "HN": "340", "SV": "222", "NI": "558", "CR": "188",
    "FI": "246", "DK": "208", "IS": "352", "CZ": "203", "HU": "348",
    "RO": "642", "BG": "100", "HR": "191", "RS": "688", "SK": "703",
    "SI": "705", "LT": "440", "LV": "428", "EE": "233", "UA": "804",
    "BY": "112", "MD": "498", "GE": "268", "AM": "051", "AZ": "031",
    "IL": "376", "SA": "682", "AE": "784", "QA": "634", "KW": "414",
    "TH": "764", "VN": "704", "MY": "458", "SG": "702", "ID": "360",
    "PH": "608", "TW": "158", "HK": "344", "MO": "446", "PK": "586",
    "BD": "050", "LK": "144", "NP": "524", "MM": "104", "KH": "116",
    "MA": "504", "DZ": "012", "TN": "788", "LY": "434", "SD": "729",
    "ET": "231", "GH": "288", "CI": "384", "SN": "686", "UG": "800",
    "TZ": "834", "AO": "024", "MZ": "508", "ZW": "716", "ZM": "894",
    "BW": "072", "NA": "516", "MG": "450", "CD": "180", "CM": "120",
}

_PR = Nationality("Puerto Rico", "630")
_CO = Nationality("Colombia", "170")
_MX = Nationality("Mexico", "484")
_US = Nationality("United States", "840")
_CA = Nationality("Canada", "124")
_GB = Nationality("United Kingdom", "826")
_KR = Nationality("South Korea", "410")

# Lower-cased artist name -> nationality
ARTIST_DATABASE: Dict[str, Nationality] = {
    # Latin
    "bad bunny": _PR, "daddy yankee": _PR, "rauw alejandro": _PR, "ozuna": _PR,
    "anuel aa": _PR, "young miko": _PR,
    "j balvin": _CO, "karol g": _CO, "maluma": _CO, "feid": _CO, "shakira": _CO,
    "peso pluma": _MX, "natanael cano": _MX,
    "becky g": _US,
    "bizarrap": Nationality("Argentina", "032"),
    # English
    "drake": _CA, "the weeknd": _CA,
    "taylor swift": _US, "billie eilish": _US, "ariana grande": _US, "eminem": _US,
    "ed sheeran": _GB, "adele": _GB,
    # K-pop
    "bts": _KR, "blackpink": _KR, "twice": _KR,
}

Strategy = Callable[[str], Optional[Nationality]]


def _from_alpha2(code: Optional[str], name: Optional[str]) -> Optional[Nationality]:
    if not code:
        return None
    numeric = ISO_ALPHA_TO_NUMERIC.get(code.upper())
    if numeric is None:
        return None
    return Nationality(country=name or code, iso=numeric)


class LocalTableStrategy:
    """Exact (case-insensitive) lookup in a table of known artists."""

    name = "local"

    def __init__(self, table: Optional[Dict[str, Nationality]] = None):
        self.table = ARTIST_DATABASE if table is None else table

    def __call__(self, artist_name: str) -> Optional[Nationality]:
        return self.table.get(artist_name.lower().strip())


class WikidataStrategy:
    """
    Country of citizenship (P27), or country (P17), of the best Wikidata match.

    The country entity's ISO alpha-2 code (P297) is mapped to its numeric code.
    """

    name = "wikidata"

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def _get(self, **params) -> Optional[dict]:
        params.setdefault("format", "json")
        response = self.session.get(WIKIDATA_API, params=params, timeout=REQUEST_TIMEOUT)
        if not response.ok:
            return None
        return response.json()

    @staticmethod
    def _claim(entity: dict, prop: str):
        claims = (entity.get("claims") or {}).get(prop) or []
        if not claims:
            return None
        return ((claims[0].get("mainsnak") or {}).get("datavalue") or {}).get("value")

    def __call__(self, artist_name: str) -> Optional[Nationality]:
        search = self._get(
            action="wbsearchentities", search=artist_name,
            language="en", type="item", limit=1,
        )
        if not search or not search.get("search"):
            return None
        entity_id = search["search"][0]["id"]

        data = self._get(action="wbgetentities", ids=entity_id, props="claims")
        if not data:
            return None
        entity = data.get("entities", {}).get(entity_id, {})

        value = self._claim(entity, "P27") or self._claim(entity, "P17")
        country_id = value.get("id") if isinstance(value, dict) else None
        if not country_id:
            return None

        data = self._get(action="wbgetentities", ids=country_id, props="claims|labels")
        if not data:
            return None
        country = data.get("entities", {}).get(country_id, {})
        label = ((country.get("labels") or {}).get("en") or {}).get("value")
        return _from_alpha2(self._claim(country, "P297"), label)


class MusicBrainzStrategy:
    """Area (or begin area, or country) of the best MusicBrainz match."""

    name = "musicbrainz"

    def __init__(self, session: Optional[requests.Session] = None, user_agent: str = DEFAULT_USER_AGENT):
        self.session = session or requests.Session()
        self.user_agent = user_agent

    def __call__(self, artist_name: str) -> Optional[Nationality]:
        response = self.session.get(
            MUSICBRAINZ_API,
            params={"query": artist_name, "fmt": "json", "limit": 1},
            headers={"User-Agent": self.user_agent},
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            return None
        artists = response.json().get("artists") or []
        if not artists:
            return None

        artist = artists[0]
        for key in ("area", "begin-area"):
            area = artist.get(key) or {}
            codes = area.get("iso-3166-1-codes") or []
            if codes:
                return _from_alpha2(codes[0], area.get("name"))
        return _from_alpha2(artist.get("country"), None)


def default_strategies(session: Optional[requests.Session] = None) -> Tuple[Strategy, ...]:
    session = session or requests.Session()
    return (LocalTableStrategy(), WikidataStrategy(session), MusicBrainzStrategy(session))


class NationalityResolver:
    """
    Try each strategy in turn until one knows the artist.

    Usage:
        resolver = NationalityResolver(default_strategies())
        resolver.resolve("Bad Bunny")  # Nationality('Puerto Rico', '630')
    """

    def __init__(
        self,
        strategies: Optional[Sequence[Strategy]] = None,
        delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.strategies = tuple(default_strategies() if strategies is None else strategies)
        self.delay = delay
        self.sleep = sleep

    def resolve(self, artist_name: str) -> Optional[Nationality]:
        for i, strategy in enumerate(self.strategies):
            if i > 0 and self.delay > 0:
                self.sleep(self.delay)
            try:
                result = strategy(artist_name)
            except (requests.RequestException, ValueError) as e:
                name = getattr(strategy, "name", type(strategy).__name__)
                logger.warning("Nationality lookup via %s failed for %r: %s", name, artist_name, e)
                continue
            if result is not None:
                return result
        return None

    def resolve_many(self, artist_names: Iterable[str]) -> Dict[str, Optional[Nationality]]:
        """Resolve each distinct name once."""
        return {name: self.resolve(name) for name in dict.fromkeys(artist_names)}


def calculate_country_distribution(
    events: Sequence[Union[ListeningEvent, EnrichedEvent]],
    resolver: NationalityResolver,
) -> Tuple[CountryCount, ...]:
    """
    Listens per artist country, most listened first.

    Each distinct artist is resolved once; listens by unresolved artists are
    left out.
    """
    if not events:
        return ()

    nationalities = resolver.resolve_many(e.artist_name for e in events)
    rows = [
        (n.country, n.iso)
        for n in (nationalities[e.artist_name] for e in events)
        if n is not None
    ]
    if not rows:
        return ()

    df = pd.DataFrame(rows, columns=["country", "iso"])
    counts = df.groupby("iso", sort=False).agg(country=("country", "first"), count=("country", "size"))
    counts = counts.sort_values("count", ascending=False, kind="stable")
    return tuple(
        CountryCount(country=row["country"], iso=iso, count=int(row["count"]))
        for iso, row in counts.iterrows()
    )
