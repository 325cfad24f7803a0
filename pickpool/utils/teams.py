"""
Team name normalization for feed records.

Feed display names map to canonical abbreviations. Unknown names pass through
unchanged so a renamed team never breaks a sync, but every miss is counted
and logged so feed drift shows up in the logs and scheduler status.
"""

import logging
import threading
from collections import Counter

logger = logging.getLogger(__name__)

TEAM_ABBREVIATIONS = {
    "Arizona Cardinals": "ARI",
    "Atlanta Falcons": "ATL",
    "Baltimore Ravens": "BAL",
    "Buffalo Bills": "BUF",
    "Carolina Panthers": "CAR",
    "Chicago Bears": "CHI",
    "Cincinnati Bengals": "CIN",
    "Cleveland Browns": "CLE",
    "Dallas Cowboys": "DAL",
    "Denver Broncos": "DEN",
    "Detroit Lions": "DET",
    "Green Bay Packers": "GB",
    "Houston Texans": "HOU",
    "Indianapolis Colts": "IND",
    "Jacksonville Jaguars": "JAX",
    "Kansas City Chiefs": "KC",
    "Las Vegas Raiders": "LV",
    "Los Angeles Chargers": "LAC",
    "Los Angeles Rams": "LAR",
    "Miami Dolphins": "MIA",
    "Minnesota Vikings": "MIN",
    "New England Patriots": "NE",
    "New Orleans Saints": "NO",
    "New York Giants": "NYG",
    "New York Jets": "NYJ",
    "Philadelphia Eagles": "PHI",
    "Pittsburgh Steelers": "PIT",
    "San Francisco 49ers": "SF",
    "Seattle Seahawks": "SEA",
    "Tampa Bay Buccaneers": "TB",
    "Tennessee Titans": "TEN",
    "Washington Commanders": "WAS",
}

_unmapped = Counter()
_unmapped_lock = threading.Lock()


def normalize_team_name(name):
    """Return the abbreviation for a feed team name, or the name itself on a miss"""
    abbreviation = TEAM_ABBREVIATIONS.get(name)
    if abbreviation:
        return abbreviation

    with _unmapped_lock:
        _unmapped[name] += 1
        seen = _unmapped[name]

    if seen == 1:
        logger.warning(f"Unmapped team name from feed, passing through: {name!r}")
    else:
        logger.debug(f"Unmapped team name {name!r} seen {seen} times")
    return name


def unmapped_team_counts():
    """Snapshot of unmapped team names and how often each was seen"""
    with _unmapped_lock:
        return dict(_unmapped)


def reset_unmapped_team_counts():
    with _unmapped_lock:
        _unmapped.clear()
