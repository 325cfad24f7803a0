"""
Calendar-to-week mapping for the pick pool season.

The mapping is a static table: each month's days are split into 7-day bands
(1-7, 8-14, 15-21, 22-28, 29+) and each band maps to a week number, with the
numbering carried forward from September through January. Dates outside the
table fall back to week 1.

This is a deliberate simplification, not an NFL calendar. Swap the strategy
passed to OddsSyncEngine to change it; sync and grading never depend on the
table directly.
"""

from datetime import datetime

DEFAULT_WEEK = 1

# month -> week number for each day band
WEEK_TABLE = {
    9: (1, 2, 3, 4, 5),
    10: (5, 6, 7, 8, 9),
    11: (10, 11, 12, 13, 14),
    12: (15, 16, 17, 18, 19),
    1: (20, 20, 20, 20, 20),  # Playoffs
}


def _day_band(day):
    return min((day - 1) // 7, 4)


def classify_week(value):
    """Map a date (or datetime) to its week number"""
    if isinstance(value, datetime):
        value = value.date()

    bands = WEEK_TABLE.get(value.month)
    if bands is None:
        return DEFAULT_WEEK

    return bands[_day_band(value.day)]


def season_for(value):
    """Season is the calendar year of the game date"""
    return value.year
