"""
Leaderboards and season standings

Standings are recomputed from graded picks on every read and never stored,
so score corrections and regrades always flow through.
"""

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import case, func, select

from pickpool import db
from pickpool.models import Game, GameStatus, Pick
from pickpool.utils.week_classifier import DEFAULT_WEEK

logger = logging.getLogger(__name__)


@dataclass
class StandingEntry:
    user_id: int
    correct: int
    total: int
    percentage: float
    rank: int = 0

    def to_dict(self):
        return asdict(self)


def percentage(correct, total):
    """Share of correct picks as a percentage, 0.0 with nothing graded"""
    if not total:
        return 0.0
    return correct / total * 100


def _tallies(session, season, week=None, user_id=None, by_week=False):
    graded = case((Pick.is_correct.is_not(None), 1), else_=0)
    correct = case((Pick.is_correct.is_(True), 1), else_=0)

    columns = [Pick.user_id]
    if by_week:
        columns.append(Game.week)

    query = (
        select(
            *columns,
            func.sum(correct).label("correct"),
            func.sum(graded).label("total"),
        )
        .join(Game, Pick.game_id == Game.id)
        .where(Game.season == season)
        .group_by(*columns)
    )
    if week is not None:
        query = query.where(Game.week == week)
    if user_id is not None:
        query = query.where(Pick.user_id == user_id)

    return session.execute(query).all()


def compute_leaderboard(season, week=None, session=None):
    """
    Ranked standings for one week or the season to date.

    Every user with a pick in scope is listed; only graded picks count.
    Order is percentage, then correct count (both descending), then user id.
    Users level on percentage and correct count share a rank.
    """
    session = session or db.session

    entries = [
        StandingEntry(
            user_id=row.user_id,
            correct=int(row.correct or 0),
            total=int(row.total or 0),
            percentage=percentage(int(row.correct or 0), int(row.total or 0)),
        )
        for row in _tallies(session, season, week)
    ]
    entries.sort(key=lambda e: (-e.percentage, -e.correct, e.user_id))

    for position, entry in enumerate(entries, start=1):
        previous = entries[position - 2] if position > 1 else None
        if previous and (previous.percentage, previous.correct) == (entry.percentage, entry.correct):
            entry.rank = previous.rank
        else:
            entry.rank = position

    scope = f"week {week}" if week is not None else "season"
    logger.debug(f"Leaderboard for {season} {scope}: {len(entries)} users")
    return entries


def weekly_totals(season, user_id=None, session=None):
    """
    Per-user, per-week correct/total breakdown for a season.

    Returns:
        {user_id: {week: {"correct": n, "total": n, "percentage": p}}}
    """
    session = session or db.session

    totals = {}
    for row in _tallies(session, season, user_id=user_id, by_week=True):
        correct = int(row.correct or 0)
        total = int(row.total or 0)
        totals.setdefault(row.user_id, {})[row.week] = {
            "correct": correct,
            "total": total,
            "percentage": percentage(correct, total),
        }
    return {user: dict(sorted(weeks.items())) for user, weeks in sorted(totals.items())}


def _count(condition):
    return func.sum(case((condition, 1), else_=0))


def week_stats(season, week, session=None):
    """
    Game progress and pick activity for one week.

    Accuracy is correct picks over graded picks, matching the leaderboard.
    """
    session = session or db.session

    games = session.execute(
        select(
            func.count(Game.id).label("total"),
            _count(Game.status == GameStatus.FINAL).label("final"),
            _count(Game.status == GameStatus.IN_PROGRESS).label("live"),
            _count(Game.status == GameStatus.SCHEDULED).label("scheduled"),
            func.min(Game.game_time).label("first_game"),
            func.max(Game.game_time).label("last_game"),
        ).where(Game.season == season, Game.week == week)
    ).one()

    picks = session.execute(
        select(
            func.count(func.distinct(Pick.user_id)).label("users"),
            func.count(Pick.id).label("total"),
            _count(Pick.is_correct.is_not(None)).label("graded"),
            _count(Pick.is_correct.is_(True)).label("correct"),
        )
        .join(Game, Pick.game_id == Game.id)
        .where(Game.season == season, Game.week == week)
    ).one()

    graded = int(picks.graded or 0)
    correct = int(picks.correct or 0)
    return {
        "season": season,
        "week": week,
        "games": {
            "total": games.total,
            "final": int(games.final or 0),
            "live": int(games.live or 0),
            "scheduled": int(games.scheduled or 0),
            "first_game": games.first_game.isoformat() if games.first_game else None,
            "last_game": games.last_game.isoformat() if games.last_game else None,
        },
        "picks": {
            "users_with_picks": picks.users,
            "total_picks": picks.total,
            "graded_picks": graded,
            "correct_picks": correct,
            "accuracy": percentage(correct, graded),
        },
    }


def current_week(season, session=None):
    """
    Week in play for a season.

    That is the lowest week with a game still to be played or finished. Once
    every game is settled it is the last week on the schedule, and an empty
    season starts at week 1.
    """
    session = session or db.session

    open_week = session.execute(
        select(func.min(Game.week)).where(
            Game.season == season,
            Game.status.in_((GameStatus.SCHEDULED, GameStatus.IN_PROGRESS)),
        )
    ).scalar()
    if open_week is not None:
        return open_week

    last_week = session.execute(
        select(func.max(Game.week)).where(Game.season == season)
    ).scalar()
    return last_week if last_week is not None else DEFAULT_WEEK
