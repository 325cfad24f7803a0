from pickpool.models import GameStatus
from pickpool.services.standings import (
    compute_leaderboard,
    current_week,
    percentage,
    week_stats,
    weekly_totals,
)
from pickpool.utils.scoring import GradingEngine
from tests.factories import utc


def _season_of_games(make_game, count, **fields):
    """KC beats BAL once a week for `count` weeks"""
    return [
        make_game(week=week, home_score=21, away_score=14, **fields)
        for week in range(1, count + 1)
    ]


def test_percentage_without_graded_picks_is_zero():
    assert percentage(0, 0) == 0.0
    assert percentage(8, 10) == 80.0


def test_user_with_no_graded_picks_is_listed_at_zero(make_game, make_pick):
    game = make_game()
    make_pick(5, game, "KC")

    (entry,) = compute_leaderboard(2025)

    assert (entry.user_id, entry.correct, entry.total) == (5, 0, 0)
    assert entry.percentage == 0.0
    assert entry.rank == 1


def test_equal_records_order_by_lower_user_id(make_game, make_pick):
    games = _season_of_games(make_game, 10)
    for user_id in (9, 4):
        for index, game in enumerate(games):
            make_pick(user_id, game, "KC" if index < 8 else "BAL")
    GradingEngine().grade_picked_games()

    entries = compute_leaderboard(2025)

    assert [(e.user_id, e.correct, e.total) for e in entries] == [(4, 8, 10), (9, 8, 10)]
    assert [e.percentage for e in entries] == [80.0, 80.0]
    assert [e.rank for e in entries] == [1, 1]
    assert [e.user_id for e in compute_leaderboard(2025)] == [4, 9]


def test_ordering_percentage_then_correct(make_game, make_pick):
    games = _season_of_games(make_game, 8)
    # user 1: 3/4, user 2: 6/8, user 3: 8/8
    for index, game in enumerate(games[:4]):
        make_pick(1, game, "KC" if index < 3 else "BAL")
    for index, game in enumerate(games):
        make_pick(2, game, "KC" if index < 6 else "BAL")
        make_pick(3, game, "KC")
    GradingEngine().grade_picked_games()

    entries = compute_leaderboard(2025)

    assert [e.user_id for e in entries] == [3, 2, 1]
    assert [e.rank for e in entries] == [1, 2, 3]
    assert [e.percentage for e in entries] == [100.0, 75.0, 75.0]


def test_ungraded_picks_do_not_count(make_game, make_pick):
    graded = make_game(home_score=10, away_score=3)
    pending = make_game(home="BUF", away="MIA")
    make_pick(1, graded, "KC")
    make_pick(1, pending, "BUF")
    GradingEngine().grade_picked_games()

    (entry,) = compute_leaderboard(2025)

    assert (entry.correct, entry.total, entry.percentage) == (1, 1, 100.0)


def test_week_and_season_scope(make_game, make_pick):
    week1, week2 = _season_of_games(make_game, 2)
    make_game(season=2024, home_score=0, away_score=3)
    make_pick(1, week1, "KC")
    make_pick(1, week2, "BAL")
    make_pick(2, week2, "KC")
    GradingEngine().grade_picked_games()

    week2_board = compute_leaderboard(2025, week=2)
    assert [(e.user_id, e.correct) for e in week2_board] == [(2, 1), (1, 0)]

    week1_board = compute_leaderboard(2025, week=1)
    assert [e.user_id for e in week1_board] == [1]

    assert compute_leaderboard(2024) == []


def test_leaderboard_follows_score_corrections(make_game, make_pick, repo):
    game = make_game(home_score=24, away_score=17)
    make_pick(1, game, "KC")
    GradingEngine().grade_picked_games()
    assert compute_leaderboard(2025)[0].correct == 1

    repo.mark_final(game.id, 17, 24, commit=True)
    GradingEngine().grade_picked_games()

    assert compute_leaderboard(2025)[0].correct == 0


def test_weekly_totals(make_game, make_pick):
    week1, week2 = _season_of_games(make_game, 2)
    make_pick(1, week1, "KC")
    make_pick(1, week2, "BAL")
    make_pick(2, week2, "KC")
    GradingEngine().grade_picked_games()

    totals = weekly_totals(2025)

    assert totals == {
        1: {
            1: {"correct": 1, "total": 1, "percentage": 100.0},
            2: {"correct": 0, "total": 1, "percentage": 0.0},
        },
        2: {2: {"correct": 1, "total": 1, "percentage": 100.0}},
    }
    assert list(weekly_totals(2025, user_id=2)) == [2]


def test_week_stats(make_game, make_pick):
    final = make_game(home_score=24, away_score=17, game_time=utc(2025, 9, 5, 0, 20))
    live = make_game(home="BUF", away="MIA", status=GameStatus.IN_PROGRESS)
    upcoming = make_game(home="NE", away="NYJ", game_time=utc(2025, 9, 8, 17))
    make_game(home="DAL", away="NYG", week=2)
    make_pick(1, final, "KC")
    make_pick(2, final, "BAL")
    make_pick(1, live, "BUF")
    make_pick(3, upcoming, "NE")
    GradingEngine().grade_picked_games()

    stats = week_stats(2025, 1)

    assert stats["games"]["total"] == 3
    assert [stats["games"][key] for key in ("final", "live", "scheduled")] == [1, 1, 1]
    assert stats["games"]["first_game"].startswith("2025-09-05T00:20")
    assert stats["games"]["last_game"].startswith("2025-09-08T17:00")
    assert stats["picks"] == {
        "users_with_picks": 3,
        "total_picks": 4,
        "graded_picks": 2,
        "correct_picks": 1,
        "accuracy": 50.0,
    }


def test_week_stats_for_empty_week(app):
    stats = week_stats(2025, 7)

    assert stats["games"] == {
        "total": 0,
        "final": 0,
        "live": 0,
        "scheduled": 0,
        "first_game": None,
        "last_game": None,
    }
    assert stats["picks"]["accuracy"] == 0.0


def test_current_week_is_lowest_unfinished_week(make_game, repo):
    make_game(week=1, home_score=10, away_score=3)
    postponed = make_game(home="BUF", away="MIA", week=2)
    repo.set_status(postponed.id, GameStatus.POSTPONED, commit=True)
    make_game(home="NE", away="NYJ", week=3)
    make_game(home="DAL", away="NYG", week=4)

    assert current_week(2025) == 3


def test_current_week_after_last_game_and_for_empty_season(make_game):
    make_game(week=1, home_score=10, away_score=3)
    make_game(home="BUF", away="MIA", week=2, home_score=7, away_score=0)

    assert current_week(2025) == 2
    assert current_week(2030) == 1
