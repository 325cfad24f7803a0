from flask import abort, jsonify, request

from pickpool.models import GameStatus
from pickpool.routes.api import bp
from pickpool.services.pick_service import PickService
from pickpool.services.schedule_repository import ScheduleRepository
from pickpool.services.scheduler_service import scheduler_service
from pickpool.services.standings import (
    compute_leaderboard,
    current_week,
    week_stats,
    weekly_totals,
)
from pickpool.utils.cache_utils import cached_route, invalidate_model_cache
from pickpool.utils.data_sync import OddsSyncEngine
from pickpool.utils.scoring import GradingEngine
from pickpool.utils.timezone_utils import convert_to_app_timezone, get_utc_time
from pickpool.utils.week_classifier import season_for


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object")
    return data


def _season_arg():
    """Season from the query string, defaulting to the current one"""
    season = request.args.get("season", type=int)
    if season is None:
        season = season_for(convert_to_app_timezone(get_utc_time()))
    return season


def _required_int(data, key):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        abort(400, description=f"'{key}' must be an integer")
    return value


@bp.route("/picks", methods=["POST"])
def submit_picks():
    """Submit picks for the calling user; first pick per game stands"""
    data = _json_body()
    user_id = _required_int(data, "user_id")

    selections = data.get("picks")
    if not isinstance(selections, dict):
        abort(400, description="'picks' must map game ids to teams")

    result = PickService().submit_picks(user_id, selections)
    return jsonify({"success": True, **result.to_dict()})


@bp.route("/picks")
def user_picks():
    user_id = request.args.get("user_id", type=int)
    if user_id is None:
        abort(400, description="user_id is required")

    picks = PickService().get_user_picks(
        user_id, _season_arg(), request.args.get("week", type=int)
    )
    return jsonify([pick.to_dict() for pick in picks])


@bp.route("/leaderboard")
@cached_route(key_prefix="leaderboard")
def leaderboard():
    season = _season_arg()
    week = request.args.get("week", type=int)

    entries = compute_leaderboard(season, week)
    return {
        "season": season,
        "week": week,
        "leaderboard": [entry.to_dict() for entry in entries],
    }


@bp.route("/standings/weekly")
def standings_weekly():
    season = _season_arg()
    totals = weekly_totals(season, request.args.get("user_id", type=int))
    return jsonify(
        {
            "season": season,
            "users": [
                {
                    "user_id": user_id,
                    "weeks": [{"week": week, **tally} for week, tally in weeks.items()],
                }
                for user_id, weeks in totals.items()
            ],
        }
    )


@bp.route("/games")
def games():
    status = request.args.get("status")
    if status is not None and status not in GameStatus.ALL:
        abort(400, description=f"Unknown status '{status}'")

    games = ScheduleRepository().get_games(
        _season_arg(), request.args.get("week", type=int), status
    )
    return jsonify([game.to_dict() for game in games])


@bp.route("/games/current-week")
def games_current_week():
    """Games for the week in play"""
    season = _season_arg()
    week = current_week(season)
    games = ScheduleRepository().get_games(season, week)
    return jsonify(
        {"season": season, "week": week, "games": [game.to_dict() for game in games]}
    )


@bp.route("/games/week/<int:week>/stats")
def games_week_stats(week):
    return jsonify(week_stats(_season_arg(), week))


@bp.route("/games/<int:game_id>")
def game_detail(game_id):
    game = ScheduleRepository().get_game(game_id)
    return jsonify(game.to_dict(include_picks_count=True))


@bp.route("/admin/sync", methods=["POST"])
def admin_sync():
    """Sync from the odds feed, or from records posted in the body"""
    data = request.get_json(silent=True)
    engine = OddsSyncEngine()

    if isinstance(data, dict) and "records" in data:
        if not isinstance(data["records"], list):
            abort(400, description="'records' must be a list")
        result = engine.sync_batch(data["records"])
    else:
        result = engine.sync_from_feed()

    return jsonify(result.to_dict())


@bp.route("/admin/grade", methods=["POST"])
def admin_grade():
    return jsonify(GradingEngine().grade_picked_games().to_dict())


@bp.route("/admin/games/<int:game_id>/result", methods=["PUT"])
def admin_game_result(game_id):
    """Mark a game final and grade it"""
    data = _json_body()
    home_score = _required_int(data, "home_score")
    away_score = _required_int(data, "away_score")

    try:
        game = ScheduleRepository().mark_final(
            game_id, home_score, away_score, commit=True
        )
    except ValueError as e:
        abort(400, description=str(e))

    invalidate_model_cache("Game")
    graded = GradingEngine().grade_game(game_id)

    return jsonify({"game": game.to_dict(), "graded_count": graded})


@bp.route("/admin/scheduler")
def admin_scheduler():
    return jsonify(scheduler_service.get_status())


@bp.route("/admin/scheduler/sync", methods=["POST"])
def admin_scheduler_sync():
    """Run a scheduler job now"""
    data = request.get_json(silent=True) or {}
    sync_type = data.get("sync_type", "odds")

    try:
        success, message = scheduler_service.force_sync(sync_type)
    except ValueError as e:
        abort(400, description=str(e))

    if success:
        return jsonify({"message": message})
    return jsonify({"error": message}), 500
