#!/usr/bin/env python3
"""
Pick Pool Management CLI

Command-line management for syncing the schedule, grading picks and
inspecting standings.
"""

import json
import logging

import click
from flask.cli import with_appcontext
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from pickpool import create_app, db
from pickpool.exceptions import FeedUnavailableError, PickPoolError
from pickpool.models import Game, GameStatus, Pick
from pickpool.services.schedule_repository import ScheduleRepository
from pickpool.services.standings import compute_leaderboard
from pickpool.utils.cache_utils import invalidate_model_cache
from pickpool.utils.data_sync import OddsSyncEngine
from pickpool.utils.scoring import GradingEngine
from pickpool.utils.teams import unmapped_team_counts
from pickpool.utils.timezone_utils import format_game_time

app = create_app()


@click.group()
def cli():
    """Pick Pool Management CLI"""
    pass


def _echo_sync_result(result):
    click.echo(
        f"✅ Sync complete: {result.inserted} inserted, {result.updated} updated, "
        f"{result.skipped} skipped, {result.errors} errors"
    )
    unmapped = unmapped_team_counts()
    if unmapped:
        click.echo(f"⚠️  Unmapped team names: {', '.join(sorted(unmapped))}")


# Sync Commands
@cli.group()
def sync():
    """Odds feed sync commands"""
    pass


@sync.command()
@click.option("--grade/--no-grade", default=True, help="Grade picks after syncing")
@with_appcontext
def feed(grade):
    """Pull odds and scores from the feed"""
    try:
        result = OddsSyncEngine().sync_from_feed()
    except FeedUnavailableError as e:
        click.echo(f"❌ Odds feed unavailable: {e}")
        raise SystemExit(1)

    _echo_sync_result(result)

    if grade:
        graded = GradingEngine().grade_picked_games()
        click.echo(f"✅ Graded {graded.graded_count} picks")


@sync.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def file(path):
    """Sync raw feed records from a JSON file"""
    with open(path) as f:
        try:
            records = json.load(f)
        except ValueError as e:
            click.echo(f"❌ {path} is not valid JSON: {e}")
            raise SystemExit(1)

    if not isinstance(records, list):
        click.echo("❌ Expected a JSON list of game records")
        raise SystemExit(1)

    _echo_sync_result(OddsSyncEngine().sync_batch(records))


@cli.command()
@with_appcontext
def grade():
    """Grade all ungraded picks on final games"""
    result = GradingEngine().grade_picked_games()
    click.echo(
        f"✅ Graded {result.graded_count} picks across {len(result.games_graded)} games"
    )


# Game Commands
@cli.group()
def game():
    """Game management commands"""
    pass


@game.command()
@click.argument("game_id", type=int)
@click.argument("home_score", type=int)
@click.argument("away_score", type=int)
@with_appcontext
def mark_final(game_id, home_score, away_score):
    """Record a final score and grade the game"""
    try:
        final = ScheduleRepository().mark_final(
            game_id, home_score, away_score, commit=True
        )
        invalidate_model_cache("Game")
        graded = GradingEngine().grade_game(game_id)
    except (PickPoolError, ValueError) as e:
        db.session.rollback()
        click.echo(f"❌ {e}")
        raise SystemExit(1)

    click.echo(
        f"✅ {final.away_team} {away_score} @ {final.home_team} {home_score} final, "
        f"graded {graded} picks"
    )


@game.command("list")
@click.argument("season", type=int)
@click.option("--week", type=int, help="Only list one week")
@click.option(
    "--status", type=click.Choice(GameStatus.ALL), help="Only list games in a status"
)
@with_appcontext
def list_games(season, week, status):
    """List games for a season"""
    games = ScheduleRepository().get_games(season, week, status)
    if not games:
        click.echo("No games found")
        return

    for g in games:
        score = f"{g.away_score}-{g.home_score}" if g.is_final else g.status
        spread = f"{g.spread:+.1f}" if g.spread is not None else "n/a"
        click.echo(
            f"[{g.id:>4}] Week {g.week:>2}  {format_game_time(g.game_time):<20} "
            f"{g.away_team:>4} @ {g.home_team:<4} "
            f"spread {spread:>6}  {score}"
        )


@cli.command()
@click.argument("season", type=int)
@click.option("--week", type=int, help="Limit to one week")
@with_appcontext
def leaderboard(season, week):
    """Show the leaderboard"""
    entries = compute_leaderboard(season, week)
    scope = f"Week {week}" if week else "Season"
    click.echo(f"🏆 {season} {scope} Leaderboard")
    click.echo("=" * 40)

    if not entries:
        click.echo("No picks yet")
        return

    for entry in entries:
        click.echo(
            f"{entry.rank:>3}. user {entry.user_id:<8} "
            f"{entry.correct}/{entry.total}  {entry.percentage:.1f}%"
        )


# Season Commands
@cli.group()
def season():
    """Season management commands"""
    pass


@season.command()
@click.argument("year", type=int)
@with_appcontext
def reset(year):
    """⚠️  DANGER: Delete a season's games and picks"""
    if not click.confirm(f"This will DELETE all {year} games and picks. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        games, picks = ScheduleRepository().reset_season(year, commit=True)
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error resetting season: {str(e)}")
        logging.error(f"Season reset failed - SQL error: {e}")
        raise SystemExit(1)

    invalidate_model_cache("Game")
    click.echo(f"✅ Deleted {games} games and {picks} picks from {year}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        raise SystemExit(1)


@db_cmd.command("reset")
@with_appcontext
def reset_db():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")
        raise SystemExit(1)


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 Pick Pool Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    rows = db.session.execute(
        select(Game.season, Game.status, func.count(Game.id))
        .group_by(Game.season, Game.status)
        .order_by(Game.season)
    ).all()
    seasons = {}
    for season_year, game_status, count in rows:
        seasons.setdefault(season_year, {})[game_status] = count
    for season_year, counts in seasons.items():
        total = sum(counts.values())
        click.echo(
            f"🏈 {season_year}: {counts.get(GameStatus.FINAL, 0)}/{total} games final"
        )

    ungraded = db.session.execute(
        select(func.count(Pick.id))
        .join(Game, Pick.game_id == Game.id)
        .where(Game.status == GameStatus.FINAL, Pick.is_correct.is_(None))
    ).scalar()
    click.echo(f"📝 Ungraded picks on final games: {ungraded}")

    api_key = app.config.get("ODDS_API_KEY")
    click.echo(f"{'✅' if api_key else '⚠️ '} Odds API key: {'set' if api_key else 'missing'}")


if __name__ == "__main__":
    with app.app_context():
        cli()
