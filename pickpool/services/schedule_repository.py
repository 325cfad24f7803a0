"""
Canonical game schedule

Games are keyed by (season, week, home_team, away_team). Feed data is merged
with a single INSERT ... ON CONFLICT DO UPDATE so concurrent syncs can never
create duplicate games. The repository never commits unless asked; sync
batches and request handlers own their transactions.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update

from pickpool import db
from pickpool.exceptions import InvalidStateError, NotFoundError
from pickpool.models import Game, GameStatus, Pick
from pickpool.utils.db_utils import dialect_insert

logger = logging.getLogger(__name__)

IDENTITY_COLUMNS = ("season", "week", "home_team", "away_team")


def _coerce_score(value, field):
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{field} must be a whole number, got {value!r}")
    score = int(value)
    if score < 0:
        raise ValueError(f"{field} must not be negative, got {score}")
    return score


class ScheduleRepository:
    """Reads and writes the canonical schedule"""

    def __init__(self, session=None):
        self.session = session or db.session

    def _find(self, season, week, home_team, away_team):
        return self.session.execute(
            select(Game)
            .filter_by(
                season=season, week=week, home_team=home_team, away_team=away_team
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def upsert_game(self, record, commit=False):
        """
        Insert or update a game from a feed record.

        Args:
            record: mapping with season, week, home_team, away_team and the
                optional keys game_time, spread, external_id, home_score,
                away_score and status

        Returns:
            (game, inserted) tuple
        """
        try:
            season = int(record["season"])
            week = int(record["week"])
            home_team = record["home_team"]
            away_team = record["away_team"]
        except KeyError as e:
            raise ValueError(f"Game record is missing {e.args[0]}") from None

        if not home_team or not away_team:
            raise ValueError("Game record needs both teams")
        if home_team == away_team:
            raise ValueError(f"Game record has {home_team} playing itself")

        home_score = record.get("home_score")
        away_score = record.get("away_score")
        status = record.get("status")

        if (home_score is None) != (away_score is None):
            raise InvalidStateError(
                f"Both scores are required, got {home_score!r}-{away_score!r}"
            )
        has_scores = home_score is not None
        if has_scores:
            home_score = _coerce_score(home_score, "home_score")
            away_score = _coerce_score(away_score, "away_score")
            if status not in (None, GameStatus.FINAL):
                raise InvalidStateError(
                    f"Scores supplied for a game with status '{status}'"
                )
            status = GameStatus.FINAL
        elif status == GameStatus.FINAL:
            raise InvalidStateError("Cannot mark a game final without both scores")
        elif status is not None and status not in GameStatus.ALL:
            raise ValueError(f"Unknown game status '{status}'")

        existing = self._find(season, week, home_team, away_team)
        now = datetime.now(timezone.utc)

        stmt = dialect_insert(Game.__table__).values(
            season=season,
            week=week,
            home_team=home_team,
            away_team=away_team,
            game_time=record.get("game_time"),
            spread=record.get("spread"),
            external_id=record.get("external_id"),
            status=status or GameStatus.SCHEDULED,
            home_score=home_score,
            away_score=away_score,
            created_at=now,
            updated_at=now,
        )

        columns = Game.__table__.c
        # Missing feed fields keep what is already stored
        changes = {
            "game_time": func.coalesce(stmt.excluded.game_time, columns.game_time),
            "spread": func.coalesce(stmt.excluded.spread, columns.spread),
            "external_id": func.coalesce(
                stmt.excluded.external_id, columns.external_id
            ),
            "updated_at": now,
        }
        if status is not None:
            changes["status"] = stmt.excluded.status
            changes["home_score"] = stmt.excluded.home_score
            changes["away_score"] = stmt.excluded.away_score

        stmt = stmt.on_conflict_do_update(
            index_elements=list(IDENTITY_COLUMNS), set_=changes
        )
        self.session.execute(stmt)

        if existing is not None and existing.is_final and status is not None:
            previous = (existing.home_score, existing.away_score)
            if status != GameStatus.FINAL or previous != (home_score, away_score):
                logger.info(
                    f"Game {existing.id} result changed from {previous[0]}-{previous[1]}, "
                    f"resetting grades"
                )
                self._reset_grades(existing.id)

        game = self._find(season, week, home_team, away_team)

        if commit:
            self.session.commit()

        return game, existing is None

    def mark_final(self, game_id, home_score, away_score, commit=False):
        """Set a game's final score; corrections reset its grades"""
        home_score = _coerce_score(home_score, "home_score")
        away_score = _coerce_score(away_score, "away_score")

        game = self.get_game(game_id)
        previous = (game.home_score, game.away_score) if game.is_final else None

        self.session.execute(
            update(Game)
            .where(Game.id == game_id)
            .values(
                status=GameStatus.FINAL,
                home_score=home_score,
                away_score=away_score,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )

        if previous is not None and previous != (home_score, away_score):
            logger.info(
                f"Score correction for game {game_id}: "
                f"{previous[0]}-{previous[1]} -> {home_score}-{away_score}"
            )
            self._reset_grades(game_id)

        if commit:
            self.session.commit()

        logger.info(f"Game {game_id} marked final {home_score}-{away_score}")
        return self.get_game(game_id)

    def set_status(self, game_id, status, commit=False):
        """Move a game to a non-final status, clearing any scores"""
        if status == GameStatus.FINAL:
            raise InvalidStateError("Use mark_final to finish a game")
        if status not in GameStatus.ALL:
            raise ValueError(f"Unknown game status '{status}'")

        game = self.get_game(game_id)
        was_final = game.is_final

        self.session.execute(
            update(Game)
            .where(Game.id == game_id)
            .values(
                status=status,
                home_score=None,
                away_score=None,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if was_final:
            self._reset_grades(game_id)

        if commit:
            self.session.commit()

        logger.info(f"Game {game_id} status set to {status}")
        return self.get_game(game_id)

    def get_game(self, game_id):
        game = self.session.execute(
            select(Game)
            .where(Game.id == game_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if game is None:
            raise NotFoundError(f"Game {game_id} not found")
        return game

    def get_games(self, season=None, week=None, status=None):
        query = select(Game)
        if season is not None:
            query = query.where(Game.season == season)
        if week is not None:
            query = query.where(Game.week == week)
        if status is not None:
            query = query.where(Game.status == status)
        query = query.order_by(Game.week, Game.game_time, Game.id)
        return list(self.session.execute(query).scalars())

    def reset_season(self, season, commit=False):
        """Delete every game of a season along with its picks"""
        season_games = select(Game.id).where(Game.season == season)

        picks_deleted = self.session.execute(
            delete(Pick)
            .where(Pick.game_id.in_(season_games))
            .execution_options(synchronize_session=False)
        ).rowcount
        games_deleted = self.session.execute(
            delete(Game)
            .where(Game.season == season)
            .execution_options(synchronize_session=False)
        ).rowcount

        if commit:
            self.session.commit()

        logger.warning(
            f"Season {season} reset: deleted {games_deleted} games and {picks_deleted} picks"
        )
        return games_deleted, picks_deleted

    def _reset_grades(self, game_id):
        return self.session.execute(
            update(Pick)
            .where(Pick.game_id == game_id)
            .values(is_correct=None, graded_at=None)
            .execution_options(synchronize_session=False)
        ).rowcount
