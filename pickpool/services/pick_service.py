"""
Pick submission

A user has at most one pick per game and the first pick stands: resubmitting
for the same game is ignored, never an overwrite. Picks are written with a
single INSERT ... ON CONFLICT DO NOTHING so concurrent submissions can never
produce two picks or an error.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from pickpool import db
from pickpool.models import Game, GameStatus, Pick
from pickpool.utils.cache_utils import invalidate_model_cache
from pickpool.utils.db_utils import dialect_insert

logger = logging.getLogger(__name__)

# Largest id a BIGINT primary key can hold
MAX_GAME_ID = 2**63 - 1


@dataclass
class SubmissionResult:
    created: int = 0
    ignored: int = 0
    rejected: dict = field(default_factory=dict)  # game id -> reason

    def to_dict(self):
        return asdict(self)


class PickService:
    def __init__(self, session=None):
        self.session = session or db.session

    def _insert_or_ignore(self, user_id, game_id, team, now):
        stmt = (
            dialect_insert(Pick.__table__)
            .values(
                user_id=user_id,
                game_id=game_id,
                selected_team=team,
                submitted_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "game_id"])
        )
        return self.session.execute(stmt).rowcount == 1

    def submit_picks(self, user_id, selections, now=None):
        """
        Record a user's picks.

        Args:
            user_id: the calling user
            selections: mapping of game id -> team abbreviation
            now: submission time, defaults to the current UTC time

        Returns:
            SubmissionResult. Rejections are informational; the submission
            as a whole always succeeds.
        """
        now = now or datetime.now(timezone.utc)
        lock_at_kickoff = current_app.config.get("PICKS_LOCK_AT_KICKOFF", True)
        result = SubmissionResult()

        for raw_game_id, team in selections.items():
            try:
                game_id = int(raw_game_id)
                if not 1 <= game_id <= MAX_GAME_ID:
                    raise ValueError(f"game id {game_id} out of range")
            except (TypeError, ValueError):
                result.rejected[str(raw_game_id)] = "invalid game id"
                logger.warning(f"User {user_id} sent invalid game id {raw_game_id!r}")
                continue

            game = self.session.get(Game, game_id)
            reason = None
            if game is None:
                reason = "unknown game"
            elif not game.has_team(team):
                reason = f"{team!r} is not playing in this game"
            elif not game.is_pickable(now, lock_at_kickoff):
                if game.status == GameStatus.SCHEDULED:
                    reason = "game has started"
                else:
                    reason = f"game is {game.status}"

            if reason:
                result.rejected[str(game_id)] = reason
                logger.warning(f"Rejected pick from user {user_id} on game {game_id}: {reason}")
                continue

            if self._insert_or_ignore(user_id, game_id, team, now):
                result.created += 1
            else:
                result.ignored += 1
                logger.debug(f"User {user_id} already picked game {game_id}, keeping first pick")

        self.session.commit()
        if result.created:
            invalidate_model_cache("Pick")

        logger.info(
            f"User {user_id} submitted {len(selections)} picks: {result.created} created, "
            f"{result.ignored} ignored, {len(result.rejected)} rejected"
        )
        return result

    def get_user_picks(self, user_id, season, week=None):
        query = (
            select(Pick)
            .join(Game, Pick.game_id == Game.id)
            .where(Pick.user_id == user_id, Game.season == season)
            .order_by(Game.week, Game.game_time, Game.id)
        )
        if week is not None:
            query = query.where(Game.week == week)
        return list(self.session.execute(query).scalars())
