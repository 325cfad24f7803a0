"""
Grading Engine for the pick pool

Picks are graded straight up: a pick is correct when its team scored
strictly more points. Spreads are informational only.

Grading only ever writes picks that are still ungraded, and only while the
game still holds the score that was read, so any number of overlapping
passes converge on the same result without locks.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from sqlalchemy import case, exists, select, update

from pickpool import db
from pickpool.exceptions import InvalidStateError
from pickpool.models import Game, GameStatus, Pick
from pickpool.services.schedule_repository import ScheduleRepository
from pickpool.utils.cache_utils import invalidate_model_cache

logger = logging.getLogger(__name__)

# Policy: an exact tie grades every pick on the game as incorrect. There is
# no push state. Pending product confirmation.
TIE_GRADES_AS_CORRECT = False


def grade_pick(selected_team, home_team, away_team, home_score, away_score):
    """
    Correctness of a single pick against a final score.

    Returns:
        True if the selected team scored strictly more points, otherwise
        False (ties follow TIE_GRADES_AS_CORRECT)
    """
    if home_score == away_score:
        return TIE_GRADES_AS_CORRECT
    winner = home_team if home_score > away_score else away_team
    return selected_team == winner


@dataclass
class GradingResult:
    graded_count: int = 0
    games_graded: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


class GradingEngine:
    """Grades ungraded picks on final games"""

    def __init__(self, session=None):
        self.session = session or db.session
        self.repository = ScheduleRepository(self.session)

    def _grade(self, game_id, home_team, away_team, home_score, away_score):
        if home_score == away_score:
            outcome = TIE_GRADES_AS_CORRECT
        else:
            winner = home_team if home_score > away_score else away_team
            outcome = case((Pick.selected_team == winner, True), else_=False)

        # Guard against a score correction landing between read and write
        unchanged_game = select(Game.id).where(
            Game.id == game_id,
            Game.status == GameStatus.FINAL,
            Game.home_score == home_score,
            Game.away_score == away_score,
        )

        result = self.session.execute(
            update(Pick)
            .where(
                Pick.game_id == game_id,
                Pick.is_correct.is_(None),
                Pick.game_id.in_(unchanged_game),
            )
            .values(is_correct=outcome, graded_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def grade_picked_games(self):
        """Grade every ungraded pick on every final game"""
        has_ungraded = exists().where(
            Pick.game_id == Game.id, Pick.is_correct.is_(None)
        )
        games = self.session.execute(
            select(
                Game.id,
                Game.home_team,
                Game.away_team,
                Game.home_score,
                Game.away_score,
            )
            .where(Game.status == GameStatus.FINAL, has_ungraded)
            .order_by(Game.id)
        ).all()

        result = GradingResult()
        for game in games:
            graded = self._grade(*game)
            if graded:
                result.graded_count += graded
                result.games_graded.append(game.id)
                logger.info(
                    f"Game {game.id} {game.away_team} {game.away_score} @ "
                    f"{game.home_team} {game.home_score}: graded {graded} picks"
                )

        self.session.commit()

        if result.graded_count:
            invalidate_model_cache("Pick")
            logger.info(
                f"Grading pass complete: {result.graded_count} picks across "
                f"{len(result.games_graded)} games"
            )
        return result

    def grade_game(self, game_id):
        """Grade one game; fails if the game is missing or not final"""
        game = self.repository.get_game(game_id)
        if not game.is_final:
            raise InvalidStateError(
                f"Game {game_id} is {game.status}, only final games can be graded"
            )
        if game.is_tie:
            logger.info(
                f"Game {game_id} ended tied {game.home_score}-{game.away_score}, "
                f"picks grade as {'correct' if TIE_GRADES_AS_CORRECT else 'incorrect'}"
            )

        graded = self._grade(
            game.id, game.home_team, game.away_team, game.home_score, game.away_score
        )
        self.session.commit()

        if graded:
            invalidate_model_cache("Pick")
        logger.info(f"Game {game_id}: graded {graded} picks")
        return graded
