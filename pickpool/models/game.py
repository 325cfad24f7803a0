from datetime import datetime, timezone

from pickpool import db


class GameStatus:
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"
    POSTPONED = "postponed"
    CANCELED = "canceled"

    ALL = (SCHEDULED, IN_PROGRESS, FINAL, POSTPONED, CANCELED)


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Game identity - immutable once created
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=False)
    home_team = db.Column(db.String(50), nullable=False)
    away_team = db.Column(db.String(50), nullable=False)

    # Game timing
    game_time = db.Column(db.DateTime(timezone=True))

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    status = db.Column(db.String(20), nullable=False, default=GameStatus.SCHEDULED)

    # External ID from the odds feed
    external_id = db.Column(db.String(64), index=True)

    spread = db.Column(db.Float)  # Home team perspective (negative = home favored)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    # Indexes
    __table_args__ = (
        db.UniqueConstraint(
            "season", "week", "home_team", "away_team", name="unique_game_identity"
        ),
        db.Index("idx_game_season_week", "season", "week"),
        db.Index("idx_game_status", "status"),
        db.CheckConstraint("home_team != away_team", name="different_teams"),
        db.CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'final', 'postponed', 'canceled')",
            name="valid_game_status",
        ),
        db.CheckConstraint(
            "(status = 'final' AND home_score IS NOT NULL AND away_score IS NOT NULL)"
            " OR (status != 'final' AND home_score IS NULL AND away_score IS NULL)",
            name="final_iff_scored",
        ),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} {self.season} Week {self.week}>"

    @property
    def is_final(self):
        return self.status == GameStatus.FINAL

    @property
    def is_tie(self):
        """Check if game ended in a tie"""
        return self.is_final and self.home_score == self.away_score

    @property
    def winning_team(self):
        """Get the winning team abbreviation (None if game not final or tie)"""
        if not self.is_final or self.is_tie:
            return None

        if self.home_score > self.away_score:
            return self.home_team
        return self.away_team

    @property
    def margin_of_victory(self):
        """Get margin of victory (None if game not final)"""
        if not self.is_final:
            return None

        return abs(self.home_score - self.away_score)

    def has_team(self, team):
        return team in (self.home_team, self.away_team)

    def has_started(self, now=None):
        """Check if game has started"""
        if not self.game_time:
            return False
        now = now or datetime.now(timezone.utc)
        game_time = self.game_time

        # If game_time is timezone-naive, assume it's in UTC
        if game_time.tzinfo is None:
            game_time = game_time.replace(tzinfo=timezone.utc)

        return now >= game_time

    def is_pickable(self, now=None, lock_at_kickoff=True):
        """Check if game is open for picks"""
        if self.status != GameStatus.SCHEDULED:
            return False
        return not (lock_at_kickoff and self.has_started(now))

    def get_picks_count(self):
        """Get count of picks for each team"""
        home_picks = self.picks.filter_by(selected_team=self.home_team).count()
        away_picks = self.picks.filter_by(selected_team=self.away_team).count()

        return {
            "home_team": home_picks,
            "away_team": away_picks,
            "total": home_picks + away_picks,
        }

    def to_dict(self, include_picks_count=False):
        """Convert game to dictionary for API responses"""
        data = {
            "id": self.id,
            "season": self.season,
            "week": self.week,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "game_time": self.game_time.isoformat() if self.game_time else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status,
            "spread": self.spread,
            "external_id": self.external_id,
            "winning_team": self.winning_team,
            "margin_of_victory": self.margin_of_victory,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_picks_count:
            data["picks_count"] = self.get_picks_count()

        return data
