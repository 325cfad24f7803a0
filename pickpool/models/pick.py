from datetime import datetime, timezone

from pickpool import db


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification. Users live in the external account service.
    user_id = db.Column(db.Integer, nullable=False)
    game_id = db.Column(
        db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )

    selected_team = db.Column(db.String(50), nullable=False)

    # None until the game is final and graded
    is_correct = db.Column(db.Boolean)

    # Timestamps
    submitted_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    graded_at = db.Column(db.DateTime)

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "game_id", name="unique_user_game_pick"),
        db.Index("idx_pick_game", "game_id"),
        db.Index("idx_pick_user", "user_id"),
        db.Index("idx_pick_game_ungraded", "game_id", "is_correct"),
    )

    def __repr__(self):
        return f"<Pick user_id={self.user_id} game_id={self.game_id} team={self.selected_team}>"

    @property
    def week(self):
        """Get the week number from the associated game"""
        return self.game.week if self.game else None

    @property
    def is_graded(self):
        return self.is_correct is not None

    def to_dict(self, include_game=True):
        """Convert pick to dictionary for API responses"""
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "game_id": self.game_id,
            "week": self.week,
            "selected_team": self.selected_team,
            "is_correct": self.is_correct,
            "is_graded": self.is_graded,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
        }
        if include_game:
            data["game"] = self.game.to_dict() if self.game else None
        return data
