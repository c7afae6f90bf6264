import html
from datetime import datetime, timezone

from predictor import db


class User(db.Model):
    __tablename__ = "users"

    # Account id issued by the external auth provider
    id = db.Column(db.String(128), primary_key=True)
    display_name = db.Column(db.String(100))

    # Sum of every finalized gameweek applied to this user
    total_score = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (db.Index("idx_user_total_score", "total_score"),)

    def __repr__(self):
        return f"<User {self.id}>"

    def set_display_name(self, display_name):
        """Set display name with sanitization"""
        if display_name:
            self.display_name = html.escape(display_name.strip())
        else:
            self.display_name = display_name

    @property
    def full_name(self):
        return self.display_name or "Unknown"

    @staticmethod
    def valid_ids():
        """Ids of all existing accounts"""
        return {row.id for row in db.session.query(User.id).all()}

    @staticmethod
    def display_names(user_ids=None):
        query = db.session.query(User.id, User.display_name)
        if user_ids is not None:
            query = query.filter(User.id.in_(list(user_ids)))
        return {row.id: row.display_name or "Unknown" for row in query.all()}

    @staticmethod
    def get_overall_leaderboard(user_ids=None):
        """Users ranked by season total, optionally restricted to a set of ids"""
        query = User.query
        if user_ids is not None:
            query = query.filter(User.id.in_(list(user_ids)))

        users = query.order_by(User.total_score.desc(), User.id.asc()).all()
        return [
            {
                "rank": index + 1,
                "user_id": user.id,
                "name": user.full_name,
                "total_score": user.total_score or 0,
            }
            for index, user in enumerate(users)
        ]

    def get_gameweek_points(self):
        """Frozen points per finalized gameweek for this user"""
        from .prediction import Prediction

        rows = (
            self.predictions.filter(Prediction.points.isnot(None))
            .order_by(Prediction.gameweek)
            .all()
        )
        return {row.gameweek: row.points for row in rows}

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "display_name": self.full_name,
            "total_score": self.total_score or 0,
        }
