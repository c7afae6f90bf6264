from datetime import datetime, timezone

from predictor import db
from predictor.utils.aggregation import PredictionEntry
from predictor.utils.scoring import parse_goal_count


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    gameweek = db.Column(
        db.Integer, db.ForeignKey("gameweeks.number"), nullable=False
    )
    user_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=False)
    user_name = db.Column(db.String(100))

    # {match_id: {"home": h, "away": a}}
    scores = db.Column(db.JSON, nullable=False, default=dict)

    # Frozen at finalization, NULL until then
    points = db.Column(db.Integer, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("gameweek", "user_id", name="unique_gameweek_user_prediction"),
        db.Index("idx_prediction_gameweek", "gameweek"),
        db.Index("idx_prediction_user", "user_id"),
    )

    def __repr__(self):
        return f"<Prediction GW{self.gameweek} user={self.user_id} points={self.points}>"

    def to_entry(self):
        """Snapshot used by the aggregation functions"""
        return PredictionEntry(
            user_id=self.user_id, scores=dict(self.scores or {}), user_name=self.user_name
        )

    @staticmethod
    def get_for_gameweek(gameweek):
        return Prediction.query.filter_by(gameweek=gameweek).all()

    @staticmethod
    def frozen_points_by_gameweek(gameweeks=None):
        """Return {gameweek: {user_id: points}} for predictions with frozen points"""
        query = Prediction.query.filter(Prediction.points.isnot(None))
        if gameweeks is not None:
            query = query.filter(Prediction.gameweek.in_(list(gameweeks)))

        table = {}
        for prediction in query.all():
            table.setdefault(prediction.gameweek, {})[prediction.user_id] = prediction.points
        return table

    @staticmethod
    def submit(gameweek, user, scores, now=None):
        """
        Create or update a user's predictions for a gameweek.

        Matches that have kicked off are locked: their stored entry is kept and
        any attempted change is reported back. A finalized gameweek refuses all
        changes.

        Returns:
            (prediction, message) - prediction is None when nothing was saved
        """
        from .gameweek import Gameweek
        from .match import Match

        gameweek_row = Gameweek.get_or_create(gameweek)
        if gameweek_row.is_finalized:
            return None, "Gameweek is already finalized"

        if not isinstance(scores, dict):
            return None, "Scores must be a mapping of match id to score"

        matches = {match.id: match for match in Match.get_for_gameweek(gameweek)}

        prediction = Prediction.query.filter_by(gameweek=gameweek, user_id=user.id).first()
        stored = dict(prediction.scores or {}) if prediction else {}

        updated = dict(stored)
        locked = []
        for match_id, raw in scores.items():
            match_id = str(match_id)
            match = matches.get(match_id)
            if match is None:
                return None, f"Match {match_id} is not part of gameweek {gameweek}"

            if not isinstance(raw, dict):
                return None, f"Invalid score for match {match_id}"
            entry = {"home": parse_goal_count(raw.get("home")), "away": parse_goal_count(raw.get("away"))}
            if entry["home"] is None or entry["away"] is None:
                return None, f"Invalid score for match {match_id}"

            if match.has_kicked_off(now):
                if stored.get(match_id) != entry:
                    locked.append(match_id)
                continue

            updated[match_id] = entry

        # Never store an empty prediction row
        if prediction is None and not updated:
            if locked:
                return None, f"Matches already kicked off: {', '.join(sorted(locked))}"
            return None, "No predictions supplied"

        if prediction is None:
            prediction = Prediction(gameweek=gameweek, user_id=user.id, scores=updated)
            db.session.add(prediction)
        else:
            prediction.scores = updated
        prediction.user_name = user.display_name

        if locked:
            return prediction, f"Saved; locked matches unchanged: {', '.join(sorted(locked))}"
        return prediction, "Predictions saved"

    def to_dict(self):
        """Convert prediction to dictionary for API responses"""
        return {
            "gameweek": self.gameweek,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "scores": self.scores or {},
            "points": self.points,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
