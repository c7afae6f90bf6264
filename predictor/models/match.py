from datetime import datetime, timezone

from predictor import db
from predictor.utils.aggregation import FINISHED

MATCH_STATUSES = (
    "SCHEDULED",
    "TIMED",
    "IN_PLAY",
    "PAUSED",
    FINISHED,
    "SUSPENDED",
    "POSTPONED",
    "CANCELLED",
    "AWARDED",
)
UPCOMING_STATUSES = ("SCHEDULED", "TIMED")


class Match(db.Model):
    __tablename__ = "matches"

    # External id from the match data provider, stable across refreshes
    id = db.Column(db.String(50), primary_key=True)
    gameweek = db.Column(db.Integer, nullable=False)

    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)
    home_crest = db.Column(db.String(500))
    away_crest = db.Column(db.String(500))

    kickoff = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="SCHEDULED")

    # Full-time score, both or neither
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    synced_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("idx_match_gameweek", "gameweek"),
        db.Index("idx_match_kickoff", "kickoff"),
        db.CheckConstraint(
            "(home_score IS NULL AND away_score IS NULL) OR "
            "(home_score IS NOT NULL AND away_score IS NOT NULL)",
            name="score_both_or_neither",
        ),
    )

    def __repr__(self):
        return f"<Match {self.home_team} vs {self.away_team} GW{self.gameweek}>"

    @property
    def is_finished(self):
        return self.status == FINISHED

    def has_kicked_off(self, now=None):
        """Check if the match has kicked off, which locks predictions"""
        if not self.kickoff:
            return False
        now = now or datetime.now(timezone.utc)
        kickoff = self.kickoff

        # If kickoff is timezone-naive, assume it's in UTC
        if kickoff.tzinfo is None:
            kickoff = kickoff.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        return now >= kickoff

    @staticmethod
    def get_for_gameweek(gameweek):
        """Get all cached matches for a gameweek ordered by kickoff"""
        return (
            Match.query.filter_by(gameweek=gameweek)
            .order_by(Match.kickoff, Match.id)
            .all()
        )

    @staticmethod
    def detect_current_gameweek(total_gameweeks=38):
        """Gameweek of the next match still to be played, else the last gameweek"""
        upcoming = (
            Match.query.filter(Match.status.in_(UPCOMING_STATUSES))
            .order_by(Match.kickoff, Match.id)
            .first()
        )
        if upcoming:
            return upcoming.gameweek
        return total_gameweeks

    def to_dict(self, override=None):
        """Convert match to dictionary for API responses"""
        from predictor.utils.timezone_utils import format_kickoff

        data = {
            "id": self.id,
            "gameweek": self.gameweek,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_crest": self.home_crest,
            "away_crest": self.away_crest,
            "kickoff": self.kickoff.isoformat() if self.kickoff else None,
            "kickoff_local": format_kickoff(self.kickoff),
            "status": self.status,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "is_locked": self.has_kicked_off(),
            "overridden": override is not None,
        }

        if override is not None:
            data["home_score"] = override.home_score
            data["away_score"] = override.away_score

        return data


class ScoreOverride(db.Model):
    """Manual score correction that wins over the cached provider score"""

    __tablename__ = "score_overrides"

    id = db.Column(db.Integer, primary_key=True)
    gameweek = db.Column(db.Integer, nullable=False)
    match_id = db.Column(db.String(50), nullable=False)
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("gameweek", "match_id", name="unique_gameweek_match_override"),
        db.CheckConstraint(
            "home_score >= 0 AND away_score >= 0", name="override_non_negative"
        ),
    )

    def __repr__(self):
        return f"<ScoreOverride GW{self.gameweek} match={self.match_id} {self.home_score}-{self.away_score}>"

    @staticmethod
    def for_gameweek(gameweek):
        """Return {match_id: ScoreOverride} for a gameweek"""
        return {
            override.match_id: override
            for override in ScoreOverride.query.filter_by(gameweek=gameweek).all()
        }

    @staticmethod
    def set_override(gameweek, match_id, home_score, away_score, reason=None):
        """Create or update an override"""
        if home_score < 0 or away_score < 0:
            return None, "Scores must be non-negative"

        override = ScoreOverride.query.filter_by(
            gameweek=gameweek, match_id=str(match_id)
        ).first()
        if override:
            override.home_score = home_score
            override.away_score = away_score
            override.reason = reason
            return override, "Override updated"

        override = ScoreOverride(
            gameweek=gameweek,
            match_id=str(match_id),
            home_score=home_score,
            away_score=away_score,
            reason=reason,
        )
        db.session.add(override)
        return override, "Override created"

    @staticmethod
    def clear_override(gameweek, match_id):
        """Delete an override; returns the removed row for the audit log"""
        override = ScoreOverride.query.filter_by(
            gameweek=gameweek, match_id=str(match_id)
        ).first()
        if not override:
            return None, f"No override for match {match_id} in gameweek {gameweek}"

        db.session.delete(override)
        return override, "Override removed"

    def to_dict(self):
        return {
            "gameweek": self.gameweek,
            "match_id": self.match_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "reason": self.reason,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
