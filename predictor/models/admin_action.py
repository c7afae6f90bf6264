from datetime import datetime, timezone

from predictor import db


class AdminAction(db.Model):
    __tablename__ = "admin_actions"

    id = db.Column(db.Integer, primary_key=True)

    # Operator name as given on the command line, free text
    performed_by = db.Column(db.String(128))

    # Action type and details
    action_type = db.Column(
        db.String(50), nullable=False
    )  # 'unfinalize_gameweek', 'set_override', 'recalculate_scores', etc.
    action_description = db.Column(db.String(500), nullable=False)

    # Related object IDs for context
    gameweek = db.Column(db.Integer, nullable=True)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=True)

    # Additional context data (JSON)
    action_metadata = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Indexes
    __table_args__ = (
        db.Index("idx_admin_action_type", "action_type"),
        db.Index("idx_admin_action_created", "created_at"),
    )

    def __repr__(self):
        return f"<AdminAction {self.action_type} by {self.performed_by or 'system'}>"

    @staticmethod
    def log_action(
        action_type,
        description,
        performed_by=None,
        gameweek=None,
        league_id=None,
        action_metadata=None,
    ):
        """Log an admin action"""
        action = AdminAction(
            performed_by=performed_by,
            action_type=action_type,
            action_description=description,
            gameweek=gameweek,
            league_id=league_id,
            action_metadata=action_metadata or {},
        )

        db.session.add(action)
        return action

    @staticmethod
    def log_unfinalize(gameweek, reversed_points, performed_by=None):
        """Convenience method for logging an un-finalize with its rollback"""
        return AdminAction.log_action(
            action_type="unfinalize_gameweek",
            description=f"Un-finalized gameweek {gameweek}, reversed {len(reversed_points)} user totals",
            performed_by=performed_by,
            gameweek=gameweek,
            action_metadata={"reversed_points": reversed_points},
        )

    @staticmethod
    def log_override(override, performed_by=None):
        """Convenience method for logging a manual score correction"""
        return AdminAction.log_action(
            action_type="set_override",
            description=(
                f"Set score of match {override.match_id} (Gameweek {override.gameweek}) "
                f"to {override.home_score}-{override.away_score}"
            ),
            performed_by=performed_by,
            gameweek=override.gameweek,
            action_metadata=override.to_dict(),
        )

    @staticmethod
    def log_override_cleared(override, performed_by=None):
        """Convenience method for logging removal of a score correction"""
        return AdminAction.log_action(
            action_type="clear_override",
            description=(
                f"Removed score override {override.home_score}-{override.away_score} "
                f"for match {override.match_id} (Gameweek {override.gameweek})"
            ),
            performed_by=performed_by,
            gameweek=override.gameweek,
            action_metadata=override.to_dict(),
        )

    @staticmethod
    def log_fixture_regeneration(league, from_gameweek, performed_by=None):
        """Convenience method for logging fixture regeneration"""
        return AdminAction.log_action(
            action_type="regenerate_fixtures",
            description=f"Regenerated fixtures for {league.name} from gameweek {from_gameweek}",
            performed_by=performed_by,
            gameweek=from_gameweek,
            league_id=league.id,
            action_metadata={"members": league.member_ids()},
        )

    def to_dict(self):
        """Convert action to dictionary for API responses"""
        return {
            "id": self.id,
            "performed_by": self.performed_by,
            "action_type": self.action_type,
            "action_description": self.action_description,
            "gameweek": self.gameweek,
            "league_id": self.league_id,
            "action_metadata": self.action_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
