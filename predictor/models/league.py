import secrets
from datetime import datetime, timezone

from predictor import db
from predictor.utils.fixtures import generate_season_fixtures, regenerate_fixtures

LEAGUE_TYPES = ("classic", "h2h")


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # "classic" ranks by total points, "h2h" plays a round-robin
    league_type = db.Column(db.String(20), nullable=False, default="classic")
    # "recruiting" until an h2h league starts, classic leagues are always "active"
    status = db.Column(db.String(20), nullable=False, default="active")

    # Group code for easy joining
    invite_code = db.Column(db.String(8), unique=True, nullable=False, index=True)

    admin_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    started_at = db.Column(db.DateTime)

    # Relationships
    members = db.relationship(
        "LeagueMember",
        backref="league",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="LeagueMember.position",
    )
    fixture_rows = db.relationship(
        "LeagueFixture", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_league_type", "league_type"),
        db.CheckConstraint("league_type IN ('classic', 'h2h')", name="valid_league_type"),
    )

    def __repr__(self):
        return f"<League {self.name} ({self.league_type})>"

    def __init__(self, **kwargs):
        super(League, self).__init__(**kwargs)
        if not self.invite_code:
            self.invite_code = self.generate_invite_code()
        if not self.status:
            self.status = "recruiting" if self.league_type == "h2h" else "active"

    @staticmethod
    def generate_invite_code():
        """Generate a unique 8-character invite code"""
        while True:
            code = secrets.token_urlsafe(6)[:8].upper()
            if not League.query.filter_by(invite_code=code).first():
                return code

    @property
    def is_h2h(self):
        return self.league_type == "h2h"

    def member_ids(self):
        """Member user ids in join order"""
        return [member.user_id for member in self.members.all()]

    def add_member(self, user):
        """Add a user to the league"""
        if self.members.filter_by(user_id=user.id).first():
            return False, "User is already a member"

        if self.is_h2h and self.status == "active":
            return False, "Season already started, fixtures are locked"

        position = self.members.count()
        db.session.add(LeagueMember(league_id=self.id, user_id=user.id, position=position))
        return True, "User added successfully"

    def get_fixtures(self):
        """Return {gameweek: [{"player1": ..., "player2": ...}]}"""
        fixtures = {}
        rows = self.fixture_rows.order_by(LeagueFixture.gameweek, LeagueFixture.slot).all()
        for row in rows:
            fixtures.setdefault(row.gameweek, []).append(
                {"player1": row.player1_id, "player2": row.player2_id}
            )
        return fixtures

    def _write_fixtures(self, fixtures, from_gameweek=1):
        self.fixture_rows.filter(LeagueFixture.gameweek >= from_gameweek).delete(
            synchronize_session=False
        )
        for gameweek, pairs in fixtures.items():
            if gameweek < from_gameweek:
                continue
            for slot, pair in enumerate(pairs):
                db.session.add(
                    LeagueFixture(
                        league_id=self.id,
                        gameweek=gameweek,
                        slot=slot,
                        player1_id=pair["player1"],
                        player2_id=pair["player2"],
                    )
                )

    def start_season(self, settings):
        """Lock the member list and generate the full season of fixtures"""
        if not self.is_h2h:
            return False, "Only Head-to-Head leagues have fixtures"

        if self.status == "active":
            return False, "Season already started"

        members = self.member_ids()
        if len(members) < 2:
            return False, "Need at least 2 players to start"

        fixtures = generate_season_fixtures(
            members, settings.bye_participant_id, settings.total_gameweeks
        )
        self._write_fixtures(fixtures)
        self.status = "active"
        self.started_at = datetime.now(timezone.utc)
        return True, f"Season started with {len(members)} players"

    def regenerate_fixtures(self, from_gameweek, settings):
        """Replace fixtures from a gameweek onward for the current members"""
        if not self.is_h2h or self.status != "active":
            return False, "Only started Head-to-Head leagues can regenerate fixtures"

        if not settings.is_valid_gameweek(from_gameweek):
            return False, "Invalid gameweek"

        members = self.member_ids()
        if len(members) < 2:
            return False, "Need at least 2 players"

        fixtures = regenerate_fixtures(
            self.get_fixtures(),
            members,
            from_gameweek,
            settings.bye_participant_id,
            settings.total_gameweeks,
        )
        self._write_fixtures(fixtures, from_gameweek=from_gameweek)
        return True, f"Fixtures updated from gameweek {from_gameweek}"

    def to_dict(self, include_members=False):
        """Convert league to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.league_type,
            "status": self.status,
            "invite_code": self.invite_code,
            "member_count": self.members.count(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }

        if include_members:
            data["members"] = [member.to_dict() for member in self.members.all()]

        return data


class LeagueMember(db.Model):
    __tablename__ = "league_members"

    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    user_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=False)

    # Join order, which seeds the round-robin
    position = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "league_id", name="unique_user_league"),
        db.Index("idx_league_members_position", "league_id", "position"),
    )

    def __repr__(self):
        return f"<LeagueMember user_id={self.user_id} league_id={self.league_id}>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "display_name": self.user.full_name if self.user else None,
            "position": self.position,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }


class LeagueFixture(db.Model):
    __tablename__ = "league_fixtures"

    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    gameweek = db.Column(db.Integer, nullable=False)
    slot = db.Column(db.Integer, nullable=False)

    # Either player may be the bye participant id, so no foreign key
    player1_id = db.Column(db.String(128), nullable=False)
    player2_id = db.Column(db.String(128), nullable=False)

    __table_args__ = (
        db.UniqueConstraint("league_id", "gameweek", "slot", name="unique_league_fixture_slot"),
        db.Index("idx_fixture_league_gameweek", "league_id", "gameweek"),
    )

    def __repr__(self):
        return f"<LeagueFixture league={self.league_id} GW{self.gameweek} {self.player1_id} v {self.player2_id}>"
