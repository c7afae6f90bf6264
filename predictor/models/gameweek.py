from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from predictor import db


class Gameweek(db.Model):
    __tablename__ = "gameweeks"

    number = db.Column(db.Integer, primary_key=True, autoincrement=False)

    # Flips to True exactly once per finalization, guarded by a conditional UPDATE
    is_finalized = db.Column(db.Boolean, nullable=False, default=False)
    finalized_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        state = "finalized" if self.is_finalized else "open"
        return f"<Gameweek {self.number} {state}>"

    @staticmethod
    def get_or_create(number):
        """Fetch a gameweek row, creating it if it does not exist yet"""
        gameweek = db.session.get(Gameweek, number)
        if gameweek:
            return gameweek

        gameweek = Gameweek(number=number, is_finalized=False)
        db.session.add(gameweek)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request created it first
            db.session.rollback()
            gameweek = db.session.get(Gameweek, number)
        return gameweek

    @staticmethod
    def finalized_numbers():
        """Set of all finalized gameweek numbers"""
        rows = db.session.query(Gameweek.number).filter(Gameweek.is_finalized.is_(True))
        return {row.number for row in rows}
