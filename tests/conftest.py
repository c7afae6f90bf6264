from datetime import datetime, timezone

import pytest

from predictor import create_app, db
from predictor.models import Gameweek, League, Match, Prediction, User

PAST = datetime(2025, 8, 16, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(request, tmp_path, monkeypatch):
    if request.node.get_closest_marker("file_db"):
        monkeypatch.setenv("TEST_DATABASE_URL", f"sqlite:///{tmp_path / 'predictor.db'}")
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(user_id, display_name=None, total_score=0):
        user = User(id=user_id, total_score=total_score)
        user.set_display_name(display_name or user_id.title())
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_match(app):
    def _make_match(
        match_id,
        gameweek=1,
        home_score=None,
        away_score=None,
        status="FINISHED",
        kickoff=PAST,
    ):
        match = Match(
            id=match_id,
            gameweek=gameweek,
            home_team=f"Home {match_id}",
            away_team=f"Away {match_id}",
            kickoff=kickoff,
            status=status,
            home_score=home_score,
            away_score=away_score,
        )
        db.session.add(match)
        db.session.commit()
        return match

    return _make_match


@pytest.fixture
def make_prediction(app):
    def _make_prediction(gameweek, user, scores):
        Gameweek.get_or_create(gameweek)
        prediction = Prediction(
            gameweek=gameweek,
            user_id=user.id,
            user_name=user.display_name,
            scores={
                match_id: {"home": home, "away": away}
                for match_id, (home, away) in scores.items()
            },
        )
        db.session.add(prediction)
        db.session.commit()
        return prediction

    return _make_prediction


@pytest.fixture
def make_league(app):
    def _make_league(name, users, league_type="classic"):
        league = League(name=name, league_type=league_type)
        db.session.add(league)
        db.session.commit()
        for user in users:
            league.add_member(user)
        db.session.commit()
        return league

    return _make_league


@pytest.fixture
def finished_gameweek(make_user, make_match, make_prediction):
    """Three finished matches, alice scores 5 and bob scores 1"""
    alice = make_user("alice")
    bob = make_user("bob")

    make_match("m1", home_score=2, away_score=1)
    make_match("m2", home_score=0, away_score=0)
    make_match("m3", home_score=1, away_score=3)

    make_prediction(1, alice, {"m1": (2, 1), "m2": (1, 1), "m3": (0, 2)})
    make_prediction(1, bob, {"m1": (1, 0), "m2": (2, 0), "m3": (3, 1)})

    return alice, bob