import threading

import pytest
from sqlalchemy.exc import OperationalError

from predictor import db
from predictor.models import AdminAction, Gameweek, Prediction, User
from predictor.services import finalization_service
from predictor.services.finalization_service import FinalizationService


def totals():
    return {user.id: user.total_score for user in User.query.order_by(User.id).all()}


def frozen_points(gameweek=1):
    return {p.user_id: p.points for p in Prediction.query.filter_by(gameweek=gameweek).all()}


def test_status_reports_eligibility(finished_gameweek):
    status = FinalizationService().get_status(1)

    assert status["eligible"] is True
    assert status["match_count"] == 3
    assert status["finished_count"] == 3
    assert status["prediction_count"] == 2
    assert status["is_finalized"] is False


def test_finalize_applies_points_once(finished_gameweek):
    applied, _ = FinalizationService().finalize_gameweek(1)

    assert applied is True
    assert db.session.get(Gameweek, 1).is_finalized is True
    assert totals() == {"alice": 5, "bob": 1}
    assert frozen_points() == {"alice": 5, "bob": 1}


def test_repeated_finalization_is_a_no_op(finished_gameweek):
    service = FinalizationService()
    service.finalize_gameweek(1)

    for _ in range(3):
        applied, message = service.finalize_gameweek(1)
        assert applied is False
        assert "finalized" in message

    assert totals() == {"alice": 5, "bob": 1}


def test_stale_observers_apply_totals_once(finished_gameweek):
    first, second = FinalizationService(), FinalizationService()

    # Both observers see an eligible gameweek before either acts
    assert first.check_eligibility(1)[0] is True
    assert second.check_eligibility(1)[0] is True

    assert first.apply_finalization(1)[0] is True
    assert second.apply_finalization(1)[0] is False

    assert totals() == {"alice": 5, "bob": 1}


@pytest.mark.file_db
def test_concurrent_workers_apply_totals_once(app, finished_gameweek):
    workers = 8
    barrier = threading.Barrier(workers)
    results, errors = [], []

    def finalize():
        with app.app_context():
            barrier.wait()
            try:
                results.append(FinalizationService().finalize_gameweek(1)[0])
            except OperationalError as e:
                errors.append(e)
            finally:
                db.session.remove()

    db.session.remove()
    threads = [threading.Thread(target=finalize) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(results) == [False] * (workers - 1) + [True]
    assert totals() == {"alice": 5, "bob": 1}
    assert frozen_points() == {"alice": 5, "bob": 1}
    assert db.session.get(Gameweek, 1).is_finalized is True


def test_unfinished_gameweek_is_not_finalized(make_user, make_match, make_prediction):
    alice = make_user("alice")
    make_match("m1", home_score=1, away_score=0)
    make_match("m2", status="IN_PLAY", home_score=0, away_score=0)
    make_prediction(1, alice, {"m1": (1, 0)})

    applied, message = FinalizationService().finalize_gameweek(1)

    assert applied is False
    assert message == "1/2 matches finished"
    assert totals() == {"alice": 0}


def test_apply_rechecks_completion_inside_transaction(make_user, make_match, make_prediction):
    alice = make_user("alice")
    make_match("m1", status="IN_PLAY", home_score=0, away_score=0)
    make_prediction(1, alice, {"m1": (1, 0)})

    applied, _ = FinalizationService().apply_finalization(1)

    assert applied is False
    assert db.session.get(Gameweek, 1).is_finalized is False


def test_gameweek_without_data_is_not_eligible(app):
    eligible, message = FinalizationService().check_eligibility(5)
    assert eligible is False
    assert message == "Waiting for match data for this gameweek"


def test_two_gameweeks_accumulate(finished_gameweek, make_match, make_prediction):
    alice, bob = finished_gameweek
    make_match("m4", gameweek=2, home_score=3, away_score=0)
    make_prediction(2, alice, {"m4": (3, 0)})
    make_prediction(2, bob, {"m4": (1, 0)})

    service = FinalizationService()
    service.finalize_gameweek(1)
    service.finalize_gameweek(2)

    assert totals() == {"alice": 8, "bob": 2}


def test_storage_failure_rolls_back(finished_gameweek, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(finalization_service, "compute_gameweek_scores", broken)

    with pytest.raises(OperationalError):
        FinalizationService().finalize_gameweek(1)

    assert db.session.get(Gameweek, 1).is_finalized is False
    assert totals() == {"alice": 0, "bob": 0}
    assert frozen_points() == {"alice": None, "bob": None}


def test_unfinalize_reverses_points(finished_gameweek):
    service = FinalizationService()
    service.finalize_gameweek(1)

    applied, _ = service.unfinalize_gameweek(1, performed_by="ops")

    assert applied is True
    assert db.session.get(Gameweek, 1).is_finalized is False
    assert totals() == {"alice": 0, "bob": 0}
    assert frozen_points() == {"alice": None, "bob": None}

    action = AdminAction.query.filter_by(action_type="unfinalize_gameweek").one()
    assert action.performed_by == "ops"
    assert action.action_metadata["reversed_points"] == {"alice": 5, "bob": 1}


def test_refinalize_after_unfinalize_does_not_double_count(finished_gameweek):
    service = FinalizationService()
    service.finalize_gameweek(1)
    service.unfinalize_gameweek(1)

    applied, _ = service.finalize_gameweek(1)

    assert applied is True
    assert totals() == {"alice": 5, "bob": 1}


def test_unfinalize_open_gameweek_does_nothing(finished_gameweek):
    applied, _ = FinalizationService().unfinalize_gameweek(1)
    assert applied is False


def test_recalculate_rebuilds_totals_from_frozen_points(finished_gameweek):
    service = FinalizationService()
    service.finalize_gameweek(1)

    alice = db.session.get(User, "alice")
    alice.total_score = 99
    db.session.commit()

    assert service.recalculate_total_scores() == 2
    assert totals() == {"alice": 5, "bob": 1}
    assert AdminAction.query.filter_by(action_type="recalculate_scores").count() == 1


def test_reset_season(finished_gameweek):
    service = FinalizationService()
    service.finalize_gameweek(1)

    service.reset_season_scores()

    assert totals() == {"alice": 0, "bob": 0}
    assert Gameweek.finalized_numbers() == set()
    assert frozen_points() == {"alice": None, "bob": None}
