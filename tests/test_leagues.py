from predictor import db
from predictor.models import AdminAction
from predictor.services.finalization_service import FinalizationService
from predictor.services.standings_service import (
    get_classic_standings,
    get_gameweek_leaderboard,
    get_h2h_table,
)
from predictor.utils.settings import SeasonSettings

SETTINGS = SeasonSettings()


def test_h2h_league_recruits_until_started(make_user, make_league):
    users = [make_user(uid) for uid in ("a", "b", "c")]
    league = make_league("Office", users, league_type="h2h")

    assert league.status == "recruiting"
    assert league.member_ids() == ["a", "b", "c"]

    ok, _ = league.start_season(SETTINGS)
    db.session.commit()

    assert ok is True
    assert league.status == "active"
    fixtures = league.get_fixtures()
    assert sorted(fixtures) == list(range(1, 39))
    assert all(len(pairs) == 2 for pairs in fixtures.values())


def test_started_h2h_league_refuses_new_members(make_user, make_league):
    league = make_league("Office", [make_user("a"), make_user("b")], league_type="h2h")
    league.start_season(SETTINGS)
    db.session.commit()

    ok, message = league.add_member(make_user("late"))

    assert ok is False
    assert "locked" in message


def test_start_needs_two_players(make_user, make_league):
    league = make_league("Solo", [make_user("a")], league_type="h2h")
    ok, _ = league.start_season(SETTINGS)
    assert ok is False


def test_classic_league_has_no_fixtures(make_user, make_league):
    league = make_league("Pub", [make_user("a"), make_user("b")])
    assert league.status == "active"
    assert league.start_season(SETTINGS)[0] is False


def test_regenerate_keeps_played_rounds(make_user, make_league):
    users = [make_user(uid) for uid in ("a", "b", "c", "d")]
    league = make_league("Office", users, league_type="h2h")
    league.start_season(SETTINGS)
    db.session.commit()
    before = league.get_fixtures()

    league.status = "recruiting"
    league.add_member(make_user("e"))
    league.status = "active"
    ok, _ = league.regenerate_fixtures(5, SETTINGS)
    AdminAction.log_fixture_regeneration(league, 5)
    db.session.commit()

    after = league.get_fixtures()
    assert ok is True
    for gameweek in range(1, 5):
        assert after[gameweek] == before[gameweek]
    assert all(len(after[gameweek]) == 3 for gameweek in range(5, 39))
    assert AdminAction.query.filter_by(action_type="regenerate_fixtures").count() == 1


def test_regenerate_rejects_invalid_gameweek(make_user, make_league):
    league = make_league("Office", [make_user("a"), make_user("b")], league_type="h2h")
    league.start_season(SETTINGS)
    db.session.commit()

    assert league.regenerate_fixtures(0, SETTINGS) == (False, "Invalid gameweek")


def test_gameweek_leaderboard_for_league(finished_gameweek, make_user, make_league):
    alice, _ = finished_gameweek
    league = make_league("Pair", [alice, make_user("carol")])

    payload, error = get_gameweek_leaderboard(1, league_id=league.id)

    assert error is None
    assert [row["user_id"] for row in payload["leaderboard"]] == ["alice"]
    assert payload["leaderboard"][0]["rank"] == 1


def test_gameweek_leaderboard_messages(app, make_match):
    payload, _ = get_gameweek_leaderboard(4)
    assert payload["message"] == "Waiting for match data for this gameweek"

    make_match("m9", gameweek=4, status="TIMED")
    payload, _ = get_gameweek_leaderboard(4)
    assert payload["message"] == "No one has made predictions yet"
    assert payload["leaderboard"] == []


def test_unknown_league(app):
    assert get_gameweek_leaderboard(1, league_id=999) == (None, "League not found")
    assert get_classic_standings(999) == (None, "League not found")


def test_classic_standings_rank_by_total(finished_gameweek, make_league):
    alice, bob = finished_gameweek
    league = make_league("Pub", [bob, alice])
    FinalizationService().finalize_gameweek(1)

    payload, _ = get_classic_standings(league.id)

    assert [row["user_id"] for row in payload["standings"]] == ["alice", "bob"]
    assert payload["standings"][0]["total_score"] == 5


def test_h2h_table_uses_finalized_points(finished_gameweek, make_league):
    alice, bob = finished_gameweek
    league = make_league("Duel", [alice, bob], league_type="h2h")
    league.start_season(SETTINGS)
    db.session.commit()

    payload, _ = get_h2h_table(league.id, 2, settings=SETTINGS)
    assert all(row["played"] == 0 for row in payload["standings"])

    FinalizationService().finalize_gameweek(1)
    payload, _ = get_h2h_table(league.id, 2, settings=SETTINGS)

    leader = payload["standings"][0]
    assert (leader["id"], leader["won"], leader["league_points"], leader["points_for"]) == (
        "alice",
        1,
        3,
        5,
    )
    assert payload["fixtures"][0]["player1_name"] in ("Alice", "Bob")


def test_h2h_table_rejects_classic_league(finished_gameweek, make_league):
    alice, bob = finished_gameweek
    league = make_league("Pub", [alice, bob])

    payload, error = get_h2h_table(league.id, 2, settings=SETTINGS)

    assert payload is None
    assert error == "League is not a Head-to-Head league"
