from collections import Counter

import pytest

from predictor.utils.fixtures import (
    build_base_schedule,
    generate_season_fixtures,
    regenerate_fixtures,
)

BYE = "AVERAGE"


def pairing(pair):
    return frozenset((pair["player1"], pair["player2"]))


def test_four_members_circle_method():
    schedule = build_base_schedule(["a", "b", "c", "d"], BYE)

    assert [[pairing(p) for p in round_] for round_ in schedule] == [
        [frozenset("ad"), frozenset("bc")],
        [frozenset("ac"), frozenset("db")],
        [frozenset("ab"), frozenset("cd")],
    ]


def test_every_round_includes_every_member_once():
    members = ["a", "b", "c", "d", "e", "f"]
    for round_ in build_base_schedule(members, BYE):
        players = [p for pair in round_ for p in (pair["player1"], pair["player2"])]
        assert sorted(players) == sorted(members)


def test_four_members_season_meets_everyone_12_or_13_times():
    fixtures = generate_season_fixtures(["a", "b", "c", "d"], BYE, total_gameweeks=38)

    assert sorted(fixtures) == list(range(1, 39))
    meetings = Counter(pairing(pair) for pairs in fixtures.values() for pair in pairs)

    assert len(meetings) == 6
    assert set(meetings.values()) <= {12, 13}
    assert sum(meetings.values()) == 76


def test_odd_league_gets_a_bye():
    members = ["a", "b", "c", "d", "e"]
    schedule = build_base_schedule(members, BYE)

    assert len(schedule) == 5
    assert all(len(round_) == 3 for round_ in schedule)

    byes = Counter(
        p
        for round_ in schedule
        for pair in round_
        if BYE in (pair["player1"], pair["player2"])
        for p in (pair["player1"], pair["player2"])
        if p != BYE
    )
    assert byes == Counter({member: 1 for member in members})


def test_no_members_no_fixtures():
    assert build_base_schedule([], BYE) == []
    assert generate_season_fixtures([], BYE) == {}


def test_regenerate_keeps_earlier_gameweeks():
    original = generate_season_fixtures(["a", "b", "c", "d"], BYE, total_gameweeks=38)
    members = ["a", "b", "c", "d", "e"]

    fixtures = regenerate_fixtures(original, members, 10, BYE, total_gameweeks=38)

    for gameweek in range(1, 10):
        assert fixtures[gameweek] == original[gameweek]

    base = build_base_schedule(members, BYE)
    assert fixtures[10] == base[0]
    assert fixtures[15] == base[0]
    assert fixtures[38] == base[(38 - 10) % 5]


def test_regenerate_rejects_out_of_range_gameweek():
    with pytest.raises(ValueError):
        regenerate_fixtures({}, ["a", "b"], 0, BYE, total_gameweeks=38)
    with pytest.raises(ValueError):
        regenerate_fixtures({}, ["a", "b"], 39, BYE, total_gameweeks=38)
