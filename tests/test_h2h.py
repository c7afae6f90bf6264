from predictor.utils.h2h import bye_score, calculate_h2h_standings, round_half_up

BYE = "AVERAGE"


def table(members, fixtures, finalized, points, current):
    standings = calculate_h2h_standings(members, fixtures, finalized, points, current, BYE)
    return {record.participant_id: record for record in standings}, standings


def test_win_awards_three_points():
    records, standings = table(
        ["a", "b"], {1: [{"player1": "a", "player2": "b"}]}, {1}, {1: {"a": 5, "b": 3}}, 2
    )

    assert standings[0].participant_id == "a"
    assert (records["a"].won, records["a"].league_points, records["a"].points_for) == (1, 3, 5)
    assert (records["b"].lost, records["b"].league_points, records["b"].points_for) == (1, 0, 3)


def test_draw_awards_one_point_each():
    records, _ = table(
        ["a", "b"], {1: [{"player1": "a", "player2": "b"}]}, {1}, {1: {"a": 4, "b": 4}}, 2
    )

    assert records["a"].drawn == records["b"].drawn == 1
    assert records["a"].league_points == records["b"].league_points == 1


def test_unfinalized_and_current_gameweeks_are_skipped():
    fixtures = {g: [{"player1": "a", "player2": "b"}] for g in (1, 2, 3)}
    points = {1: {"a": 2, "b": 1}, 2: {"a": 0, "b": 9}, 3: {"a": 0, "b": 9}}

    records, _ = table(["a", "b"], fixtures, {1, 3}, points, 3)

    assert records["a"].played == 1
    assert records["a"].league_points == 3
    assert records["b"].points_for == 1


def test_missing_score_counts_as_zero():
    records, _ = table(
        ["a", "b"], {1: [{"player1": "a", "player2": "b"}]}, {1}, {1: {"b": 1}}, 2
    )
    assert records["b"].won == 1
    assert records["a"].points_for == 0


def test_bye_plays_rounded_average_of_scoring_members():
    fixtures = {1: [{"player1": "a", "player2": BYE}, {"player1": "b", "player2": "c"}]}
    points = {1: {"a": 5, "b": 2, "c": 4}}

    records, standings = table(["a", "b", "c"], fixtures, {1}, points, 2)

    # (5 + 2 + 4) / 3 = 3.67 -> 4
    assert records[BYE].points_for == 4
    assert records[BYE].lost == 1
    assert records["a"].won == 1
    assert records[BYE].name == "Average Bot"
    assert len(standings) == 4


def test_bye_score_rounds_half_up():
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2
    assert bye_score(["a", "b", "c"], {"a": 1, "b": 2}) == 2
    assert bye_score(["a"], {}) == 0


def test_no_bye_record_for_even_league():
    _, standings = table(["a", "b"], {1: [{"player1": "a", "player2": "b"}]}, set(), {}, 5)
    assert [r.participant_id for r in standings] == ["a", "b"]


def test_non_member_fixture_participant_is_ignored():
    records, _ = table(
        ["a", "b"],
        {1: [{"player1": "a", "player2": "gone"}]},
        {1},
        {1: {"a": 2, "gone": 1}},
        2,
    )

    assert "gone" not in records
    assert records["a"].won == 1


def test_ordering_breaks_ties_by_points_for_then_id():
    fixtures = {
        1: [{"player1": "a", "player2": "b"}, {"player1": "c", "player2": "d"}],
    }
    points = {1: {"a": 6, "b": 0, "c": 6, "d": 0}}

    _, standings = table(["d", "c", "b", "a"], fixtures, {1}, points, 2)

    assert [r.participant_id for r in standings] == ["a", "c", "b", "d"]
