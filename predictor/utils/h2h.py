"""
Head-to-Head standings

Replays finalized gameweeks against a league's fixture table using the points
frozen at finalization time, never live scores.
"""

import math
from dataclasses import dataclass

WIN_POINTS = 3
DRAW_POINTS = 1


@dataclass
class H2HRecord:
    participant_id: str
    name: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    points_for: int = 0
    league_points: int = 0

    def record_game(self, scored, conceded):
        self.played += 1
        self.points_for += scored
        if scored > conceded:
            self.won += 1
            self.league_points += WIN_POINTS
        elif scored == conceded:
            self.drawn += 1
            self.league_points += DRAW_POINTS
        else:
            self.lost += 1

    def to_dict(self):
        return {
            "id": self.participant_id,
            "name": self.name,
            "played": self.played,
            "won": self.won,
            "drawn": self.drawn,
            "lost": self.lost,
            "points_for": self.points_for,
            "league_points": self.league_points,
        }


def round_half_up(value):
    return int(math.floor(value + 0.5))


def bye_score(member_ids, round_points):
    """Rounded average of the members who have a score this gameweek"""
    scores = [round_points[uid] for uid in member_ids if uid in round_points]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def calculate_h2h_standings(
    member_ids,
    fixtures,
    finalized_gameweeks,
    gameweek_points,
    current_gameweek,
    bye_id,
    names=None,
    bye_name="Average Bot",
):
    """
    Build the Head-to-Head table.

    Args:
        member_ids: ordered league member ids
        fixtures: {gameweek: [{"player1": id, "player2": id}, ...]}
        finalized_gameweeks: set of finalized gameweek numbers
        gameweek_points: {gameweek: {user_id: frozen points}}
        current_gameweek: only gameweeks strictly before this are replayed
        bye_id: id of the synthetic bye participant
        names: optional {user_id: display name}

    Returns:
        List of H2HRecord sorted by league points, points for, then id
    """
    names = names or {}
    fixtures = {int(gameweek): pairs for gameweek, pairs in (fixtures or {}).items()}

    records = {
        uid: H2HRecord(participant_id=uid, name=names.get(uid, "Unknown"))
        for uid in member_ids
    }

    bye_in_fixtures = any(
        bye_id in (pair["player1"], pair["player2"])
        for pairs in fixtures.values()
        for pair in pairs
    )
    if bye_in_fixtures:
        records[bye_id] = H2HRecord(participant_id=bye_id, name=bye_name)

    for gameweek in range(1, current_gameweek):
        if gameweek not in finalized_gameweeks:
            continue

        round_points = dict(gameweek_points.get(gameweek, {}))
        round_points[bye_id] = bye_score(member_ids, round_points)

        for pair in fixtures.get(gameweek, []):
            p1, p2 = pair["player1"], pair["player2"]
            score1 = round_points.get(p1, 0)
            score2 = round_points.get(p2, 0)

            if p1 in records:
                records[p1].record_game(score1, score2)
            if p2 in records:
                records[p2].record_game(score2, score1)

    return sorted(
        records.values(),
        key=lambda r: (-r.league_points, -r.points_for, r.participant_id),
    )
