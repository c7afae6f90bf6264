"""
Round-robin fixture generation for Head-to-Head leagues

Uses the circle method: position 0 stays fixed while everyone else rotates one
seat per round. An odd-sized league gets a bye participant so every round has
complete pairings; whoever draws the bye plays the league average that week.
"""


def build_base_schedule(member_ids, bye_id):
    """
    Build one complete single round-robin.

    Args:
        member_ids: ordered list of participant ids
        bye_id: id used to pad odd-sized lists

    Returns:
        List of rounds, each a list of {"player1": ..., "player2": ...} dicts.
        Empty when there are no members.
    """
    teams = list(member_ids)
    if not teams:
        return []

    if len(teams) % 2 != 0:
        teams.append(bye_id)

    num_teams = len(teams)
    half = num_teams // 2

    schedule = []
    for _ in range(num_teams - 1):
        schedule.append(
            [
                {"player1": teams[i], "player2": teams[num_teams - 1 - i]}
                for i in range(half)
            ]
        )
        # [0, 1, 2, 3] -> [0, 3, 1, 2]
        teams.insert(1, teams.pop())

    return schedule


def generate_season_fixtures(member_ids, bye_id, total_gameweeks=38):
    """Map every gameweek of the season onto the repeating base schedule"""
    base = build_base_schedule(member_ids, bye_id)
    if not base:
        return {}

    return {
        gameweek: base[(gameweek - 1) % len(base)]
        for gameweek in range(1, total_gameweeks + 1)
    }


def regenerate_fixtures(existing, member_ids, from_gameweek, bye_id, total_gameweeks=38):
    """
    Replace fixtures from a gameweek onward, keeping earlier rounds.

    The new cycle is anchored so that from_gameweek plays the first base round.
    """
    if not 1 <= from_gameweek <= total_gameweeks:
        raise ValueError(
            f"Gameweek must be between 1 and {total_gameweeks}, got {from_gameweek}"
        )

    fixtures = {
        int(gameweek): pairs
        for gameweek, pairs in (existing or {}).items()
        if int(gameweek) < from_gameweek
    }

    base = build_base_schedule(member_ids, bye_id)
    if not base:
        return fixtures

    for gameweek in range(from_gameweek, total_gameweeks + 1):
        fixtures[gameweek] = base[(gameweek - from_gameweek) % len(base)]

    return fixtures