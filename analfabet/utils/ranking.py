"""
Leaderboard ordering and winner selection.

Ranking order: total points, then exact scores, then name.
Winners: everyone on the top score (only if it is above zero); ties on
points are broken by the number of exact scores.
"""


def build_ranking(entries):
    """
    Order ranking entries and number them.

    Args:
        entries: iterable of dicts with user_id, name, total_points,
            exact_scores and total_bets

    Returns:
        list of new dicts with an added 1-based "position"
    """
    ordered = sorted(
        entries,
        key=lambda e: (
            -(e.get("total_points") or 0),
            -(e.get("exact_scores") or 0),
            (e.get("name") or "").lower(),
        ),
    )
    return [dict(entry, position=index) for index, entry in enumerate(ordered, 1)]


def determine_winners(ranking):
    """Entries that currently win the ranking (empty when nobody has scored)"""
    if not ranking:
        return []

    max_points = max(entry["total_points"] for entry in ranking)
    if max_points <= 0:
        return []

    leaders = [entry for entry in ranking if entry["total_points"] == max_points]
    if len(leaders) == 1:
        return leaders

    max_exact = max(entry["exact_scores"] for entry in leaders)
    return [entry for entry in leaders if entry["exact_scores"] == max_exact]
