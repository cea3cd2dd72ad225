from typing import Any, Dict, Iterable, List

from .player import Player


def rank_players(players: Iterable[Player]) -> List[Player]:
    """Order players for the leaderboard.

    Highest total first; on a tie, fewer banked rounds ranks higher. Python's
    sort is stable, so players still tied keep the order they were given in
    (join order for a session snapshot).
    """
    return sorted(players, key=lambda p: (-p.total_score, p.rounds_played))


def leaderboard(players: Iterable[Player]) -> List[Dict[str, Any]]:
    return [
        {
            'position': position,
            'id': p.id,
            'name': p.name,
            'total_score': p.total_score,
            'current_round_score': p.current_round_score,
            'current_round_number': p.current_round_number,
            'rounds_played': p.rounds_played,
        }
        for position, p in enumerate(rank_players(players), start=1)
    ]


def session_payload(session) -> Dict[str, Any]:
    """Snapshot of a GameSession plus its freshly ranked leaderboard."""
    return {
        'session': session.to_dict(),
        'leaderboard': leaderboard(session.player_list()),
    }
