"""Player state for one scorecard session.

A Player is an immutable snapshot. Every scoring operation takes one and
returns the next one, so the same value can be shared across threads and
compared before/after to build a partial store update.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Tuple


CARD_VALUES: Tuple[int, ...] = tuple(range(1, 13))

# Fields a partial update may carry. id and name are fixed at join time.
SCORE_FIELDS: Tuple[str, ...] = (
    'total_score',
    'current_round_score',
    'rounds',
    'current_round_number',
    'used_cards_this_round',
)


class PlayerStateError(ValueError):
    """Raised when a player record breaks one of its invariants."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    total_score: int = 0
    current_round_score: int = 0
    rounds: Tuple[int, ...] = ()
    current_round_number: int = 1
    used_cards_this_round: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Normalise container types so equality and hashing behave.
        object.__setattr__(self, 'rounds', tuple(self.rounds))
        object.__setattr__(self, 'used_cards_this_round', frozenset(self.used_cards_this_round))
        check_invariants(self)

    @classmethod
    def new(cls, player_id: str, name: str) -> 'Player':
        """State of a player who just joined: nothing scored, round 1."""
        return cls(id=player_id, name=(name or '').strip())

    @property
    def rounds_played(self) -> int:
        return len(self.rounds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'total_score': self.total_score,
            'current_round_score': self.current_round_score,
            'rounds': list(self.rounds),
            'current_round_number': self.current_round_number,
            'used_cards_this_round': sorted(self.used_cards_this_round),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        try:
            return cls(
                id=data['id'],
                name=data['name'],
                total_score=data.get('total_score', 0),
                current_round_score=data.get('current_round_score', 0),
                rounds=data.get('rounds') or (),
                current_round_number=data.get('current_round_number', 1),
                used_cards_this_round=data.get('used_cards_this_round') or (),
            )
        except KeyError as exc:
            raise PlayerStateError(f'player record missing {exc.args[0]!r}') from exc

    def merged(self, fields: Dict[str, Any]) -> 'Player':
        """Return a copy with the given wire-form score fields replaced."""
        unknown = set(fields) - set(SCORE_FIELDS)
        if unknown:
            raise PlayerStateError(f'cannot update fields: {", ".join(sorted(unknown))}')
        values = dict(fields)
        if 'rounds' in values:
            values['rounds'] = tuple(values['rounds'])
        if 'used_cards_this_round' in values:
            values['used_cards_this_round'] = frozenset(values['used_cards_this_round'])
        return replace(self, **values)


def check_invariants(player: Player) -> None:
    """Raise PlayerStateError unless the player record is internally consistent."""
    if not isinstance(player.id, str) or not player.id:
        raise PlayerStateError('player id must be a non-empty string')
    if not isinstance(player.name, str) or not player.name.strip():
        raise PlayerStateError('player name must not be blank')

    for name in ('total_score', 'current_round_score', 'current_round_number'):
        if not _is_int(getattr(player, name)):
            raise PlayerStateError(f'{name} must be an integer')
    if any(not _is_int(r) or r < 0 for r in player.rounds):
        raise PlayerStateError('rounds must hold non-negative integers')

    if player.current_round_score < 0:
        raise PlayerStateError('current_round_score cannot be negative')
    if player.total_score != sum(player.rounds):
        raise PlayerStateError(
            f'total_score {player.total_score} does not match rounds sum {sum(player.rounds)}'
        )
    if player.current_round_number != len(player.rounds) + 1:
        raise PlayerStateError(
            f'current_round_number {player.current_round_number} should be {len(player.rounds) + 1}'
        )

    bad_cards = {c for c in player.used_cards_this_round if not _is_int(c) or c not in CARD_VALUES}
    if bad_cards:
        raise PlayerStateError(f'used cards outside 1-12: {sorted(bad_cards, key=str)}')


def changed_fields(before: Player, after: Player) -> Dict[str, Any]:
    """Partial update carrying only the score fields that differ, in wire form."""
    if before.id != after.id:
        raise PlayerStateError('cannot diff two different players')
    old, new = before.to_dict(), after.to_dict()
    return {name: new[name] for name in SCORE_FIELDS if old[name] != new[name]}

