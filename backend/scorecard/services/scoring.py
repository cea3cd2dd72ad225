"""Round scoring for a single player.

All functions here are pure: they take the current Player and return the
next one. Scores are built in a fixed order:

1. sum the picked-up cards (+1 through +12)
2. add the modifier cards (+2, +4, +6, +8, +10)
3. double the result when the x2 card is active

Persisting the result is the caller's job (see ``store.py``).
"""

from dataclasses import dataclass, field, replace
from itertools import combinations
from typing import FrozenSet, Iterable, Optional, Set

from .player import CARD_VALUES, Player


MODIFIER_VALUES = (2, 4, 6, 8, 10)
PENALTY_POINTS = 15

# Every total reachable by toggling a subset of the modifier cards on.
MODIFIER_TOTALS: FrozenSet[int] = frozenset(
    sum(combo)
    for size in range(len(MODIFIER_VALUES) + 1)
    for combo in combinations(MODIFIER_VALUES, size)
)


class ScoringError(ValueError):
    """Raised when a scoring call breaks its input contract."""


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_cards(cards: Iterable[int]) -> FrozenSet[int]:
    picked = frozenset(cards)
    bad = sorted((c for c in picked if not _is_int(c) or c not in CARD_VALUES), key=str)
    if bad:
        raise ScoringError(f'card values must be 1-12, got {bad}')
    return picked


def _check_modifier_total(modifier_total: int) -> int:
    if not _is_int(modifier_total) or modifier_total not in MODIFIER_TOTALS:
        raise ScoringError(f'{modifier_total!r} is not a sum of modifier cards {MODIFIER_VALUES}')
    return modifier_total


def card_delta(cards: Iterable[int], modifier_total: int, double: bool) -> int:
    """Points a card pick-up adds: (cards + modifiers), then x2."""
    subtotal = sum(_check_cards(cards)) + _check_modifier_total(modifier_total)
    return subtotal * 2 if double else subtotal


def apply_card_selection(player: Player, cards: Iterable[int], modifier_total: int, double: bool) -> Player:
    """Add a set of newly picked-up cards to the round in progress.

    Cards already claimed this round are rejected; the selection layer is
    expected to have filtered them out. An empty pick-up changes nothing.
    """
    picked = _check_cards(cards)
    _check_modifier_total(modifier_total)
    if not picked:
        return player
    reused = picked & player.used_cards_this_round
    if reused:
        raise ScoringError(f'cards already used this round: {sorted(reused)}')
    delta = card_delta(picked, modifier_total, double)
    return replace(
        player,
        current_round_score=player.current_round_score + delta,
        used_cards_this_round=player.used_cards_this_round | picked,
    )


def apply_modifiers_only(player: Player, modifier_total: int, double: bool) -> Player:
    """Apply x2 and modifiers to the points already in the round, no new cards."""
    _check_modifier_total(modifier_total)
    score = player.current_round_score
    if double:
        score = score * 2
    return replace(player, current_round_score=score + modifier_total)


def apply_penalty(player: Player) -> Player:
    # Used cards stay claimed; only bust and bank release them.
    return replace(player, current_round_score=max(0, player.current_round_score - PENALTY_POINTS))


def apply_bust(player: Player) -> Player:
    """Forfeit the round in progress. The round number does not advance."""
    return replace(player, current_round_score=0, used_cards_this_round=frozenset())


def bank_round(player: Player) -> Player:
    """Commit the round in progress to the player's history and start the next one."""
    banked = player.current_round_score
    return replace(
        player,
        total_score=player.total_score + banked,
        current_round_score=0,
        rounds=player.rounds + (banked,),
        current_round_number=player.current_round_number + 1,
        used_cards_this_round=frozenset(),
    )


@dataclass
class PendingSelection:
    """Cards and modifiers a viewer has toggled on but not saved yet.

    Lives only for one client interaction; it is never written to the store.
    """
    cards: Set[int] = field(default_factory=set)
    modifiers: Set[int] = field(default_factory=set)
    double: bool = False

    @classmethod
    def from_request(cls, cards: Optional[Iterable[int]] = None, modifiers: Optional[Iterable[int]] = None,
                     double: bool = False, used: Iterable[int] = ()) -> 'PendingSelection':
        selection = cls(double=bool(double))
        used = frozenset(used)
        for value in cards or ():
            if value not in selection.cards:
                selection.toggle_card(value, used)
        for value in modifiers or ():
            if value not in selection.modifiers:
                selection.toggle_modifier(value)
        return selection

    def toggle_card(self, value: int, used: Iterable[int] = ()) -> None:
        _check_cards([value])
        if value in used:
            return
        if value in self.cards:
            self.cards.discard(value)
        else:
            self.cards.add(value)

    def toggle_modifier(self, value: int) -> None:
        if not _is_int(value) or value not in MODIFIER_VALUES:
            raise ScoringError(f'modifier must be one of {MODIFIER_VALUES}, got {value!r}')
        if value in self.modifiers:
            self.modifiers.discard(value)
        else:
            self.modifiers.add(value)

    def toggle_double(self) -> None:
        self.double = not self.double

    @property
    def cards_total(self) -> int:
        return sum(self.cards)

    @property
    def modifier_total(self) -> int:
        return sum(self.modifiers)

    @property
    def has_cards(self) -> bool:
        return bool(self.cards)

    @property
    def has_adjustment(self) -> bool:
        return bool(self.modifiers) or self.double

    def apply(self, player: Player) -> Player:
        """Next player state for this selection: a card save, or a modifier-only adjustment."""
        if self.cards:
            return apply_card_selection(player, self.cards, self.modifier_total, self.double)
        return apply_modifiers_only(player, self.modifier_total, self.double)

    def preview(self, player: Player) -> int:
        """Round score the player would have after saving this selection."""
        return self.apply(player).current_round_score

    def clear(self) -> None:
        self.cards.clear()
        self.modifiers.clear()
        self.double = False
