from __future__ import annotations

from collections import Counter
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence

from .cards import RANKS, Card

SMALL_STREET = "Small Street"
BIG_STREET = "Big Street"
STREET_RANKS = {
    SMALL_STREET: ["9", "10", "J", "Q", "K"],
    BIG_STREET: ["10", "J", "Q", "K", "A"],
}


def _build_hands_map() -> Dict[str, List[str]]:
    return {
        "Singles": [f"Single {r}" for r in RANKS],
        "Doubles": [f"Double {r}" for r in RANKS],
        "2 Pairs": [f"2 Pairs {low}-{high}" for low, high in combinations(RANKS, 2)],
        "Full Houses": [f"Full House {r}" for r in RANKS],
        "Streets": [SMALL_STREET, BIG_STREET],
        "Triples": [f"Triple {r}" for r in RANKS],
        "Quadruples": [f"Quadruple {r}" for r in RANKS],
    }


# Category order is the strength order; within a category labels run weak to strong.
HANDS_MAP = _build_hands_map()
HAND_RANKS = [label for labels in HANDS_MAP.values() for label in labels]
HAND_POSITION = {label: i for i, label in enumerate(HAND_RANKS)}


class UnknownHandError(ValueError):
    pass


def is_hand(label: object) -> bool:
    return isinstance(label, str) and label in HAND_POSITION


def _require_hand(label: str) -> None:
    if not is_hand(label):
        raise UnknownHandError(f"Unknown hand: {label!r}")


def rank_position(label: Optional[str]) -> int:
    """Index of ``label`` in the weak-to-strong order, -1 when nothing is declared."""
    if label is None:
        return -1
    try:
        return HAND_POSITION[label]
    except KeyError:
        raise UnknownHandError(f"Unknown hand: {label!r}") from None


def beats(label: str, current: Optional[str]) -> bool:
    return rank_position(label) > rank_position(current)


def stronger_hands(label: Optional[str], catalog: Sequence[str] = HAND_RANKS) -> List[str]:
    base = rank_position(label)
    return [h for h in catalog if rank_position(h) > base]


def required_size(label: str) -> int:
    _require_hand(label)
    if label.startswith("Single"):
        return 1
    if label.startswith("Double"):
        return 2
    if label.startswith("Triple"):
        return 3
    if label.startswith("Quadruple") or label.startswith("2 Pairs"):
        return 4
    return 5


def is_possible(label: str, cards: Iterable[Card]) -> bool:
    """Whether the hand ``label`` can be found among ``cards``.

    Every hand is checked on its own: a card may count towards several hands,
    and streets only need one card of each of their ranks.
    """
    _require_hand(label)
    counts = Counter(card.rank for card in cards)

    if label in STREET_RANKS:
        return all(counts[r] >= 1 for r in STREET_RANKS[label])

    if label.startswith("2 Pairs"):
        low, high = label.split(" ")[2].split("-")
        return counts[low] >= 2 and counts[high] >= 2

    if label.startswith("Full House"):
        rank = label.split(" ")[2]
        if counts[rank] < 3:
            return False
        return any(n >= 2 for r, n in counts.items() if r != rank)

    kind, rank = label.split(" ")
    need = {"Single": 1, "Double": 2, "Triple": 3, "Quadruple": 4}[kind]
    return counts[rank] >= need


def exists_in_subset(label: str, cards: Sequence[Card]) -> bool:
    size = required_size(label)
    if len(cards) < size:
        return False
    # No subset can hold a hand the whole pool lacks.
    if not is_possible(label, cards):
        return False
    return any(is_possible(label, subset) for subset in combinations(cards, size))


def possible_hands(cards: Iterable[Card], catalog: Sequence[str] = HAND_RANKS) -> List[str]:
    cards = list(cards)
    return [label for label in catalog if is_possible(label, cards)]
