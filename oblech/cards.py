from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Any, Dict, Iterable, List, Optional

SUITS = ["♠", "♣", "♦", "♥"]
RANKS = ["9", "10", "J", "Q", "K", "A"]
RANK_VALUE = {rank: i for i, rank in enumerate(RANKS)}


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"


def full_deck() -> List[Card]:
    return [Card(rank, suit) for rank in RANKS for suit in SUITS]


def deal_cards(count: int, rng: Optional[random.Random] = None) -> List[Card]:
    # Drawn with replacement: the same card may show up more than once.
    rng = rng or random
    return [Card(rng.choice(RANKS), rng.choice(SUITS)) for _ in range(count)]


def sort_cards(cards: Iterable[Card]) -> List[Card]:
    return sorted(cards, key=lambda c: (RANK_VALUE[c.rank], SUITS.index(c.suit)))


def card_dict(card: Card) -> Dict[str, Any]:
    return {"rank": card.rank, "suit": card.suit}


def card_from_dict(data: Dict[str, Any]) -> Card:
    rank, suit = str(data["rank"]), str(data["suit"])
    if rank not in RANK_VALUE:
        raise ValueError(f"Invalid rank: {rank}")
    if suit not in SUITS:
        raise ValueError(f"Invalid suit: {suit}")
    return Card(rank, suit)
