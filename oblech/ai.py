from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence, Tuple

from .cards import Card, full_deck
from .game import CHECK, TRUMP, RoundState, current_player, submit_move, submit_readiness
from .hands import HAND_RANKS, beats, exists_in_subset, possible_hands, rank_position, stronger_hands

LEVELS = ("easy", "mid", "hard", "random")

# With nothing declared a bot may not check; it opens with any label instead.
FALLBACK_RANDOM_OPENING = True


def _candidates(
    cards: Sequence[Card], catalog: Sequence[str], current_hand: Optional[str], relative: bool
) -> List[str]:
    possible = possible_hands(cards, catalog)
    if relative:
        possible = [h for h in possible if beats(h, current_hand)]
    return possible


def easy_bot(
    cards: Sequence[Card],
    catalog: Sequence[str] = HAND_RANKS,
    rng: Optional[random.Random] = None,
    current_hand: Optional[str] = None,
    relative: bool = False,
) -> str:
    possible = _candidates(cards, catalog, current_hand, relative)
    if not possible:
        return CHECK
    return (rng or random).choice(possible)


def mid_bot(
    cards: Sequence[Card],
    catalog: Sequence[str] = HAND_RANKS,
    current_hand: Optional[str] = None,
    relative: bool = False,
) -> str:
    possible = _candidates(cards, catalog, current_hand, relative)
    if not possible:
        return CHECK
    return max(possible, key=rank_position)


def remaining_pool(cards: Iterable[Card], played: Iterable[Card]) -> List[Card]:
    pool = full_deck()
    for card in list(played) + list(cards):
        if card in pool:
            pool.remove(card)
    return pool


def hard_bot(
    cards: Sequence[Card],
    catalog: Sequence[str] = HAND_RANKS,
    played: Iterable[Card] = (),
) -> str:
    """Pick the own hand that the fewest stronger hands could beat.

    The unseen cards are the full deck minus ``played`` and the bot's own
    cards. Each label the bot can show is scored by how many strictly
    stronger labels those unseen cards could still form; ties go to the
    stronger label.
    """
    possible = possible_hands(cards, catalog)
    if not possible:
        return CHECK

    pool = remaining_pool(cards, played)
    formable = {label: exists_in_subset(label, pool) for label in stronger_hands(possible[0], catalog)}

    best, best_risk = None, None
    for hand in possible:
        risk = sum(1 for h in stronger_hands(hand, catalog) if formable[h])
        if (
            best is None
            or risk < best_risk
            or (risk == best_risk and rank_position(hand) > rank_position(best))
        ):
            best, best_risk = hand, risk
    return best


def random_bot(
    current_hand: Optional[str],
    catalog: Sequence[str] = HAND_RANKS,
    rng: Optional[random.Random] = None,
) -> str:
    rng = rng or random
    if current_hand is None:
        return rng.choice(list(catalog))
    higher = stronger_hands(current_hand, catalog)
    if not higher or rng.random() < 1 / 3:
        return CHECK
    return rng.choice(higher)


def decide(state: RoundState, rng: Optional[random.Random] = None, relative: bool = False) -> str:
    player = current_player(state)
    level = player.level or "easy"
    if level == "mid":
        return mid_bot(player.cards, HAND_RANKS, state.current_hand, relative)
    if level == "hard":
        return hard_bot(player.cards, HAND_RANKS, state.revealed_cards)
    if level == "random":
        return random_bot(state.current_hand, HAND_RANKS, rng)
    return easy_bot(player.cards, HAND_RANKS, rng, state.current_hand, relative)


def choose_move(
    state: RoundState, rng: Optional[random.Random] = None, relative: bool = False
) -> Tuple[str, Optional[str]]:
    choice = decide(state, rng, relative)
    if state.current_hand is None:
        if choice == CHECK:
            if not FALLBACK_RANDOM_OPENING:
                return TRUMP, HAND_RANKS[0]
            return TRUMP, (rng or random).choice(HAND_RANKS)
        return TRUMP, choice
    if choice == CHECK or not beats(choice, state.current_hand):
        return CHECK, None
    return TRUMP, choice


def bot_step(state: RoundState, rng: Optional[random.Random] = None) -> bool:
    """Let bots act once: ready up after a reveal, or play the current turn."""
    if state.finished or not state.players:
        return False

    if state.round_ended:
        changed = False
        for player in list(state.players):
            if player.is_bot and not state.ready.get(player.id, True):
                submit_readiness(state, player.id, rng)
                changed = True
                if not state.round_ended:
                    break
        return changed

    player = current_player(state)
    if not player.is_bot:
        return False
    move, hand = choose_move(state, rng)
    submit_move(state, player.id, move, hand, rng)
    return True
