from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import Any, Dict, List, Optional, Sequence

from .cards import Card, card_dict, deal_cards, sort_cards
from .hands import HAND_RANKS, beats, is_possible, stronger_hands

logger = logging.getLogger(__name__)

MAX_CARDS = 6
CHECK = "check"
TRUMP = "trump"
MOVES = (CHECK, TRUMP)


class GameError(Exception):
    pass


class IllegalMoveError(GameError):
    pass


class ConfigurationError(GameError):
    pass


@dataclass
class Seat:
    id: str
    name: str
    is_bot: bool = False
    level: Optional[str] = None
    score: int = 0


@dataclass
class PlayerState:
    id: str
    name: str
    card_count: int = 1
    cards: List[Card] = field(default_factory=list)
    score: int = 0
    is_bot: bool = False
    level: Optional[str] = None


@dataclass
class RoundState:
    players: List[PlayerState]
    seats: List[Seat] = field(default_factory=list)
    current_index: int = 0
    current_hand: Optional[str] = None
    round_ended: bool = False
    reveal_cards: bool = False
    selecting_hand: bool = False
    ready: Dict[str, bool] = field(default_factory=dict)
    last_loser_index: Optional[int] = None
    status_message: str = ""
    revealed_cards: List[Card] = field(default_factory=list)
    winner_id: Optional[str] = None
    game_number: int = 0
    round_number: int = 0
    finished: bool = False

    def player_order(self) -> List[str]:
        return [p.id for p in self.players]

    def find_player(self, player_id: str) -> Optional[PlayerState]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def find_seat(self, player_id: str) -> Optional[Seat]:
        for seat in self.seats:
            if seat.id == player_id:
                return seat
        return None


def current_player(state: RoundState) -> PlayerState:
    return state.players[state.current_index]


def next_index(state: RoundState, index: int) -> int:
    return (index + 1) % len(state.players)


def previous_index(state: RoundState, index: int) -> int:
    return (index - 1) % len(state.players)


def all_cards(state: RoundState) -> List[Card]:
    return [card for p in state.players for card in p.cards]


def _deal_game(seats: Sequence[Seat], rng: Optional[random.Random]) -> List[PlayerState]:
    return [
        PlayerState(
            id=s.id,
            name=s.name,
            card_count=1,
            cards=deal_cards(1, rng),
            score=s.score,
            is_bot=s.is_bot,
            level=s.level,
        )
        for s in seats
    ]


def start_round(seats: Sequence[Seat], rng: Optional[random.Random] = None) -> RoundState:
    """Start a fresh game for ``seats``: one card each, random first player."""
    if len(seats) < 2:
        raise ConfigurationError("Need at least 2 players.")
    state = RoundState(players=[], seats=list(seats))
    _new_game(state, rng)
    return state


def _new_game(state: RoundState, rng: Optional[random.Random]) -> None:
    rng = rng or random
    state.players = _deal_game(state.seats, rng)
    state.current_index = rng.randrange(len(state.players))
    state.current_hand = None
    state.round_ended = False
    state.reveal_cards = False
    state.selecting_hand = False
    state.ready = {p.id: False for p in state.players}
    state.last_loser_index = None
    state.revealed_cards = []
    state.game_number += 1
    state.round_number = 1
    state.status_message = f"{current_player(state).name}'s turn."


def restart_game(state: RoundState, rng: Optional[random.Random] = None) -> RoundState:
    if len(state.seats) < 2:
        state.players = []
        state.ready = {}
        state.round_ended = True
        state.finished = True
        state.status_message = "Not enough players to continue."
        logger.info("Game %d closed: %d seat(s) left", state.game_number, len(state.seats))
        return state
    _new_game(state, rng)
    return state


def _require_turn(state: RoundState, player_id: str) -> PlayerState:
    if state.finished:
        raise IllegalMoveError("Game is over.")
    if state.round_ended:
        raise IllegalMoveError("Round ended, wait for next round.")
    player = current_player(state)
    if player.id != player_id:
        raise IllegalMoveError("Not your turn.")
    return player


def submit_move(
    state: RoundState,
    player_id: str,
    move: str,
    hand: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> RoundState:
    """Apply a check or trump for ``player_id``.

    Raises ``IllegalMoveError`` without touching the state when the move is
    not allowed.
    """
    if move not in MOVES:
        raise IllegalMoveError(f"Unknown move: {move}")
    _require_turn(state, player_id)
    if move == CHECK:
        return check(state, rng)
    if hand is None:
        state.selecting_hand = True
        return state
    return trump(state, hand)


def trump(state: RoundState, hand: str) -> RoundState:
    if not beats(hand, state.current_hand):
        raise IllegalMoveError(
            f"Selected hand ({hand}) does not beat the current hand ({state.current_hand or 'none'})."
        )
    player = current_player(state)
    state.winner_id = None
    state.current_hand = hand
    state.selecting_hand = False
    state.current_index = next_index(state, state.current_index)
    state.status_message = (
        f"{player.name} trumped with {hand}. Now it's {current_player(state).name}'s turn."
    )
    return state


def check(state: RoundState, rng: Optional[random.Random] = None) -> RoundState:
    if state.current_hand is None:
        raise IllegalMoveError("No hand has been declared yet. You cannot check now.")

    checker_index = state.current_index
    checker = state.players[checker_index]
    revealed = all_cards(state)
    present = is_possible(state.current_hand, revealed)

    if present:
        loser_index = checker_index
        state.status_message = f"{checker.name} checked. The hand was present! {checker.name} loses."
    else:
        loser_index = previous_index(state, checker_index)
        state.status_message = (
            f"{checker.name} checked. The hand was NOT there. "
            f"{state.players[loser_index].name} loses."
        )
    loser = state.players[loser_index]
    loser.card_count += 1
    logger.info(
        "Game %d: %s checked %s (present=%s), %s now holds %d card(s)",
        state.game_number, checker.name, state.current_hand, present, loser.name, loser.card_count,
    )

    state.winner_id = None
    state.selecting_hand = False
    state.round_ended = True
    state.reveal_cards = True
    state.last_loser_index = loser_index
    state.revealed_cards.extend(revealed)
    _eliminate(state, rng)
    return state


def _eliminate(state: RoundState, rng: Optional[random.Random]) -> None:
    busted = [p for p in state.players if p.card_count >= MAX_CARDS]
    if not busted:
        return
    for p in busted:
        logger.info("Game %d: %s is out", state.game_number, p.name)

    state.players = [p for p in state.players if p.card_count < MAX_CARDS]
    state.ready = {p.id: False for p in state.players}
    if state.players and state.last_loser_index is not None:
        state.last_loser_index %= len(state.players)
    summary = f"{state.status_message} {', '.join(p.name for p in busted)} is out."

    if len(state.players) == 1:
        winner = state.players[0]
        winner.score += 1
        seat = state.find_seat(winner.id)
        if seat:
            seat.score = winner.score
        logger.info("Game %d won by %s", state.game_number, winner.name)
        restart_game(state, rng)
        state.winner_id = winner.id
        state.status_message = f"{summary} {winner.name} wins the game! {state.status_message}"
    elif not state.players:
        logger.info("Game %d ended with no survivors", state.game_number)
        restart_game(state, rng)
        state.status_message = f"{summary} Nobody is left standing. {state.status_message}"
    else:
        state.status_message = summary


def submit_readiness(
    state: RoundState, player_id: str, rng: Optional[random.Random] = None
) -> RoundState:
    if player_id not in state.ready:
        raise IllegalMoveError("User not found in this game.")
    if not state.round_ended or state.finished:
        return state
    state.ready[player_id] = True
    if all(state.ready.values()):
        _advance_round(state, rng)
    return state


def _advance_round(state: RoundState, rng: Optional[random.Random]) -> None:
    state.round_ended = False
    state.reveal_cards = False
    state.winner_id = None
    state.ready = {pid: False for pid in state.ready}
    for p in state.players:
        p.cards = deal_cards(p.card_count, rng)
    if state.last_loser_index is not None:
        if state.last_loser_index >= len(state.players):
            state.last_loser_index = 0
        state.current_index = state.last_loser_index
    state.current_hand = None
    state.round_number += 1
    state.status_message = f"{current_player(state).name}'s turn."
    logger.debug("Game %d: round %d started", state.game_number, state.round_number)


def leave(state: RoundState, player_id: str, level: str = "mid") -> RoundState:
    """Drop ``player_id`` from the roster; a bot finishes their current game."""
    state.seats = [s for s in state.seats if s.id != player_id]
    player = state.find_player(player_id)
    if player and not player.is_bot:
        player.is_bot = True
        player.level = level
    return state


def state_view(state: RoundState, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    players = []
    for i, p in enumerate(state.players):
        show = state.reveal_cards or p.id == viewer_id
        players.append(
            {
                "id": p.id,
                "name": p.name,
                "card_count": p.card_count,
                "cards": [card_dict(c) for c in sort_cards(p.cards)] if show else [],
                "score": p.score,
                "is_bot": p.is_bot,
                "ready": state.ready.get(p.id, False),
                "is_current": i == state.current_index and not state.round_ended,
            }
        )

    current_id = None
    if state.players and not state.round_ended:
        current_id = current_player(state).id
    your_turn = viewer_id is not None and viewer_id == current_id

    return {
        "players": players,
        "current_player_id": current_id,
        "current_hand": state.current_hand,
        "round_ended": state.round_ended,
        "reveal_cards": state.reveal_cards,
        "selecting_hand": state.selecting_hand and your_turn,
        "last_loser_index": state.last_loser_index,
        "status_message": state.status_message,
        "winner_id": state.winner_id,
        "game_number": state.game_number,
        "round_number": state.round_number,
        "finished": state.finished,
        "your_id": viewer_id,
        "can_check": your_turn and state.current_hand is not None,
        "valid_hands": stronger_hands(state.current_hand, HAND_RANKS) if your_turn else [],
    }
