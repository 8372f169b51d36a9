import random

import pytest

from oblech.cards import Card
from oblech.game import (
    MAX_CARDS,
    ConfigurationError,
    IllegalMoveError,
    PlayerState,
    RoundState,
    Seat,
    leave,
    restart_game,
    start_round,
    state_view,
    submit_move,
    submit_readiness,
)


def cards(text):
    return [Card(token[:-1], token[-1]) for token in text.split()]


def make_state(hands, current=0, declared=None, counts=None, scores=None):
    seats = [Seat(id=f"p{i}", name=name, score=(scores or {}).get(name, 0)) for i, name in enumerate(hands)]
    players = []
    for seat, (name, text) in zip(seats, hands.items()):
        held = cards(text)
        count = (counts or {}).get(name, len(held))
        players.append(PlayerState(id=seat.id, name=name, card_count=count, cards=held, score=seat.score))
    state = RoundState(players=players, seats=seats, current_index=current, current_hand=declared)
    state.ready = {p.id: False for p in players}
    state.game_number = 1
    state.round_number = 1
    return state


class TestStartRound:
    def test_needs_two_players(self):
        with pytest.raises(ConfigurationError):
            start_round([Seat("a", "Alice")])

    def test_fresh_round(self):
        seats = [Seat("a", "Alice", score=2), Seat("b", "Bob"), Seat("c", "Cleo")]
        state = start_round(seats, random.Random(5))
        assert [p.id for p in state.players] == ["a", "b", "c"]
        assert all(p.card_count == 1 and len(p.cards) == 1 for p in state.players)
        assert state.players[0].score == 2
        assert 0 <= state.current_index < 3
        assert state.current_hand is None
        assert state.ready == {"a": False, "b": False, "c": False}
        assert not state.round_ended
        assert state.game_number == 1
        assert state.status_message == f"{state.players[state.current_index].name}'s turn."


class TestTrump:
    def test_trump_advances_turn(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        submit_move(state, "p0", "trump", "Single 9")
        assert state.current_hand == "Single 9"
        assert state.current_index == 1
        assert state.status_message == "Alice trumped with Single 9. Now it's Bob's turn."

    def test_turn_wraps_around(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦", "Cleo": "A♣"}, current=2)
        submit_move(state, "p2", "trump", "Single A")
        assert state.current_index == 0

    def test_equal_or_weaker_hand_rejected(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"}, current=1, declared="Single 9")
        with pytest.raises(IllegalMoveError, match="does not beat"):
            submit_move(state, "p1", "trump", "Single 9")
        assert state.current_hand == "Single 9"
        assert state.current_index == 1

        submit_move(state, "p1", "trump", "Double 9")
        assert state.current_hand == "Double 9"
        assert state.current_index == 0

    def test_not_your_turn(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        with pytest.raises(IllegalMoveError, match="Not your turn"):
            submit_move(state, "p1", "trump", "Single A")
        assert state.current_hand is None
        assert state.current_index == 0

    def test_unknown_move(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        with pytest.raises(IllegalMoveError):
            submit_move(state, "p0", "fold")

    def test_trump_without_hand_opens_selection(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        submit_move(state, "p0", "trump")
        assert state.selecting_hand
        assert state.current_index == 0
        submit_move(state, "p0", "trump", "Single K")
        assert not state.selecting_hand


class TestCheck:
    def test_check_before_declaration_rejected(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        with pytest.raises(IllegalMoveError, match="No hand has been declared yet"):
            submit_move(state, "p0", "check")
        assert not state.round_ended

    def test_hand_present_checker_loses(self):
        state = make_state({"Alice": "9♠ 9♣", "Bob": "Q♦"}, current=1, declared="Double 9")
        submit_move(state, "p1", "check")
        assert state.round_ended and state.reveal_cards
        assert state.last_loser_index == 1
        assert state.players[1].card_count == 2
        assert state.players[0].card_count == 2
        assert state.status_message == "Bob checked. The hand was present! Bob loses."

    def test_hand_absent_previous_player_loses(self):
        state = make_state({"Alice": "9♠", "Bob": "10♣", "Cleo": "Q♦"}, current=0, declared="Double 9")
        submit_move(state, "p0", "check")
        assert state.last_loser_index == 2
        assert state.players[2].card_count == 2
        assert state.players[0].card_count == 1
        assert state.status_message == "Alice checked. The hand was NOT there. Cleo loses."

    def test_revealed_cards_are_recorded(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"}, current=1, declared="Single A")
        submit_move(state, "p1", "check")
        assert state.revealed_cards == cards("9♠ K♦")

    def test_moves_rejected_after_round_ended(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"}, current=1, declared="Single A")
        submit_move(state, "p1", "check")
        with pytest.raises(IllegalMoveError, match="Round ended"):
            submit_move(state, state.players[state.current_index].id, "trump", "Quadruple A")


class TestReadiness:
    def test_round_advances_when_everyone_ready(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦", "Cleo": "A♣"}, current=1, declared="Single 9")
        submit_move(state, "p1", "check")
        assert state.last_loser_index == 1

        submit_readiness(state, "p0")
        submit_readiness(state, "p1")
        assert state.round_ended
        assert state.ready == {"p0": True, "p1": True, "p2": False}

        submit_readiness(state, "p2", random.Random(1))
        assert not state.round_ended
        assert not state.reveal_cards
        assert state.ready == {"p0": False, "p1": False, "p2": False}
        assert state.current_hand is None
        assert state.current_index == 1
        assert [len(p.cards) for p in state.players] == [1, 2, 1]
        assert state.round_number == 2
        assert state.status_message == "Bob's turn."

    def test_unknown_player(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        with pytest.raises(IllegalMoveError):
            submit_readiness(state, "nobody")

    def test_ready_during_play_is_ignored(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        submit_readiness(state, "p0")
        assert state.ready["p0"] is False


class TestElimination:
    def test_busted_player_removed(self):
        state = make_state(
            {"Alice": "9♠", "Bob": "10♣", "Cleo": "Q♦"},
            current=0,
            declared="Double 9",
            counts={"Cleo": MAX_CARDS - 1},
        )
        submit_move(state, "p0", "check")
        assert [p.name for p in state.players] == ["Alice", "Bob"]
        assert state.ready == {"p0": False, "p1": False}
        assert state.last_loser_index == 0
        assert state.round_ended
        assert state.status_message.endswith("Cleo is out.")

        submit_readiness(state, "p0")
        submit_readiness(state, "p1")
        assert state.current_index == 0

    def test_last_player_standing_wins_and_game_restarts(self):
        state = make_state(
            {"Alice": "9♠ 9♣", "Bob": "Q♦ K♦ A♦ 10♠ J♠"},
            current=1,
            declared="Double 9",
            counts={"Bob": MAX_CARDS - 1},
            scores={"Alice": 3, "Bob": 4},
        )
        submit_move(state, "p1", "check", rng=random.Random(2))

        assert state.winner_id == "p0"
        assert state.game_number == 2
        assert not state.round_ended
        assert state.current_hand is None
        assert [p.id for p in state.players] == ["p0", "p1"]
        assert all(p.card_count == 1 and len(p.cards) == 1 for p in state.players)
        assert [p.score for p in state.players] == [4, 4]
        assert [s.score for s in state.seats] == [4, 4]
        assert state.revealed_cards == []
        assert "Alice wins the game!" in state.status_message

    def test_winner_flag_cleared_by_next_move(self):
        state = make_state(
            {"Alice": "9♠ 9♣", "Bob": "Q♦"},
            current=1,
            declared="Double 9",
            counts={"Bob": MAX_CARDS - 1},
        )
        submit_move(state, "p1", "check", rng=random.Random(2))
        mover = state.players[state.current_index].id
        submit_move(state, mover, "trump", "Single 9")
        assert state.winner_id is None

    def test_restart_with_too_few_seats_finishes(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"})
        leave(state, "p1")
        restart_game(state)
        assert state.finished
        assert state.players == []
        with pytest.raises(IllegalMoveError, match="Game is over"):
            submit_move(state, "p0", "check")


class TestLeaveAndView:
    def test_leave_turns_player_into_bot(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦", "Cleo": "A♣"})
        leave(state, "p1")
        assert [s.id for s in state.seats] == ["p0", "p2"]
        assert state.players[1].is_bot
        assert state.players[1].level == "mid"

    def test_view_hides_other_hands(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"}, declared="Single 9")
        view = state_view(state, "p0")
        assert view["players"][0]["cards"] == [{"rank": "9", "suit": "♠"}]
        assert view["players"][1]["cards"] == []
        assert view["current_player_id"] == "p0"
        assert view["can_check"]
        assert view["valid_hands"][0] == "Single 10"

        other = state_view(state, "p1")
        assert not other["can_check"]
        assert other["valid_hands"] == []

    def test_view_reveals_after_check(self):
        state = make_state({"Alice": "9♠", "Bob": "K♦"}, declared="Single 9")
        submit_move(state, "p0", "check")
        view = state_view(state, "p0")
        assert view["players"][1]["cards"] == [{"rank": "K", "suit": "♦"}]
        assert view["current_player_id"] is None
