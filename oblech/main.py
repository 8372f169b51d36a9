from __future__ import annotations

import asyncio
import copy
import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
import uvicorn

from .ai import LEVELS, bot_step, choose_move
from .config import Settings, load_settings
from .game import (
    GameError,
    RoundState,
    Seat,
    current_player,
    leave,
    start_round,
    state_view,
    submit_move,
    submit_readiness,
)
from .hands import HAND_RANKS, HANDS_MAP, is_hand

logger = logging.getLogger(__name__)


@dataclass
class Table:
    id: str
    max_players: int = 6
    max_bots: int = 3
    bot_delay: float = 0.8
    ready_delay: float = 2.0
    seats: Dict[str, Seat] = field(default_factory=dict)
    host_id: Optional[str] = None
    state: Optional[RoundState] = None
    connections: Dict[str, WebSocket] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    bot_task: Optional[asyncio.Task] = None
    announced_game: int = 0

    @property
    def in_game(self) -> bool:
        return self.state is not None and not self.state.finished

    def bot_count(self) -> int:
        return len([s for s in self.seats.values() if s.is_bot])

    def add_seat(self, name: str, level: Optional[str] = None) -> Optional[Seat]:
        if len(self.seats) >= self.max_players:
            return None
        if self.in_game:
            return None

        seat_id = secrets.token_hex(4)
        seat = Seat(id=seat_id, name=name, is_bot=level is not None, level=level)
        self.seats[seat_id] = seat
        if not self.host_id and not seat.is_bot:
            self.host_id = seat_id
        return seat

    def remove_seat(self, seat_id: str) -> None:
        self.connections.pop(seat_id, None)
        self.seats.pop(seat_id, None)
        if self.state:
            leave(self.state, seat_id)
        if self.host_id == seat_id:
            humans = [s.id for s in self.seats.values() if not s.is_bot]
            self.host_id = humans[0] if humans else None

    def summary(self) -> Dict[str, Any]:
        return {
            "table_id": self.id,
            "host_id": self.host_id,
            "in_game": self.in_game,
            "max_players": self.max_players,
            "seats": [
                {"id": s.id, "name": s.name, "is_bot": s.is_bot, "level": s.level, "score": s.score}
                for s in self.seats.values()
            ],
        }


class TableStore:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.tables: Dict[str, Table] = {}

    def create(self) -> Table:
        tid = table_id()
        while tid in self.tables:
            tid = table_id()
        table = Table(
            id=tid,
            max_players=self.settings.max_players,
            max_bots=self.settings.max_bots,
            bot_delay=self.settings.bot_delay,
            ready_delay=self.settings.ready_delay,
        )
        self.tables[tid] = table
        logger.info("Created table %s", tid)
        return table

    def get(self, tid: str) -> Optional[Table]:
        return self.tables.get(tid)

    def discard(self, tid: str) -> None:
        self.tables.pop(tid, None)


def table_id() -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(8))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Oblech")
    store = TableStore(settings)
    app.state.settings = settings
    app.state.tables = store

    @app.post("/api/tables")
    async def create_table() -> JSONResponse:
        table = store.create()
        return JSONResponse({"table_id": table.id})

    @app.get("/api/tables/{tid}")
    async def get_table(tid: str) -> JSONResponse:
        table = store.get(tid)
        if not table:
            raise HTTPException(status_code=404, detail="Table not found.")
        return JSONResponse(table.summary())

    @app.get("/api/hands")
    async def hands() -> JSONResponse:
        return JSONResponse({"ranks": HAND_RANKS, "categories": HANDS_MAP})

    @app.websocket("/ws/{tid}")
    async def table_socket(websocket: WebSocket, tid: str, name: Optional[str] = None) -> None:
        table = store.get(tid)
        if not table:
            await websocket.close(code=1008)
            return

        await websocket.accept()
        player_name = (name or "Player").strip()[:20]

        async with table.lock:
            seat = table.add_seat(player_name)
            if not seat:
                await websocket.close(code=1008)
                return
            table.connections[seat.id] = websocket
        logger.info("%s joined table %s as %s", player_name, table.id, seat.id)

        await broadcast_state(table)

        try:
            while True:
                data = await websocket.receive_json()
                if not isinstance(data, dict):
                    await websocket.send_json({"type": "error", "message": "Messages must be JSON objects."})
                    continue
                async with table.lock:
                    error = handle_action(table, seat.id, data)
                if error:
                    logger.info("Rejected %s from %s on table %s: %s", data.get("type"), seat.id, table.id, error)
                    await websocket.send_json({"type": "error", "message": error})
                    continue
                await broadcast_state(table)

        except WebSocketDisconnect:
            pass
        finally:
            async with table.lock:
                table.remove_seat(seat.id)
                if not any(not s.is_bot for s in table.seats.values()):
                    if table.bot_task:
                        table.bot_task.cancel()
                    store.discard(table.id)
                    logger.info("Closed table %s", table.id)
                elif table.state and needs_bot(table.state):
                    schedule_bot_tick(table, bot_delay(table))
            await broadcast_state(table)

    return app


def handle_action(table: Table, seat_id: str, data: Dict[str, Any]) -> Optional[str]:
    """Apply one client message; returns an error message when it is rejected."""
    action = data.get("type")
    try:
        if action == "add_bot":
            if seat_id != table.host_id:
                return "Only the host can add bots."
            if table.in_game:
                return "Game already started."
            if table.bot_count() >= table.max_bots:
                return f"Max number of bots is {table.max_bots}."
            level = data.get("level", "easy")
            if level not in LEVELS:
                return f"Unknown bot level: {level}"
            if not table.add_seat(f"Bot {table.bot_count() + 1}", level=level):
                return "Table is full."
        elif action == "start_game":
            if seat_id != table.host_id:
                return "Only the host can start the game."
            if table.in_game:
                return "Game already started."
            table.state = start_round(list(table.seats.values()))
        elif action == "move":
            if not table.state:
                return "Game not started."
            hand = data.get("hand")
            if hand is not None and not is_hand(hand):
                return f"Unknown hand: {hand}"
            submit_move(table.state, seat_id, str(data.get("move")), hand)
        elif action == "ready":
            if not table.state:
                return "Game not started."
            submit_readiness(table.state, seat_id)
        else:
            return f"Unknown action: {action}"
    except GameError as e:
        return str(e)

    if table.state and needs_bot(table.state):
        schedule_bot_tick(table, bot_delay(table))
    return None


def needs_bot(state: RoundState) -> bool:
    if state.finished or not state.players:
        return False
    if state.round_ended:
        return any(p.is_bot and not state.ready.get(p.id, True) for p in state.players)
    return current_player(state).is_bot


def bot_delay(table: Table) -> float:
    return table.ready_delay if table.state and table.state.round_ended else table.bot_delay


def turn_token(state: RoundState) -> Tuple[int, int, int, bool]:
    return (state.game_number, state.round_number, state.current_index, state.round_ended)


async def send_state(table: Table, seat_id: str) -> None:
    ws = table.connections.get(seat_id)
    if not ws:
        return

    state = table.summary()
    state["your_id"] = seat_id
    state["can_start"] = seat_id == table.host_id and not table.in_game
    if table.state:
        state["game"] = state_view(table.state, seat_id)

    await ws.send_json({"type": "state", "state": state})


async def broadcast_state(table: Table) -> None:
    for sid in list(table.connections.keys()):
        await send_state(table, sid)
    state = table.state
    # A finished game is announced once; winner_id stays set until the next move.
    if state and state.winner_id and state.game_number != table.announced_game:
        table.announced_game = state.game_number
        winner = table.seats.get(state.winner_id)
        message = {
            "type": "winner",
            "player_id": state.winner_id,
            "name": winner.name if winner else None,
        }
        for ws in list(table.connections.values()):
            await ws.send_json(message)


def schedule_bot_tick(table: Table, delay: float) -> None:
    if not table.state:
        return
    token = turn_token(table.state)
    if table.bot_task and not table.bot_task.done() and table.bot_task is not asyncio.current_task():
        table.bot_task.cancel()

    async def _runner() -> None:
        await asyncio.sleep(max(0.0, delay))
        async with table.lock:
            if not bot_due(table, token):
                return
            snapshot = None if table.state.round_ended else copy.deepcopy(table.state)
        move = None
        if snapshot is not None:
            # The hard bot's subset search is too slow for the event loop.
            move = await asyncio.to_thread(choose_move, snapshot)
        async with table.lock:
            acted = advance_bots(table, token, move)
        if acted:
            await broadcast_state(table)

    table.bot_task = asyncio.create_task(_runner())


def bot_due(table: Table, token: Tuple[int, int, int, bool]) -> bool:
    state = table.state
    return bool(state) and needs_bot(state) and turn_token(state) == token


def advance_bots(
    table: Table,
    token: Tuple[int, int, int, bool],
    move: Optional[Tuple[str, Optional[str]]] = None,
) -> bool:
    """Apply a bot action if the turn it was planned for is still current."""
    if not bot_due(table, token):
        return False

    state = table.state
    try:
        if move is not None and not state.round_ended:
            submit_move(state, current_player(state).id, move[0], move[1])
            acted = True
        else:
            acted = bot_step(state)
    except GameError:
        logger.exception("Bot move failed on table %s", table.id)
        return False

    if needs_bot(state):
        schedule_bot_tick(table, bot_delay(table))
    return acted


app = create_app()


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
