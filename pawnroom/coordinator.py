"""
Room protocol: creating and joining rooms, turn checks, state broadcasts.

Every operation runs to completion without awaiting, so a single event loop
never interleaves two handlers' reads and writes of the store.
"""

import logging
import secrets
import string
import time
from typing import Callable, Protocol

from pawnroom.config import Settings
from pawnroom.errors import NoSuchRoom, NotAParticipant, OutOfTurn, RoomFull
from pawnroom.game_state import Move, Side
from pawnroom.sessions import InMemorySessionStore, Session, SessionStore

logger = logging.getLogger(__name__)

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits
ROOM_ID_LENGTH = 6

# Broadcast event names
ROSTER_CHANGED = "roster-changed"
GAME_STATE = "game-state"
GAME_END = "game-end"
CHAT_MESSAGE = "chat-message"


class Transport(Protocol):
    """Room-scoped broadcast channel the coordinator emits through."""

    def subscribe(self, connection_id: str, room_id: str) -> None:
        """Add a connection to a room's broadcast group."""
        ...

    def unsubscribe(self, connection_id: str, room_id: str) -> None: ...

    def emit(self, room_id: str, event: str, payload: dict) -> None:
        """Deliver an event to every connection subscribed to the room, in call order."""
        ...


def generate_room_id() -> str:
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))


def normalize_room_id(room_id: str) -> str:
    return room_id.strip().upper()


def terminal_result(session: Session, mover: Side) -> dict | None:
    """Outcome of the game after `mover` played, or None while it continues."""
    status = session.game.status()
    if status.checkmate:
        return {"winner": mover.value}
    if status.game_over:
        return {"draw": True}
    return None


class SessionCoordinator:
    """Handles room events against the store and broadcasts the results."""

    def __init__(
        self,
        transport: Transport,
        store: SessionStore | None = None,
        settings: Settings | None = None,
        room_id_factory: Callable[[], str] = generate_room_id,
    ) -> None:
        self.transport = transport
        self.store = store if store is not None else InMemorySessionStore()
        self.settings = settings or Settings()
        self._room_id_factory = room_id_factory

    # -- Room lifecycle --
    def create(self, connection_id: str) -> tuple[str, Side]:
        """Open a new room with the caller seated as the first side."""
        room_id = self._new_room_id()
        session = self.store.get_or_create(room_id)
        side = Side.FIRST
        self._admit(session, connection_id, side)
        logger.info(f"[Room:{room_id}] Created by {connection_id}")

        self._emit_roster(session)
        return room_id, side

    def join(self, connection_id: str, room_id: str) -> tuple[str, Side]:
        """Seat the caller on whichever side is still free."""
        room_id = normalize_room_id(room_id)
        session = self.store.get(room_id)
        if session is None:
            if not self.settings.join_creates_room:
                raise NoSuchRoom()
            session = self.store.get_or_create(room_id)
            logger.info(f"[Room:{room_id}] Created on join by {connection_id}")

        existing = session.participant(connection_id)
        if existing is not None:
            return room_id, existing.side

        if session.is_full:
            logger.info(f"[Room:{room_id}] Rejected {connection_id}: room full")
            raise RoomFull()

        side = session.free_side()
        self._admit(session, connection_id, side)
        logger.info(f"[Room:{room_id}] {connection_id} joined as {side}")

        self._emit_roster(session)
        self._emit_state(session)
        return room_id, side

    def leave(self, connection_id: str) -> list[str]:
        """Remove a disconnected connection from every room it sat in."""
        affected = []
        for room_id in self.store.rooms_for(connection_id):
            session = self.store.get(room_id)
            self.store.unbind(connection_id, room_id)
            self.transport.unsubscribe(connection_id, room_id)
            if session is None or not session.unseat(connection_id):
                continue
            affected.append(room_id)
            logger.info(f"[Room:{room_id}] {connection_id} left")
            self._emit_roster(session)
            if session.is_empty:
                self.store.delete(room_id)
                logger.info(f"[Room:{room_id}] Closed (no participants)")
        return affected

    # -- Game --
    def apply_move(self, connection_id: str, room_id: str, move: Move) -> dict:
        """Validate turn ownership, play the move and broadcast the new state."""
        session = self._session(room_id)
        participant = session.participant(connection_id)
        if participant is None:
            raise NotAParticipant()
        if participant.side != session.game.side_to_move:
            raise OutOfTurn()

        # drawn games with moves left keep going; report the end only once
        already_over = session.game.status().game_over
        applied = session.game.make_move(move.src, move.dst, move.promotion)
        logger.debug(f"[Room:{session.room_id}] {participant.side} played {applied['san']}")

        self._emit_state(session)
        result = terminal_result(session, participant.side)
        if result is not None and not already_over:
            logger.info(f"[Room:{session.room_id}] Game over: {result}")
            self.transport.emit(session.room_id, GAME_END, result)
        return {"ok": True, "move": applied}

    def reset(self, connection_id: str, room_id: str) -> None:
        session = self._session(room_id)
        if (
            self.settings.reset_requires_participant
            and session.participant(connection_id) is None
        ):
            raise NotAParticipant()
        session.game.reset()
        logger.info(f"[Room:{session.room_id}] Reset by {connection_id}")
        self._emit_state(session)

    def chat(self, connection_id: str, room_id: str, name: str, message: str) -> dict:
        """Relay a chat line to the room. Chat carries no game state."""
        session = self._session(room_id)
        payload = {
            "name": name,
            "message": message,
            "timestamp": int(time.time() * 1000),
        }
        self.transport.emit(session.room_id, CHAT_MESSAGE, payload)
        return payload

    def snapshot(self, room_id: str) -> dict:
        return self._session(room_id).game.state_payload()

    def roster(self, room_id: str) -> list[str]:
        return self._session(room_id).roster()

    # -- Internal helpers --
    def _session(self, room_id: str) -> Session:
        session = self.store.get(normalize_room_id(room_id))
        if session is None:
            raise NoSuchRoom()
        return session

    def _new_room_id(self) -> str:
        room_id = self._room_id_factory()
        while room_id in self.store:
            room_id = self._room_id_factory()
        return room_id

    def _admit(self, session: Session, connection_id: str, side: Side) -> None:
        session.seat(connection_id, side)
        self.store.bind(connection_id, session.room_id)
        self.transport.subscribe(connection_id, session.room_id)

    def _emit_roster(self, session: Session) -> None:
        self.transport.emit(session.room_id, ROSTER_CHANGED, {"players": session.roster()})

    def _emit_state(self, session: Session) -> None:
        self.transport.emit(session.room_id, GAME_STATE, session.game.state_payload())
