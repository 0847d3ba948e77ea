"""Room sessions and the in-memory store that owns them."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from pawnroom.game_state import ChessGame, Side

logger = logging.getLogger(__name__)

MAX_PARTICIPANTS = 2


@dataclass(frozen=True)
class Participant:
    connection_id: str
    side: Side


@dataclass
class Session:
    """One room: the authoritative game plus up to two seated participants."""

    room_id: str
    game: ChessGame = field(default_factory=ChessGame)
    participants: list[Participant] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= MAX_PARTICIPANTS

    @property
    def is_empty(self) -> bool:
        return not self.participants

    def participant(self, connection_id: str) -> Participant | None:
        return next(
            (p for p in self.participants if p.connection_id == connection_id), None
        )

    def free_side(self) -> Side:
        """The side nobody holds yet (first when both are free)."""
        taken = {p.side for p in self.participants}
        if Side.FIRST not in taken:
            return Side.FIRST
        return Side.SECOND

    def seat(self, connection_id: str, side: Side) -> Participant:
        participant = Participant(connection_id=connection_id, side=side)
        self.participants.append(participant)
        return participant

    def unseat(self, connection_id: str) -> bool:
        """Drop the connection from the roster. True if the roster changed."""
        before = len(self.participants)
        self.participants = [
            p for p in self.participants if p.connection_id != connection_id
        ]
        return len(self.participants) != before

    def roster(self) -> list[str]:
        return [p.side.value for p in self.participants]


class SessionStore(Protocol):
    """Registry of live sessions keyed by room id."""

    def get(self, room_id: str) -> Session | None:
        """Get a session, if one exists for the room id."""
        ...

    def get_or_create(self, room_id: str) -> Session:
        """Get a session, creating an empty one at the starting position if absent."""
        ...

    def delete(self, room_id: str) -> None:
        """Remove a session and forget every connection bound to it."""
        ...

    def __contains__(self, room_id: object) -> bool: ...

    def __len__(self) -> int: ...

    def room_ids(self) -> list[str]: ...

    def bind(self, connection_id: str, room_id: str) -> None:
        """Record that a connection is seated in a room."""
        ...

    def unbind(self, connection_id: str, room_id: str) -> None: ...

    def rooms_for(self, connection_id: str) -> list[str]:
        """Rooms a connection is seated in."""
        ...


class InMemorySessionStore:
    """Process-local store. State is lost when the process exits."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._rooms_by_connection: dict[str, set[str]] = {}

    def get(self, room_id: str) -> Session | None:
        return self._sessions.get(room_id)

    def get_or_create(self, room_id: str) -> Session:
        session = self._sessions.get(room_id)
        if session is None:
            session = Session(room_id=room_id)
            self._sessions[room_id] = session
            logger.debug(f"[Room:{room_id}] Session created")
        return session

    def delete(self, room_id: str) -> None:
        session = self._sessions.pop(room_id, None)
        if session is None:
            return
        for participant in session.participants:
            self.unbind(participant.connection_id, room_id)
        logger.debug(f"[Room:{room_id}] Session deleted")

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def room_ids(self) -> list[str]:
        return list(self._sessions)

    def bind(self, connection_id: str, room_id: str) -> None:
        self._rooms_by_connection.setdefault(connection_id, set()).add(room_id)

    def unbind(self, connection_id: str, room_id: str) -> None:
        rooms = self._rooms_by_connection.get(connection_id)
        if rooms is None:
            return
        rooms.discard(room_id)
        if not rooms:
            del self._rooms_by_connection[connection_id]

    def rooms_for(self, connection_id: str) -> list[str]:
        return sorted(self._rooms_by_connection.get(connection_id, ()))
