"""Errors reported back to the requesting connection through its ack."""


class SessionError(Exception):
    """Base class for rejected requests. Never fatal to the server."""

    code = "session_error"
    message = "Request rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    def to_payload(self) -> dict:
        return {"error": str(self), "code": self.code}


class RoomFull(SessionError):
    code = "room_full"
    message = "Room full"


class NoSuchRoom(SessionError):
    code = "no_such_room"
    message = "No such room"


class NotAParticipant(SessionError):
    code = "not_a_participant"
    message = "You are not in this room"


class OutOfTurn(SessionError):
    code = "out_of_turn"
    message = "Not your turn"


class IllegalMove(SessionError):
    code = "illegal_move"
    message = "Illegal move"
