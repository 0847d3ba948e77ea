from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from pawnroom.config import Settings
from pawnroom.coordinator import SessionCoordinator
from pawnroom.server import create_app


class RecordingTransport:
    """Stands in for the WebSocket transport; remembers subscriptions and emits."""

    def __init__(self) -> None:
        self.rooms: dict[str, set[str]] = {}
        self.emitted: list[tuple[str, str, dict]] = []

    def subscribe(self, connection_id: str, room_id: str) -> None:
        self.rooms.setdefault(room_id, set()).add(connection_id)

    def unsubscribe(self, connection_id: str, room_id: str) -> None:
        self.rooms.get(room_id, set()).discard(connection_id)

    def emit(self, room_id: str, event: str, payload: dict) -> None:
        self.emitted.append((room_id, event, payload))

    def events(self, room_id: str, event: str | None = None) -> list[tuple[str, dict]]:
        return [
            (e, p)
            for r, e, p in self.emitted
            if r == room_id and (event is None or e == event)
        ]


def room_ids(*ids: str):
    """Room id factory returning the given codes in order."""
    remaining = iter(ids)
    return lambda: next(remaining)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def coordinator(transport: RecordingTransport) -> SessionCoordinator:
    return SessionCoordinator(
        transport=transport,
        settings=Settings(),
        room_id_factory=room_ids("ABCDEF", "GHIJKL", "MNOPQR"),
    )


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(create_app(Settings())) as test_client:
        yield test_client


def receive_until(ws, event: str) -> list[dict]:
    """Read frames until one with the given event arrives; return all of them."""
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["event"] == event:
            return frames


def request(ws, event: str, data: dict | None = None, ack: int = 1) -> tuple[dict, list[dict]]:
    """Send an event with an ack id; return the ack payload and the frames before it."""
    ws.send_json({"event": event, "data": data or {}, "ack": ack})
    frames = receive_until(ws, "ack")
    return frames[-1]["data"], frames[:-1]
