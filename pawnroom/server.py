from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import json
import logging
from typing import Any, Callable, Dict, Set
from uuid import uuid4

from pydantic import ValidationError

from pawnroom.config import Settings
from pawnroom.coordinator import SessionCoordinator, normalize_room_id
from pawnroom.errors import NoSuchRoom, SessionError
from pawnroom.models import ChatRequest, Frame, JoinRoomRequest, MoveRequest, ResetRequest

logger = logging.getLogger(__name__)

ACK = "ack"
MAX_PENDING_FRAMES = 256


class ConnectionManager:
    """
    WebSocket transport for the coordinator.

    Outgoing frames go through one bounded queue per connection, drained by a
    writer task, so `emit` never awaits and frames reach each client in emit
    order. A client that lets its queue fill up is closed.
    """

    def __init__(self, max_pending: int = MAX_PENDING_FRAMES) -> None:
        self.max_pending = max_pending
        self.sockets: Dict[str, WebSocket] = {}
        self.queues: Dict[str, asyncio.Queue] = {}
        self.writers: Dict[str, asyncio.Task] = {}
        self.rooms: Dict[str, Set[str]] = {}

    def connect(self, websocket: WebSocket) -> str:
        connection_id = uuid4().hex[:12]
        self.sockets[connection_id] = websocket
        self.queues[connection_id] = asyncio.Queue(maxsize=self.max_pending)
        self.writers[connection_id] = asyncio.create_task(self.pump(connection_id))
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        self.sockets.pop(connection_id, None)
        self.queues.pop(connection_id, None)
        for room_id in list(self.rooms):
            self.unsubscribe(connection_id, room_id)
        writer = self.writers.pop(connection_id, None)
        if writer is not None:
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    def subscribe(self, connection_id: str, room_id: str) -> None:
        self.rooms.setdefault(room_id, set()).add(connection_id)

    def unsubscribe(self, connection_id: str, room_id: str) -> None:
        members = self.rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room_id]

    def emit(self, room_id: str, event: str, payload: dict) -> None:
        frame = {"event": event, "data": payload}
        for connection_id in sorted(self.rooms.get(room_id, ())):
            self.send(connection_id, frame)

    def send(self, connection_id: str, frame: dict) -> None:
        queue = self.queues.get(connection_id)
        if queue is None:
            return
        try:
            queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(f"[WS:{connection_id}] Outgoing queue full, closing")
            self._drop(connection_id)

    async def pump(self, connection_id: str) -> None:
        """Forward queued frames to the socket until it goes away."""
        queue = self.queues[connection_id]
        websocket = self.sockets[connection_id]
        while True:
            frame = await queue.get()
            try:
                await websocket.send_text(json.dumps(frame))
            except (WebSocketDisconnect, RuntimeError, OSError):
                logger.debug(f"[WS:{connection_id}] Send failed, socket closed")
                return

    def _drop(self, connection_id: str) -> None:
        # stop delivering; the receive loop runs the room cleanup once the socket closes
        self.queues.pop(connection_id, None)
        writer = self.writers.get(connection_id)
        if writer is not None:
            writer.cancel()
        websocket = self.sockets.get(connection_id)
        if websocket is not None:
            asyncio.get_running_loop().create_task(websocket.close(code=1013))


def invalid_request(exc: ValidationError) -> dict:
    return {
        "error": "Invalid request",
        "code": "invalid_request",
        "detail": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()],
    }


# ---- Event handlers: (coordinator, connection_id, data) -> ack payload ----
Handler = Callable[[SessionCoordinator, str, Dict[str, Any]], dict]


def create_room(coordinator: SessionCoordinator, connection_id: str, data: dict) -> dict:
    room_id, side = coordinator.create(connection_id)
    return {"roomId": room_id, "side": side.value}


def join_room(coordinator: SessionCoordinator, connection_id: str, data: dict) -> dict:
    request = JoinRoomRequest.model_validate(data)
    room_id, side = coordinator.join(connection_id, request.room_id)
    return {"roomId": room_id, "side": side.value}


def make_move(coordinator: SessionCoordinator, connection_id: str, data: dict) -> dict:
    request = MoveRequest.model_validate(data)
    return coordinator.apply_move(connection_id, request.room_id, request.to_move())


def reset_game(coordinator: SessionCoordinator, connection_id: str, data: dict) -> dict:
    request = ResetRequest.model_validate(data)
    coordinator.reset(connection_id, request.room_id)
    return {"ok": True}


def chat_message(coordinator: SessionCoordinator, connection_id: str, data: dict) -> dict:
    request = ChatRequest.model_validate(data)
    coordinator.chat(connection_id, request.room_id, request.name, request.message)
    return {"ok": True}


HANDLERS: Dict[str, Handler] = {
    "create-room": create_room,
    "join-room": join_room,
    "make-move": make_move,
    "reset-game": reset_game,
    "chat-message": chat_message,
}


def dispatch(coordinator: SessionCoordinator, connection_id: str, frame: Frame) -> dict:
    """Run one client event and return what to acknowledge with."""
    handler = HANDLERS.get(frame.event)
    if handler is None:
        logger.info(f"[WS:{connection_id}] Unknown event {frame.event!r}")
        return {
            "error": "Invalid request",
            "code": "invalid_request",
            "detail": [{"loc": ["event"], "msg": f"Unknown event {frame.event!r}"}],
        }
    try:
        return handler(coordinator, connection_id, frame.data)
    except SessionError as exc:
        logger.info(f"[WS:{connection_id}] {frame.event} rejected: {exc}")
        return exc.to_payload()
    except ValidationError as exc:
        logger.info(f"[WS:{connection_id}] {frame.event} invalid payload")
        return invalid_request(exc)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    manager = ConnectionManager()
    coordinator = SessionCoordinator(transport=manager, settings=settings)

    app = FastAPI(title="pawnroom")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.connections = manager
    app.state.coordinator = coordinator

    @app.get("/")
    async def index() -> dict:
        return {"status": "ok", "rooms": len(coordinator.store)}

    @app.get("/rooms/{room_id}")
    async def room_state(room_id: str) -> dict:
        try:
            players = coordinator.roster(room_id)
            state = coordinator.snapshot(room_id)
        except NoSuchRoom:
            raise HTTPException(status_code=404, detail=f"Room '{room_id}' not found")
        return {"roomId": normalize_room_id(room_id), "players": players, "state": state}

    # ---- WebSocket endpoint ----
    @app.websocket("/ws")
    async def ws_rooms(websocket: WebSocket) -> None:
        await websocket.accept()

        connection_id = manager.connect(websocket)
        logger.debug(f"[WS:{connection_id}] Connected")

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    raw = json.loads(data)
                except ValueError:
                    logger.warning(f"[WS:{connection_id}] Dropped frame that is not JSON")
                    continue

                try:
                    frame = Frame.model_validate(raw)
                except ValidationError as exc:
                    ack_id = raw.get("ack") if isinstance(raw, dict) else None
                    if isinstance(ack_id, (int, str)):
                        manager.send(
                            connection_id,
                            {"event": ACK, "ack": ack_id, "data": invalid_request(exc)},
                        )
                    else:
                        logger.warning(f"[WS:{connection_id}] Dropped malformed frame")
                    continue

                ack = dispatch(coordinator, connection_id, frame)
                if frame.ack is not None:
                    manager.send(connection_id, {"event": ACK, "ack": frame.ack, "data": ack})

        except WebSocketDisconnect:
            logger.debug(f"[WS:{connection_id}] Disconnected")
        finally:
            coordinator.leave(connection_id)
            await manager.disconnect(connection_id)

    return app


app = create_app()
