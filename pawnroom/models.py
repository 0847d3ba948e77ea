"""Inbound event payloads"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pawnroom.game_state import Move


class Frame(BaseModel):
    """Envelope of every client frame: event name, payload and optional ack id."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)
    ack: Optional[int | str] = None

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, value: Any) -> Any:
        return {} if value is None else value


class RoomRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId", min_length=1)

    @field_validator("room_id")
    @classmethod
    def normalize_room_id(cls, value: str) -> str:
        value = value.strip().upper()
        if not value.isalnum():
            raise ValueError(f"Room code must be alphanumeric, got {value!r}")
        return value


class JoinRoomRequest(RoomRequest):
    pass


class ResetRequest(RoomRequest):
    pass


class MoveRequest(RoomRequest):
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[str] = None

    def to_move(self) -> Move:
        return Move(src=self.from_square, dst=self.to_square, promotion=self.promotion)


class ChatRequest(RoomRequest):
    name: str = Field(min_length=1, max_length=40)
    message: str = Field(min_length=1, max_length=500)

    @field_validator("name", "message")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value
