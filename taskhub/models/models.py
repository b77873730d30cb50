# taskhub/models/models.py
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SocketFrame(BaseModel):
    """Envelope of every frame on the /ws socket, in both directions."""
    event: str
    data: Any = None


class ChatMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId", min_length=1)
    message: Any = None


class ChatMessage(BaseModel):
    sender: str
    message: Any = None
    timestamp: datetime = Field(default_factory=utcnow)


class CallSignalRequest(BaseModel):
    """Payload of call:offer, call:answer and call:ice."""
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId", min_length=1)
    offer: Any = None
    answer: Any = None
    candidate: Any = None


class ServerNotification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    category: Literal["LEAD", "TASK", "SYSTEM"] = "SYSTEM"
    level: Literal["INFO", "SUCCESS", "WARNING", "ERROR"] = "INFO"
    title: str
    body: str = ""
    action_url: Optional[str] = Field(default=None, alias="actionUrl")
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class PublishNotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: Literal["LEAD", "TASK", "SYSTEM"] = "SYSTEM"
    level: Literal["INFO", "SUCCESS", "WARNING", "ERROR"] = "INFO"
    title: str
    body: str = ""
    action_url: Optional[str] = Field(default=None, alias="actionUrl")
    payload: Optional[Dict[str, Any]] = None


class PushPayload(BaseModel):
    """Decoded body of an inbound push message. Every field is optional.

    A field of the wrong type is dropped on its own; the other fields keep
    their values.
    """
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @field_validator("title", "body", "data", mode="wrap")
    @classmethod
    def drop_invalid(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None


class DisplayedNotification(BaseModel):
    title: str
    body: str = ""
    icon: str
    badge: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def action_url(self) -> Optional[str]:
        return self.data.get("actionUrl") or None
