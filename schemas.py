"""
Database Schemas for the group chat room

Each Pydantic model either mirrors a MongoDB collection ("participants",
"messages") or describes a request body. Request models are also used by the
core operations to validate their inputs, so a direct caller gets the same
ValidationError details as an HTTP client.
"""
from enum import Enum
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError


class MessageType(str, Enum):
    MESSAGE = "message"
    PRIVATE_MESSAGE = "private_message"
    STATUS = "status"


class Participant(BaseModel):
    """
    Active participant of the room
    Collection: "participants"
    """
    name: str = Field(..., description="Unique display name")
    last_seen: float = Field(..., description="POSIX time of the last join or heartbeat")


class Message(BaseModel):
    """
    Message posted to the room
    Collection: "messages"
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Generated message id")
    from_: str = Field(..., alias="from", description="Sender name")
    to: str = Field(..., description="Recipient name or the broadcast target")
    text: str
    type: MessageType
    time: str = Field(..., description="HH:MM:SS, server local time")


# Schemas for requests

class ParticipantIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)


class MessageIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    to: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: Literal["message", "private_message"]


def error_details(exc) -> List[str]:
    """One "field: message" line per error of a pydantic or FastAPI validation error."""
    details = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"])
        details.append(f"{field}: {err['msg']}" if field else err["msg"])
    return details


def validate(model_cls, data: dict):
    """Build model_cls from data or raise ValidationError with one detail per field."""
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid request", error_details(e)) from e
