"""Payloads of the events the relay emits and receives.

Outbound builders only shape data; emitting is the relay's job.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chat_relay.core.dto import MessageDTO
from chat_relay.services.models.message_api_models import MessageResponse

# client -> server
SEND_MESSAGE = "sendMessage"
MESSAGE_SEEN = "messageSeen"
TYPING = "typing"

# server -> client
MESSAGE = "message"
MESSAGE_SEEN_UPDATE = "messageSeenUpdate"


class SendMessagePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str = Field(min_length=1)
    receiver: str = Field(min_length=1)


class MessageSeenPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: str = Field(alias="messageId", min_length=1)


class TypingPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    receiver_id: str = Field(alias="receiverId", min_length=1)
    is_typing: bool = Field(alias="isTyping")


def build_message_payload(message: MessageDTO) -> dict[str, Any]:
    return MessageResponse.from_dto(message).model_dump(mode="json")


def build_typing_payload(user_id: str, is_typing: bool) -> dict[str, Any]:
    return {"userId": user_id, "isTyping": is_typing}


def build_seen_payload(message_id: str, seen: bool = True) -> dict[str, Any]:
    return {"messageId": message_id, "seen": seen}
