from pydantic import BaseModel
from datetime import datetime

from chat_relay.core.dto import MessageDTO


class MessageResponse(BaseModel):
    """ Wire shape of a message, shared by HTTP history and realtime events """
    id: str
    content: str
    sender: str
    receiver: str
    timestamp: datetime
    seen: bool = False

    @classmethod
    def from_dto(cls, message: MessageDTO) -> "MessageResponse":
        return cls(
            id=message.id,
            content=message.content,
            sender=message.sender_id,
            receiver=message.receiver_id,
            timestamp=message.timestamp,
            seen=message.seen
        )
