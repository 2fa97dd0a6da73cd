from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import List, Optional


class Message(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    content: str
    is_read: bool = False
    created_at: datetime
    seq: Optional[int] = None


# Send message
class SendMessageModel(BaseModel):
    conversation_id: UUID
    content: str = Field(max_length=2000)


class SendMessageResponseModel(BaseModel):
    message: Message


# Get messages
class GetMessagesResponseModel(BaseModel):
    messages: List[Message]


# Mark read
class MarkReadResponseModel(BaseModel):
    marked_read: int
