from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import List, Optional

from roomshare.core.errors import PermissionDeniedError
from roomshare.messages.schemas import Message
from roomshare.profiles.schemas import Profile


class Conversation(BaseModel):
    id: str
    participant_1: str
    participant_2: str
    listing_id: Optional[str] = None
    last_message_at: datetime
    created_at: datetime

    def has_participant(self, user_id: str) -> bool:
        return str(user_id) in (self.participant_1, self.participant_2)

    def other_participant(self, user_id: str) -> str:
        if not self.has_participant(user_id):
            raise PermissionDeniedError("You are not a participant in this conversation.")

        if self.participant_1 == str(user_id):
            return self.participant_2
        return self.participant_1


class ConversationWithDetails(Conversation):
    other_user: Optional[Profile] = None
    listing_title: Optional[str] = None
    last_message: Optional[Message] = None

    @property
    def activity_at(self) -> datetime:
        """Latest of last_message_at and the newest message's created_at."""
        if self.last_message and self.last_message.created_at > self.last_message_at:
            return self.last_message.created_at
        return self.last_message_at


# Get or create
class GetOrCreateConversationModel(BaseModel):
    other_user_id: UUID
    listing_id: Optional[UUID] = None


class GetOrCreateConversationResponseModel(BaseModel):
    conversation_id: str
    is_new: bool


# Get conversations
class GetConversationsResponseModel(BaseModel):
    conversations: List[ConversationWithDetails]


# Exists
class ConversationExistsResponseModel(BaseModel):
    exists: bool
