import logging
from typing import List

from roomshare.conversations.service import ConversationDirectory
from roomshare.core.errors import RoomshareError, ValidationError
from roomshare.core.store import execute
from .schemas import Message


logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000


def clean_content(content: str) -> str:
    content = (content or "").strip()

    if not content:
        raise ValidationError("Message cannot be empty.")

    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Message must be at most {MAX_CONTENT_LENGTH} characters (got {len(content)})."
        )

    return content


class MessageChannel:
    """Append-only message log of a conversation, plus its read state."""

    def __init__(self, client, directory: ConversationDirectory):
        self.client = client
        self.directory = directory

    async def history(self, conversation_id: str) -> List[Message]:
        """Every message of the conversation, oldest first."""
        response = await execute(
            self.client.table("messages")
            .select("*")
            .eq("conversation_id", str(conversation_id))
            .order("created_at", desc=False),
            action="load messages",
        )

        messages = [Message.model_validate(row) for row in response.data or []]

        # ties on created_at keep insertion order
        messages.sort(key=lambda m: (m.created_at, m.seq if m.seq is not None else 0))
        return messages

    async def send(
        self, conversation_id: str, sender_id: str, receiver_id: str, content: str
    ) -> Message:
        """
        Append a message and bump the conversation's last_message_at.

        The two writes are not atomic. If the bump fails the message is
        still stored and returned; the directory then orders the
        conversation by the message's own created_at.
        """
        content = clean_content(content)

        if str(sender_id) == str(receiver_id):
            raise ValidationError("Cannot send a message to yourself.")

        response = await execute(
            self.client.table("messages").insert(
                {
                    "conversation_id": str(conversation_id),
                    "sender_id": str(sender_id),
                    "receiver_id": str(receiver_id),
                    "content": content,
                }
            ),
            action="send message",
        )

        message = Message.model_validate(response.data[0])
        logger.info(f"message_sent id={message.id} conversation_id={conversation_id}")

        try:
            await self.directory.touch_last_message_at(conversation_id)
        except RoomshareError as error:
            logger.warning(
                f"last_message_at_stale conversation_id={conversation_id} error={error.message}"
            )

        return message

    async def mark_read(self, conversation_id: str, user_id: str) -> int:
        """
        Mark every unread message addressed to `user_id` as read.

        Returns how many messages changed; 0 when there was nothing unread.
        """
        response = await execute(
            self.client.table("messages")
            .update({"is_read": True})
            .eq("conversation_id", str(conversation_id))
            .eq("receiver_id", str(user_id))
            .eq("is_read", False),
            action="mark messages as read",
        )

        count = len(response.data or [])
        if count:
            logger.info(f"messages_read conversation_id={conversation_id} count={count}")

        return count
