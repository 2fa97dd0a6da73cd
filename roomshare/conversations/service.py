import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from roomshare.core.errors import NotFoundError, StoreError
from roomshare.core.store import execute, is_unique_violation
from roomshare.listings.service import get_listing_title
from roomshare.messages.schemas import Message
from roomshare.profiles.service import get_profile
from .schemas import Conversation, ConversationWithDetails


logger = logging.getLogger(__name__)


def canonical_pair(user_id: str, other_user_id: str) -> Tuple[str, str]:
    """Order two participant ids the way they are stored (participant_1 < participant_2)."""
    u1, u2 = sorted([str(user_id), str(other_user_id)])
    return u1, u2


class ConversationDirectory:
    """
    Resolves, creates and lists the conversations a user takes part in.

    A conversation is identified by its scope: the unordered participant
    pair plus an optional listing. Pairs are stored in canonical order, so a
    single equality lookup finds the conversation whichever participant
    asks, and the unique index on the scope rejects duplicates.
    """

    def __init__(self, client):
        self.client = client

    async def get(self, conversation_id: str) -> Conversation:
        response = await execute(
            self.client.table("conversations")
            .select("*")
            .eq("id", str(conversation_id))
            .limit(1),
            action="look up conversation",
        )

        if not response.data:
            raise NotFoundError("Conversation not found.")

        return Conversation.model_validate(response.data[0])

    async def list_for_user(self, user_id: str) -> List[ConversationWithDetails]:
        """
        All conversations `user_id` takes part in, most recently active first.

        Each one carries the other participant's profile, the listing title
        (when the conversation is about a listing) and the newest message.
        The lookups for every conversation run concurrently.
        """
        user_id = str(user_id)

        response = await execute(
            self.client.table("conversations")
            .select("*")
            .or_(f"participant_1.eq.{user_id},participant_2.eq.{user_id}")
            .order("last_message_at", desc=True),
            action="list conversations",
        )

        rows = response.data or []
        if not rows:
            return []

        enriched = await asyncio.gather(
            *(self._enrich(Conversation.model_validate(row), user_id) for row in rows)
        )

        # a stale last_message_at (failed touch) falls back to the newest message
        return sorted(enriched, key=lambda c: c.activity_at, reverse=True)

    async def _enrich(self, conversation: Conversation, user_id: str) -> ConversationWithDetails:
        other_user_id = conversation.other_participant(user_id)

        profile, listing_title, last_message = await asyncio.gather(
            get_profile(self.client, other_user_id),
            self._listing_title(conversation.listing_id),
            self._last_message(conversation.id),
        )

        return ConversationWithDetails(
            **conversation.model_dump(),
            other_user=profile,
            listing_title=listing_title,
            last_message=last_message,
        )

    async def _listing_title(self, listing_id: Optional[str]) -> Optional[str]:
        if not listing_id:
            return None
        return await get_listing_title(self.client, listing_id)

    async def _last_message(self, conversation_id: str) -> Optional[Message]:
        response = await execute(
            self.client.table("messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at", desc=True)
            .limit(1),
            action="look up last message",
        )

        if not response.data:
            return None

        return Message.model_validate(response.data[0])

    async def find(
        self, user_id: str, other_user_id: str, listing_id: Optional[str] = None
    ) -> Optional[Conversation]:
        """The conversation for this pair and listing scope, if one exists."""
        u1, u2 = canonical_pair(user_id, other_user_id)

        query = (
            self.client.table("conversations")
            .select("*")
            .eq("participant_1", u1)
            .eq("participant_2", u2)
        )

        if listing_id:
            query = query.eq("listing_id", str(listing_id))
        else:
            query = query.is_("listing_id", "null")

        response = await execute(query.limit(1), action="look up conversation")

        if not response.data:
            return None

        return Conversation.model_validate(response.data[0])

    async def get_or_create(
        self, user_id: str, other_user_id: str, listing_id: Optional[str] = None
    ) -> Tuple[Conversation, bool]:
        """
        Return the conversation for this scope, creating it on first contact.

        Returns `(conversation, is_new)`. Callers must reject
        `user_id == other_user_id` before getting here.

        Two concurrent first contacts both miss the lookup and both insert;
        the unique index lets one through and the loser re-reads the winner.
        """
        existing = await self.find(user_id, other_user_id, listing_id)
        if existing:
            return existing, False

        u1, u2 = canonical_pair(user_id, other_user_id)

        try:
            response = await execute(
                self.client.table("conversations").insert(
                    {
                        "participant_1": u1,
                        "participant_2": u2,
                        "listing_id": str(listing_id) if listing_id else None,
                    }
                ),
                action="create conversation",
            )
        except StoreError as error:
            if not is_unique_violation(error):
                raise

            logger.info(f"conversation_create_race participants={u1},{u2} listing_id={listing_id}")

            existing = await self.find(user_id, other_user_id, listing_id)
            if existing is None:
                raise
            return existing, False

        conversation = Conversation.model_validate(response.data[0])
        logger.info(f"conversation_created id={conversation.id} listing_id={listing_id}")

        return conversation, True

    async def exists(self, user_id: str, other_user_id: str) -> bool:
        """Whether the two users share any conversation, whatever its listing."""
        u1, u2 = canonical_pair(user_id, other_user_id)

        response = await execute(
            self.client.table("conversations")
            .select("id")
            .eq("participant_1", u1)
            .eq("participant_2", u2)
            .limit(1),
            action="check conversation",
        )

        return bool(response.data)

    async def touch_last_message_at(self, conversation_id: str) -> None:
        await execute(
            self.client.table("conversations")
            .update({"last_message_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", str(conversation_id)),
            action="update conversation activity",
        )
