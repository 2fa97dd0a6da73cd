import logging

from fastapi import APIRouter, HTTPException, Depends

from roomshare.core.dependencies import get_current_user_id, get_directory, get_query_cache
from roomshare.core.errors import RoomshareError, as_http_exception
from roomshare.core.query_cache import QueryCache, conversations_key, has_conversation_key
from .service import ConversationDirectory
from .schemas import (
    GetOrCreateConversationModel,
    GetOrCreateConversationResponseModel,
    GetConversationsResponseModel,
    ConversationExistsResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/conversations",
    response_model=GetConversationsResponseModel,
    status_code=200,
)
async def get_conversations(
    user_id: str = Depends(get_current_user_id),
    directory: ConversationDirectory = Depends(get_directory),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Retrieve every conversation the authenticated user takes part in.

    Used to populate the inbox. Each conversation comes with the other
    participant's profile, the title of the listing it is about (if any)
    and its most recent message, newest activity first.

    **Returns**
    - `conversations`: list of enriched conversations (empty when none)

    **Errors**
    - 401: Invalid or expired JWT
    - 503: Database unavailable, retry later
    """
    try:
        conversations = await cache.fetch(
            conversations_key(user_id), lambda: directory.list_for_user(user_id)
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    return {"conversations": conversations}


@router.post(
    "/conversations",
    response_model=GetOrCreateConversationResponseModel,
    status_code=200,
)
async def get_or_create_conversation(
    data: GetOrCreateConversationModel,
    user_id: str = Depends(get_current_user_id),
    directory: ConversationDirectory = Depends(get_directory),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Get or create the conversation with another user, optionally about a listing.

    Used when a user clicks "Contact" on a listing or a profile. There is
    at most one conversation per pair of users per listing (and one with
    no listing); asking again, from either side, returns the same one.

    **Input**
    - `other_user_id`: UUID of the user to talk to
    - `listing_id`: optional UUID of the listing the conversation is about

    **Returns**
    - `conversation_id`: UUID of the conversation
    - `is_new`: whether this call created it

    **Errors**
    - 400: Trying to start a conversation with yourself
    - 401: Unauthorized
    - 503: Database unavailable
    """
    other_user_id = str(data.other_user_id)
    listing_id = str(data.listing_id) if data.listing_id else None

    if other_user_id == user_id:
        raise HTTPException(status_code=400, detail="Cannot start a conversation with yourself.")

    try:
        conversation, is_new = await directory.get_or_create(user_id, other_user_id, listing_id)
    except RoomshareError as error:
        raise as_http_exception(error)

    cache.invalidate_for("get_or_create_conversation")

    return {"conversation_id": conversation.id, "is_new": is_new}


@router.get(
    "/conversations/exists/{other_user_id}",
    response_model=ConversationExistsResponseModel,
    status_code=200,
)
async def conversation_exists(
    other_user_id: str,
    user_id: str = Depends(get_current_user_id),
    directory: ConversationDirectory = Depends(get_directory),
    cache: QueryCache = Depends(get_query_cache),
):
    """Whether the authenticated user already has a conversation with `other_user_id`."""
    if other_user_id == user_id:
        return {"exists": False}

    try:
        exists = await cache.fetch(
            has_conversation_key(other_user_id, user_id),
            lambda: directory.exists(user_id, other_user_id),
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    return {"exists": exists}
