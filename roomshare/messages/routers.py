import logging

from fastapi import APIRouter, HTTPException, Depends, Query, WebSocket, WebSocketDisconnect

from roomshare.conversations.service import ConversationDirectory
from roomshare.core.dependencies import (
    decode_token,
    get_current_user_id,
    get_directory,
    get_message_channel,
    get_query_cache,
    get_realtime_bridge,
)
from roomshare.core.errors import RoomshareError, as_http_exception
from roomshare.core.query_cache import QueryCache, messages_key
from .realtime import RealtimeBridge
from .service import MessageChannel
from .schemas import (
    SendMessageModel,
    SendMessageResponseModel,
    GetMessagesResponseModel,
    MarkReadResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()

POLICY_VIOLATION = 1008


@router.post(
    "/messages",
    response_model=SendMessageResponseModel,
    status_code=201,
)
async def send_message(
    data: SendMessageModel,
    user_id: str = Depends(get_current_user_id),
    directory: ConversationDirectory = Depends(get_directory),
    channel: MessageChannel = Depends(get_message_channel),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Send a message to an existing conversation.

    The receiver is always the other participant of the conversation.

    **Input**
    - `conversation_id`: UUID of the conversation
    - `content`: Message text (not blank, at most 2000 characters)

    **Returns**
    - The newly created message

    **Errors**
    - 400: Empty message
    - 401: Unauthorized
    - 403: User is not a participant of the conversation
    - 404: Conversation not found
    - 503: Database unavailable, the message was not sent
    """
    conversation_id = str(data.conversation_id)

    try:
        conversation = await directory.get(conversation_id)
        receiver_id = conversation.other_participant(user_id)
        message = await channel.send(conversation_id, user_id, receiver_id, data.content)
    except RoomshareError as error:
        raise as_http_exception(error)

    cache.invalidate_for("send_message", conversation_id=conversation_id)

    return {"message": message}


@router.get(
    "/messages/{conversation_id}",
    response_model=GetMessagesResponseModel,
    status_code=200,
)
async def get_messages(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    directory: ConversationDirectory = Depends(get_directory),
    channel: MessageChannel = Depends(get_message_channel),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Retrieve all messages for a conversation, oldest first.

    **Errors**
    - 401: Invalid or expired authentication token
    - 403: User is not a participant of the conversation
    - 404: Conversation does not exist
    - 503: Database unavailable
    """
    try:
        conversation = await directory.get(conversation_id)
        conversation.other_participant(user_id)

        messages = await cache.fetch(
            messages_key(conversation_id), lambda: channel.history(conversation_id)
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    return {"messages": messages}


@router.post(
    "/messages/{conversation_id}/read",
    response_model=MarkReadResponseModel,
    status_code=200,
)
async def mark_messages_read(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    directory: ConversationDirectory = Depends(get_directory),
    channel: MessageChannel = Depends(get_message_channel),
    cache: QueryCache = Depends(get_query_cache),
):
    """Mark every message sent to the authenticated user in this conversation as read."""
    try:
        conversation = await directory.get(conversation_id)
        conversation.other_participant(user_id)
        count = await channel.mark_read(conversation_id, user_id)
    except RoomshareError as error:
        raise as_http_exception(error)

    cache.invalidate_for("mark_read")
    # the cached history still carries the unread flags
    cache.invalidate(messages_key(conversation_id))

    return {"marked_read": count}


@router.websocket("/conversations/{conversation_id}/live")
async def conversation_live(
    websocket: WebSocket,
    conversation_id: str,
    token: str = Query(...),
    directory: ConversationDirectory = Depends(get_directory),
    channel: MessageChannel = Depends(get_message_channel),
    bridge: RealtimeBridge = Depends(get_realtime_bridge),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Live view of one conversation.

    On connect, and again after every new message in the conversation,
    the socket receives the full history:
    `{"type": "messages", "conversation_id": ..., "messages": [...]}`.
    Messages addressed to the viewer are marked read as they are shown.

    The realtime subscription lives exactly as long as the socket.
    """
    try:
        user_id = str(decode_token(token)["sub"])
        conversation = await directory.get(conversation_id)
        conversation.other_participant(user_id)
    except (HTTPException, KeyError, RoomshareError) as error:
        logger.info(f"live_rejected conversation_id={conversation_id} error={error!r}")
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()

    async def push_history():
        messages = await cache.fetch(
            messages_key(conversation_id), lambda: channel.history(conversation_id)
        )
        await websocket.send_json(
            {
                "type": "messages",
                "conversation_id": conversation_id,
                "messages": [m.model_dump(mode="json") for m in messages],
            }
        )

        if any(m.receiver_id == user_id and not m.is_read for m in messages):
            await channel.mark_read(conversation_id, user_id)
            cache.invalidate_for("mark_read")
            cache.invalidate(messages_key(conversation_id))

    try:
        async with bridge.watch(conversation_id, on_change=push_history):
            await push_history()

            while True:
                await websocket.receive_text()

    except WebSocketDisconnect:
        logger.info(f"live_closed conversation_id={conversation_id} user_id={user_id}")

    except RoomshareError as error:
        logger.warning(f"live_failed conversation_id={conversation_id} error={error.message}")
        await websocket.close(code=1011)
