"""
Realtime bridge between the `messages` INSERT feed and the query cache.

An insert event is only a signal: the bridge invalidates the same keys a
local send would (the conversation's history and the directories) and
calls the subscriber's `on_change`, which refetches the canonical ordered
history. Event payloads are never merged into cached state.

Subscriptions are resources. Use `RealtimeBridge.watch` (or close the
handle returned by `subscribe`) so the channel is removed on every exit
path; a forgotten channel keeps server-side fan-out alive.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional, Set

from roomshare.core.query_cache import QueryCache


logger = logging.getLogger(__name__)

OnChange = Callable[[], Awaitable[Any]]


class MessageSubscription:
    """Handle for one conversation's realtime channel."""

    def __init__(self, bridge: "RealtimeBridge", conversation_id: str, on_change: Optional[OnChange]):
        self.bridge = bridge
        self.conversation_id = conversation_id
        self.on_change = on_change
        self.channel = None
        self.events_received = 0
        self._refresh: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _handle_insert(self, payload: dict) -> None:
        if self._closed:
            return

        self.events_received += 1
        logger.debug(f"realtime_insert conversation_id={self.conversation_id}")

        self.bridge.cache.invalidate_for("send_message", conversation_id=self.conversation_id)

        if self.on_change is None:
            return

        # newest event wins; an older refetch still running is dropped
        if self._refresh is not None and not self._refresh.done():
            self._refresh.cancel()

        self._refresh = asyncio.ensure_future(self.on_change())
        self._refresh.add_done_callback(self._log_refresh_failure)

    def _log_refresh_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            logger.error(
                f"realtime_refresh_failed conversation_id={self.conversation_id} error={error!r}"
            )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._refresh is not None and not self._refresh.done():
            self._refresh.cancel()

        await self.bridge._release(self)

    async def __aenter__(self) -> "MessageSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class RealtimeBridge:
    def __init__(self, client, cache: QueryCache):
        self.client = client
        self.cache = cache
        self.active: Set[MessageSubscription] = set()

    async def subscribe(
        self, conversation_id: str, on_change: Optional[OnChange] = None
    ) -> MessageSubscription:
        """
        Listen for new messages in one conversation.

        The row filter is applied server-side, so only this conversation's
        inserts reach the callback.
        """
        conversation_id = str(conversation_id)
        subscription = MessageSubscription(self, conversation_id, on_change)

        channel = self.client.channel(f"messages:{conversation_id}")
        subscription.channel = channel

        try:
            channel.on_postgres_changes(
                event="INSERT",
                schema="public",
                table="messages",
                filter=f"conversation_id=eq.{conversation_id}",
                callback=subscription._handle_insert,
            )
            await channel.subscribe()
        except Exception:
            logger.exception(f"realtime_subscribe_failed conversation_id={conversation_id}")
            subscription._closed = True
            await self.client.remove_channel(channel)
            raise

        self.active.add(subscription)
        logger.info(
            f"realtime_subscribed conversation_id={conversation_id} active={len(self.active)}"
        )
        return subscription

    @asynccontextmanager
    async def watch(self, conversation_id: str, on_change: Optional[OnChange] = None):
        subscription = await self.subscribe(conversation_id, on_change)
        try:
            yield subscription
        finally:
            await subscription.close()

    async def _release(self, subscription: MessageSubscription) -> None:
        self.active.discard(subscription)

        try:
            await self.client.remove_channel(subscription.channel)
        finally:
            logger.info(
                f"realtime_unsubscribed conversation_id={subscription.conversation_id} "
                f"active={len(self.active)}"
            )

    async def close_all(self) -> None:
        for subscription in list(self.active):
            await subscription.close()
