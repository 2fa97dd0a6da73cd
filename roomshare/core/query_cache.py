"""
In-process cache of query results keyed by (operation, parameters).

Reads go through `QueryCache.fetch`: a cached value is returned as is, a
request already in flight for the same key is joined instead of issued
again, and anything else calls the loader. Mutations call
`invalidate_for(mutation, ...)`, which drops every key listed for that
mutation in `INVALIDATIONS`.

Entries expire after `CACHE_TTL_SECONDS` and the cache holds at most
`CACHE_MAX_ENTRIES` keys, so writes this process never sees (other
workers, clients writing to Supabase directly) show up within one TTL.

An invalidation that lands while a fetch for the key is still in flight
detaches that fetch, so the late result is handed back to its own caller
but never written to the cache (last request wins).
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, Optional, Tuple

from cachetools import TTLCache

from roomshare.utils.env_helper import env_float, env_int


logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = env_float("CACHE_TTL_SECONDS", 30.0)
CACHE_MAX_ENTRIES = env_int("CACHE_MAX_ENTRIES", 4096)

QueryKey = Tuple[Hashable, ...]

_MISSING = object()


# Query keys
def conversations_key(user_id: str) -> QueryKey:
    return ("conversations", user_id)


def has_conversation_key(other_user_id: str, user_id: str) -> QueryKey:
    return ("has-conversation", other_user_id, user_id)


def messages_key(conversation_id: str) -> QueryKey:
    return ("messages", conversation_id)


def favorites_key(user_id: str) -> QueryKey:
    return ("favorites", user_id)


def favorite_listings_key(user_id: str) -> QueryKey:
    return ("favorite-listings", user_id)


def favorite_key(listing_id: str, user_id: str) -> QueryKey:
    return ("favorite", listing_id, user_id)


def profile_key(user_id: str) -> QueryKey:
    return ("profile", user_id)


# mutation -> prefixes of the query keys it makes stale
INVALIDATIONS: Dict[str, Callable[..., Iterable[QueryKey]]] = {
    "send_message": lambda conversation_id, **_: [
        ("messages", conversation_id),
        ("conversations",),
    ],
    "mark_read": lambda **_: [("conversations",)],
    "get_or_create_conversation": lambda **_: [
        ("conversations",),
        ("has-conversation",),
    ],
    "toggle_favorite": lambda listing_id, **_: [
        ("favorites",),
        ("favorite-listings",),
        ("favorite", listing_id),
    ],
    "remove_favorite": lambda listing_id, **_: [
        ("favorites",),
        ("favorite-listings",),
        ("favorite", listing_id),
    ],
}


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    def __init__(
        self,
        ttl: Optional[float] = None,
        maxsize: Optional[int] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.ttl = CACHE_TTL_SECONDS if ttl is None else ttl
        self.maxsize = CACHE_MAX_ENTRIES if maxsize is None else maxsize
        self._entries = TTLCache(maxsize=self.maxsize, ttl=self.ttl, timer=timer)
        self._inflight: Dict[QueryKey, asyncio.Future] = {}

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        cached = self._entries.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        pending = self._inflight.get(key)
        if pending is not None:
            # shield: a cancelled joiner must not cancel the shared request
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(loader())
        self._inflight[key] = task

        try:
            result = await asyncio.shield(task)
        finally:
            # an invalidation removes (or replaces) the in-flight entry
            current = self._inflight.get(key) is task
            if current:
                del self._inflight[key]

        if current:
            self._entries[key] = result
        else:
            logger.debug(f"cache_discard_stale key={key}")

        return result

    def peek(self, key: QueryKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def contains(self, key: QueryKey) -> bool:
        return key in self._entries

    def invalidate(self, *prefixes: QueryKey) -> int:
        """Drop every cached key starting with one of `prefixes`; returns how many."""
        self._entries.expire()
        dropped = 0

        for key in list(self._entries.keys()):
            if any(_matches(key, prefix) for prefix in prefixes):
                if self._entries.pop(key, _MISSING) is not _MISSING:
                    dropped += 1

        # later fetches start a fresh request instead of joining a stale one
        for key in list(self._inflight):
            if any(_matches(key, prefix) for prefix in prefixes):
                del self._inflight[key]

        return dropped

    def invalidate_for(self, mutation: str, **params) -> int:
        if mutation not in INVALIDATIONS:
            raise ValueError(f"Unknown mutation {mutation!r}.")

        prefixes = list(INVALIDATIONS[mutation](**params))
        dropped = self.invalidate(*prefixes)
        logger.debug(f"cache_invalidate mutation={mutation} dropped={dropped}")
        return dropped

    def clear(self):
        self._entries.clear()
        self._inflight.clear()


query_cache = QueryCache()
