import asyncio
import logging
from typing import List, Optional
from weakref import WeakValueDictionary

from roomshare.core.errors import StoreError
from roomshare.core.store import execute, is_unique_violation
from roomshare.listings.schemas import Listing
from roomshare.listings.service import get_listings


logger = logging.getLogger(__name__)


class FavoriteRegistry:
    """
    Bookmarks between users and listings.

    `add` and `remove` succeed whatever the current state is. `toggle`
    reads the relation from the store and flips it, holding a per
    (user, listing) lock so that two toggles from this process never act
    on the same stale read.
    """

    # shared by every registry in the process; entries vanish once unused
    _toggle_locks: "WeakValueDictionary[tuple, asyncio.Lock]" = WeakValueDictionary()

    def __init__(self, client):
        self.client = client

    def _lock_for(self, user_id: str, listing_id: str) -> asyncio.Lock:
        key = (str(user_id), str(listing_id))
        lock = self._toggle_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._toggle_locks[key] = lock
        return lock

    async def is_favorite(self, user_id: str, listing_id: str) -> bool:
        response = await execute(
            self.client.table("favorites")
            .select("id")
            .eq("user_id", str(user_id))
            .eq("listing_id", str(listing_id))
            .limit(1),
            action="check favorite",
        )
        return bool(response.data)

    async def add(self, user_id: str, listing_id: str) -> None:
        try:
            await execute(
                self.client.table("favorites").insert(
                    {"user_id": str(user_id), "listing_id": str(listing_id)}
                ),
                action="add favorite",
            )
        except StoreError as error:
            if not is_unique_violation(error):
                raise
            logger.debug(f"favorite_already_present user_id={user_id} listing_id={listing_id}")
            return

        logger.info(f"favorite_added user_id={user_id} listing_id={listing_id}")

    async def remove(self, user_id: str, listing_id: str) -> None:
        # deleting an absent row matches nothing and is not an error
        response = await execute(
            self.client.table("favorites")
            .delete()
            .eq("user_id", str(user_id))
            .eq("listing_id", str(listing_id)),
            action="remove favorite",
        )

        if response.data:
            logger.info(f"favorite_removed user_id={user_id} listing_id={listing_id}")

    async def toggle(
        self, user_id: str, listing_id: str, current_state: Optional[bool] = None
    ) -> bool:
        """
        Flip the bookmark and return the new state.

        `current_state` is what the caller last saw. It is only compared
        against the store and logged when it is stale; the store's answer
        decides which way the toggle goes.
        """
        async with self._lock_for(user_id, listing_id):
            present = await self.is_favorite(user_id, listing_id)

            if current_state is not None and current_state != present:
                logger.info(
                    f"favorite_toggle_stale_state user_id={user_id} listing_id={listing_id} "
                    f"believed={current_state} actual={present}"
                )

            if present:
                await self.remove(user_id, listing_id)
            else:
                await self.add(user_id, listing_id)

            return not present

    async def list_ids(self, user_id: str) -> List[str]:
        """Favorited listing ids, most recently favorited first."""
        response = await execute(
            self.client.table("favorites")
            .select("listing_id, created_at")
            .eq("user_id", str(user_id))
            .order("created_at", desc=True),
            action="list favorites",
        )
        return [str(row["listing_id"]) for row in response.data or []]

    async def list_listings(self, user_id: str) -> List[Listing]:
        listing_ids = await self.list_ids(user_id)
        return await get_listings(self.client, listing_ids)
