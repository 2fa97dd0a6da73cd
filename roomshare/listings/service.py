import logging
from typing import Dict, List, Optional

from roomshare.core.store import execute
from .schemas import Listing


logger = logging.getLogger(__name__)


async def get_listing_title(client, listing_id: str) -> Optional[str]:
    response = await execute(
        client.table("listings").select("title").eq("id", str(listing_id)).limit(1),
        action="look up listing title",
    )

    if not response.data:
        return None

    return response.data[0]["title"]


async def get_listings(client, listing_ids: List[str]) -> List[Listing]:
    """
    Resolve listing ids to listing records, keeping the order of `listing_ids`.

    Ids with no matching row are skipped.
    """
    if not listing_ids:
        return []

    response = await execute(
        client.table("listings").select("*").in_("id", [str(i) for i in listing_ids]),
        action="look up listings",
    )

    by_id: Dict[str, Listing] = {
        str(row["id"]): Listing.model_validate(row) for row in response.data or []
    }

    missing = [i for i in listing_ids if str(i) not in by_id]
    if missing:
        logger.info(f"listings_missing count={len(missing)}")

    return [by_id[str(i)] for i in listing_ids if str(i) in by_id]
