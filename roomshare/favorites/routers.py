import logging
from typing import Optional

from fastapi import APIRouter, Depends

from roomshare.core.dependencies import get_current_user_id, get_favorite_registry, get_query_cache
from roomshare.core.errors import RoomshareError, as_http_exception
from roomshare.core.query_cache import (
    QueryCache,
    favorite_key,
    favorite_listings_key,
    favorites_key,
)
from .service import FavoriteRegistry
from .schemas import (
    ToggleFavoriteModel,
    FavoriteStateResponseModel,
    FavoriteIdsResponseModel,
    FavoriteListingsResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=FavoriteIdsResponseModel, status_code=200)
async def get_favorite_ids(
    user_id: str = Depends(get_current_user_id),
    registry: FavoriteRegistry = Depends(get_favorite_registry),
    cache: QueryCache = Depends(get_query_cache),
):
    """Ids of every listing the authenticated user has favorited, newest first."""
    try:
        listing_ids = await cache.fetch(favorites_key(user_id), lambda: registry.list_ids(user_id))
    except RoomshareError as error:
        raise as_http_exception(error)

    return {"listing_ids": listing_ids}


@router.get("/listings", response_model=FavoriteListingsResponseModel, status_code=200)
async def get_favorite_listings(
    user_id: str = Depends(get_current_user_id),
    registry: FavoriteRegistry = Depends(get_favorite_registry),
    cache: QueryCache = Depends(get_query_cache),
):
    """The authenticated user's favorited listings, resolved to full records."""
    try:
        listings = await cache.fetch(
            favorite_listings_key(user_id), lambda: registry.list_listings(user_id)
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    return {"listings": listings}


@router.get("/{listing_id}", response_model=FavoriteStateResponseModel, status_code=200)
async def get_favorite_state(
    listing_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: FavoriteRegistry = Depends(get_favorite_registry),
    cache: QueryCache = Depends(get_query_cache),
):
    try:
        is_favorite = await cache.fetch(
            favorite_key(listing_id, user_id), lambda: registry.is_favorite(user_id, listing_id)
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    return {"listing_id": listing_id, "is_favorite": is_favorite}


@router.post("/{listing_id}/toggle", response_model=FavoriteStateResponseModel, status_code=200)
async def toggle_favorite(
    listing_id: str,
    data: Optional[ToggleFavoriteModel] = None,
    user_id: str = Depends(get_current_user_id),
    registry: FavoriteRegistry = Depends(get_favorite_registry),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Favorite or unfavorite a listing.

    The current state is read from the database, so a double click or a
    stale `is_favorite` from the client still ends in the state the user
    expects. The response carries the state after the toggle.

    **Input**
    - `is_favorite` (optional): the state the client is showing

    **Errors**
    - 401: Unauthorized
    - 503: Database unavailable, the state is unchanged
    """
    try:
        is_favorite = await registry.toggle(
            user_id, listing_id, data.is_favorite if data else None
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    cache.invalidate_for("toggle_favorite", listing_id=listing_id)

    return {"listing_id": listing_id, "is_favorite": is_favorite}


@router.delete("/{listing_id}", response_model=FavoriteStateResponseModel, status_code=200)
async def remove_favorite(
    listing_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: FavoriteRegistry = Depends(get_favorite_registry),
    cache: QueryCache = Depends(get_query_cache),
):
    """Unfavorite a listing. Removing a listing that is not favorited succeeds."""
    try:
        await registry.remove(user_id, listing_id)
    except RoomshareError as error:
        raise as_http_exception(error)

    cache.invalidate_for("remove_favorite", listing_id=listing_id)

    return {"listing_id": listing_id, "is_favorite": False}
