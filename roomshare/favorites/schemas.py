from pydantic import BaseModel
from typing import List, Optional

from roomshare.listings.schemas import Listing


# Toggle
class ToggleFavoriteModel(BaseModel):
    # what the client believes the state is; the store decides
    is_favorite: Optional[bool] = None


class FavoriteStateResponseModel(BaseModel):
    listing_id: str
    is_favorite: bool


# List
class FavoriteIdsResponseModel(BaseModel):
    listing_ids: List[str]


class FavoriteListingsResponseModel(BaseModel):
    listings: List[Listing]
