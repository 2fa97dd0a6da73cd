from pydantic import BaseModel
from datetime import date, datetime
from typing import List, Optional


class Listing(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    price: Optional[float] = None
    location: Optional[str] = None
    room_type: Optional[str] = None
    available_from: Optional[date] = None
    available_until: Optional[date] = None
    amenities: List[str] = []
    images: List[str] = []
    is_active: bool = True
    created_at: Optional[datetime] = None
