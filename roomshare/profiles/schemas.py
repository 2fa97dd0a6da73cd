from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class Profile(BaseModel):
    id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email_public: Optional[str] = None
    created_at: Optional[datetime] = None

    def without_contact(self) -> "Profile":
        """Copy of the profile with the contact fields blanked out."""
        return self.model_copy(update={"phone": None, "whatsapp": None, "email_public": None})


# GET /profiles/{user_id}
class ProfileResponseModel(BaseModel):
    profile: Profile
    contact_visible: bool
