from typing import Optional

from roomshare.core.store import execute
from .schemas import Profile


async def get_profile(client, user_id: str) -> Optional[Profile]:
    """Get a user's profile using their id"""
    response = await execute(
        client.table("profiles").select("*").eq("id", str(user_id)).limit(1),
        action="look up profile",
    )

    if not response.data:
        return None

    return Profile.model_validate(response.data[0])
