from fastapi import APIRouter, HTTPException, Depends

from roomshare.conversations.service import ConversationDirectory
from roomshare.core.dependencies import get_current_user_id, get_directory, get_query_cache
from roomshare.core.errors import RoomshareError, as_http_exception
from roomshare.core.query_cache import QueryCache, has_conversation_key, profile_key
from roomshare.core.supabase_client import get_supabase
from .service import get_profile
from .schemas import ProfileResponseModel


router = APIRouter()


@router.get("/{user_id}", response_model=ProfileResponseModel, status_code=200)
async def get_user_profile(
    user_id: str,
    viewer_id: str = Depends(get_current_user_id),
    client=Depends(get_supabase),
    directory: ConversationDirectory = Depends(get_directory),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Get a user's public profile.

    Contact details (`phone`, `whatsapp`, `email_public`) are only
    returned to the user themselves or to someone who already has a
    conversation with them. Everyone else gets them blanked, so a poster's
    details are revealed only after contact through the app.

    **Errors**
    - 401: Unauthorized
    - 404: Profile not found
    - 503: Database unavailable
    """
    try:
        profile = await cache.fetch(
            profile_key(user_id), lambda: get_profile(client, user_id)
        )

        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found.")

        contact_visible = viewer_id == user_id or await cache.fetch(
            has_conversation_key(user_id, viewer_id),
            lambda: directory.exists(viewer_id, user_id),
        )
    except RoomshareError as error:
        raise as_http_exception(error)

    if not contact_visible:
        profile = profile.without_contact()

    return {"profile": profile, "contact_visible": contact_visible}
