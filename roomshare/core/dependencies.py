import os
import logging
from typing import Optional

import jwt
from dotenv import load_dotenv
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from roomshare.conversations.service import ConversationDirectory
from roomshare.favorites.service import FavoriteRegistry
from roomshare.messages.realtime import RealtimeBridge
from roomshare.messages.service import MessageChannel
from .query_cache import QueryCache, query_cache
from .supabase_client import get_supabase

load_dotenv()

logger = logging.getLogger(__name__)
security = HTTPBearer()


def decode_token(token: str) -> dict:
    """Verify a Supabase access token and return its claims."""
    try:
        return jwt.decode(
            token,
            os.getenv("SUPABASE_JWT_SECRET"),
            algorithms=["HS256"],
            issuer=f"{os.getenv('PUBLIC_SUPABASE_URL')}/auth/v1",
            options={"verify_aud": False},
            leeway=60,
        )

    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")

    except jwt.InvalidTokenError as e:
        logger.info(f"jwt_verification_failed error={e}")
        raise HTTPException(status_code=401, detail="Invalid token")


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    return decode_token(credentials.credentials)


def get_current_user_id(user=Depends(verify_token)) -> str:
    user_id = user.get("sub")

    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    return str(user_id)


# Services


def get_query_cache() -> QueryCache:
    return query_cache


async def get_directory(client=Depends(get_supabase)) -> ConversationDirectory:
    return ConversationDirectory(client)


async def get_message_channel(
    client=Depends(get_supabase),
    directory: ConversationDirectory = Depends(get_directory),
) -> MessageChannel:
    return MessageChannel(client, directory)


async def get_favorite_registry(client=Depends(get_supabase)) -> FavoriteRegistry:
    return FavoriteRegistry(client)


_bridge: Optional[RealtimeBridge] = None


async def get_realtime_bridge(
    client=Depends(get_supabase),
    cache: QueryCache = Depends(get_query_cache),
) -> RealtimeBridge:
    """Process-wide bridge, so every open subscription is tracked in one place."""
    global _bridge

    if _bridge is None or _bridge.client is not client or _bridge.cache is not cache:
        _bridge = RealtimeBridge(client, cache)

    return _bridge


async def close_realtime_bridge() -> None:
    """Remove every channel still open on the process-wide bridge."""
    global _bridge

    if _bridge is None:
        return

    bridge, _bridge = _bridge, None
    await bridge.close_all()
