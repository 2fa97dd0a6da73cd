import os
from typing import Optional

from dotenv import load_dotenv
from supabase import AsyncClient, acreate_client


load_dotenv()


supabase_url = os.getenv("PUBLIC_SUPABASE_URL")
supabase_key = os.getenv("SECRET_API_KEY")

_client: Optional[AsyncClient] = None


async def get_supabase() -> AsyncClient:
    """Shared async Supabase client, created on first use."""
    global _client

    if _client is None:
        _client = await acreate_client(supabase_url, supabase_key)

    return _client
