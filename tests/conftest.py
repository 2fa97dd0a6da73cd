# tests/conftest.py
import os
import time
import uuid
from collections.abc import Iterator

import jwt
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("PUBLIC_SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SECRET_API_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")

from roomshare.conversations.service import ConversationDirectory
from roomshare.core.dependencies import get_query_cache
from roomshare.core.query_cache import QueryCache
from roomshare.core.supabase_client import get_supabase
from roomshare.favorites.service import FavoriteRegistry
from roomshare.main import app as fastapi_app
from roomshare.messages.realtime import RealtimeBridge
from roomshare.messages.service import MessageChannel

from tests.fakes import FakeSupabase


def new_id() -> str:
    return str(uuid.uuid4())


def make_token(user_id: str, expires_in: int = 3600) -> str:
    now = int(time.time())
    return jwt.encode(
        {
            "sub": user_id,
            "iss": f"{os.environ['PUBLIC_SUPABASE_URL']}/auth/v1",
            "iat": now,
            "exp": now + expires_in,
            "role": "authenticated",
        },
        os.environ["SUPABASE_JWT_SECRET"],
        algorithm="HS256",
    )


@pytest.fixture()
def store() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture()
def directory(store) -> ConversationDirectory:
    return ConversationDirectory(store)


@pytest.fixture()
def channel(store, directory) -> MessageChannel:
    return MessageChannel(store, directory)


@pytest.fixture()
def bridge(store, cache) -> RealtimeBridge:
    return RealtimeBridge(store, cache)


@pytest.fixture()
def registry(store) -> FavoriteRegistry:
    return FavoriteRegistry(store)


@pytest.fixture()
def alice(store) -> str:
    user_id = new_id()
    store.seed(
        "profiles",
        {
            "id": user_id,
            "full_name": "Alice Martin",
            "phone": "+33 6 00 00 00 01",
            "whatsapp": "+33 6 00 00 00 01",
            "email_public": "alice@example.com",
        },
    )
    return user_id


@pytest.fixture()
def bob(store) -> str:
    user_id = new_id()
    store.seed(
        "profiles",
        {
            "id": user_id,
            "full_name": "Bob Durand",
            "phone": "+33 6 00 00 00 02",
            "email_public": "bob@example.com",
        },
    )
    return user_id


@pytest.fixture()
def carol(store) -> str:
    user_id = new_id()
    store.seed("profiles", {"id": user_id, "full_name": "Carol"})
    return user_id


@pytest.fixture()
def listing(store, bob) -> dict:
    (row,) = store.seed(
        "listings",
        {
            "id": new_id(),
            "user_id": bob,
            "title": "Sunny room near the canal",
            "price": 650,
            "location": "Lyon",
            "room_type": "single",
            "amenities": ["WiFi", "Laundry"],
            "is_active": True,
        },
    )
    return row


@pytest.fixture()
def app(store, cache):
    async def _get_supabase_override():
        return store

    fastapi_app.dependency_overrides[get_supabase] = _get_supabase_override
    fastapi_app.dependency_overrides[get_query_cache] = lambda: cache
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_header():
    def _auth_header(user_id: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _auth_header
