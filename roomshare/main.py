import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from .conversations import routers as conversation_router
from .messages import routers as message_router
from .favorites import routers as favorite_router
from .profiles import routers as profile_router

from .core.dependencies import close_realtime_bridge, get_current_user_id
from .core.middleware import logging_middleware
from .utils.env_helper import env_list
from .utils.logging_config import setup_logging

load_dotenv()
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield

    logger.info("app_shutdown closing realtime subscriptions")
    await close_realtime_bridge()


app = FastAPI(title="roomshare", lifespan=lifespan)
app.include_router(conversation_router.router, prefix="/chat", tags=["Conversations"])
app.include_router(message_router.router, prefix="/chat", tags=["Messages"])
app.include_router(favorite_router.router, prefix="/favorites", tags=["Favorites"])
app.include_router(profile_router.router, prefix="/profiles", tags=["Profiles"])


origins = env_list(
    "CORS_ORIGINS",
    [
        "http://localhost:5173",
        "http://localhost:8080",
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(logging_middleware)


@app.get("/me")
def whoami(user_id: str = Depends(get_current_user_id)):
    return {"user_id": user_id}
