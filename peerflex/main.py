import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from peerflex.core.config import settings
from peerflex.core.errors import PeerflexError
from peerflex.core.logger_config import setup_logging
from peerflex.database.connection import close_mongo_connection, connect_to_mongo, get_database
from peerflex.routers.auth import router as auth_router
from peerflex.routers.chat import router as chat_router
from peerflex.routers.connections import router as connections_router
from peerflex.routers.conversations import router as conversations_router
from peerflex.routers.events import router as events_router
from peerflex.routers.live import router as live_router
from peerflex.routers.locations import router as locations_router
from peerflex.routers.notifications import router as notifications_router
from peerflex.routers.preferences import router as preferences_router
from peerflex.routers.profiles import router as profiles_router
from peerflex.store.preferences import PreferencesStore
from peerflex.utils.change_feed import get_feed, reset_feed
from peerflex.utils.realtime_bus import close_bus


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR or None)
    await connect_to_mongo()
    await get_feed()
    app.state.preferences = PreferencesStore(settings.PREFERENCES_PATH)
    try:
        yield
    finally:
        await close_bus()
        reset_feed()
        await close_mongo_connection()


app = FastAPI(title="Peerflex", lifespan=lifespan)


@app.exception_handler(PeerflexError)
async def peerflex_error_handler(request: Request, exc: PeerflexError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(auth_router)
app.include_router(conversations_router)
app.include_router(chat_router)
app.include_router(live_router)
app.include_router(connections_router)
app.include_router(events_router)
app.include_router(notifications_router)
app.include_router(profiles_router)
app.include_router(locations_router)
app.include_router(preferences_router)


@app.get("/")
async def root():

    db = get_database()
    collections = await db.list_collection_names()
    return {"message": "Peerflex is running", "collections": collections}
