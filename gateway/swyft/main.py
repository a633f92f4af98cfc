import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import models  # noqa: F401  registers tables on Base.metadata
from .config import get_settings
from .database import init_db
from .errors import register_error_handlers
from .notifier import Notifier, connect_redis, start_redis_listener
from .routes import rides, users
from .websocket_route import router as ws_router
from .ws_forwarder import WsForwarder
from .ws_manager import ConnectionManager

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.include_router(rides.router)
app.include_router(users.router)
app.include_router(ws_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.state.ws_manager = ConnectionManager()
app.state.notifier = Notifier(channel=settings.redis_channel)
app.state.redis_stop = None


@app.get("/")
def read_root():
    return {"message": "Backend is running!"}


@app.get("/health")
def health_check():
    return {"status": "ok", "redis": app.state.notifier.redis_client is not None}


@app.on_event("startup")
async def startup_event():
    await asyncio.to_thread(init_db)

    loop = asyncio.get_running_loop()
    notifier: Notifier = app.state.notifier
    notifier.forwarder = WsForwarder(loop, app.state.ws_manager)
    notifier.redis_client = connect_redis(get_settings())
    app.state.redis_stop = start_redis_listener(notifier)
    logger.info("[App] %s started", settings.app_name)


@app.on_event("shutdown")
async def shutdown_event():
    if app.state.redis_stop is not None:
        app.state.redis_stop.set()
    app.state.notifier.forwarder = None
