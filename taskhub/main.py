# taskhub/main.py

from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhub.core import state
from taskhub.core.config import settings
from taskhub.core.logging import setup_logging, get_logger
from taskhub.api.routes import root, health, metrics, rooms, notifications
from taskhub.api import websocket as websocket_module

# Configure logging first
setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="Taskhub Realtime")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)
app.include_router(notifications.router)

# WebSocket routes
app.include_router(websocket_module.router)

_listener_task: asyncio.Task | None = None


@app.on_event("startup")
async def startup_event():
    global _listener_task
    logger.info("🚀 Application starting - backplane: %s", settings.PUB_SUB_SERVICE)

    if settings.PUB_SUB_SERVICE == "redis":
        from taskhub.services.redis_pub_sub import AsyncRedisPubSubService, log_listener_exit

        redis_service = AsyncRedisPubSubService(
            state.connection_manager,
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            access_key=settings.REDIS_ACCESS_KEY,
            ssl=settings.REDIS_SSL,
        )
        await redis_service.connect()

        state.backplane = redis_service
        state.connection_manager.backplane = redis_service

        # Start subscriber in background
        _listener_task = asyncio.create_task(redis_service.listen())
        _listener_task.add_done_callback(log_listener_exit)
    elif settings.PUB_SUB_SERVICE == "google_pub_sub":
        from taskhub.services.gcloud_pub_sub import GooglePubSubService

        pubsub_service = GooglePubSubService(
            state.connection_manager,
            project_id=settings.PROJECT_ID,
            topic_id=settings.TOPIC_ID,
            subscription_id=settings.SUBSCRIPTION_ID,
        )
        pubsub_service.start(asyncio.get_running_loop())

        state.backplane = pubsub_service
        state.connection_manager.backplane = pubsub_service


@app.on_event("shutdown")
async def on_shutdown():
    if _listener_task is not None:
        _listener_task.cancel()

    backplane = state.backplane
    if backplane is None:
        return
    state.connection_manager.backplane = None
    state.backplane = None

    if settings.PUB_SUB_SERVICE == "redis":
        await backplane.close()
    elif settings.PUB_SUB_SERVICE == "google_pub_sub":
        backplane.shutdown()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("taskhub.main:app", host="0.0.0.0", port=8000)
