"""FastAPI application entry point for the chat message translation service."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from chat_translation.api.routes import api_router, health_router
from chat_translation.config import Settings, get_settings
from chat_translation.core.cache import TranslationCache
from chat_translation.core.manual_retry import ManualRetryHandler, TranslationSubmitter
from chat_translation.core.translator import TranslationClient
from chat_translation.messages.notifications import RedisRoomNotifier, RoomNotifier
from chat_translation.messages.rooms import InMemoryRoomDirectory, RoomDirectory
from chat_translation.messages.store import InMemoryMessageStore, MessageStore
from chat_translation.providers.azure_translator import AzureTranslatorProvider
from chat_translation.queue.job_queue import TranslationJobQueue
from chat_translation.queue.worker import TranslationWorker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def connect_redis(settings: Settings) -> Optional[Any]:
    """
    Open the Redis connection used for the queue, cache and notifications.

    Returns:
        redis.asyncio client, or None if no URL is set or Redis is unreachable
    """
    if not settings.redis_url:
        logger.warning("Redis URL is not configured, translation queue disabled")
        return None

    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except RedisError as e:
        logger.error(f"Redis is unreachable, translation queue disabled: {type(e).__name__}")
        await client.aclose()
        return None

    logger.info("Connected to Redis")
    return client


def build_pipeline(
    app: FastAPI,
    settings: Settings,
    redis_client: Optional[Any],
) -> None:
    """
    Create the translation pipeline objects and keep them on ``app.state``.

    Collaborators already placed on ``app.state`` by ``create_app`` are used
    as given.
    """
    state = app.state
    state.settings = settings
    state.redis = redis_client

    if getattr(state, "notifier", None) is None:
        state.notifier = RedisRoomNotifier(redis_client, settings.notification_channel_prefix)

    provider = AzureTranslatorProvider(settings)
    cache = TranslationCache(redis_client, settings.translation_cache_ttl_seconds)
    state.translation_client = TranslationClient(provider, cache, settings)
    state.job_queue = TranslationJobQueue(redis_client, settings)
    state.worker = TranslationWorker(
        state.job_queue,
        state.translation_client,
        state.message_store,
        state.notifier,
        settings,
    )
    state.retry_handler = ManualRetryHandler(state.job_queue, state.message_store, state.room_directory, settings)
    state.submitter = TranslationSubmitter(state.job_queue, state.message_store, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Handles startup and shutdown events.
    """
    # Startup
    settings = app.state.settings
    logger.info(f"Starting chat translation service on {settings.host}:{settings.port}")

    if not settings.translator_configured:
        logger.warning("Translator endpoint or subscription key is not configured!")
    else:
        logger.info("Translator is configured")

    owns_redis = app.state.redis is None
    redis_client = await connect_redis(settings) if owns_redis else app.state.redis

    build_pipeline(app, settings, redis_client)

    if app.state.start_worker:
        await app.state.worker.start()

    yield

    # Shutdown
    logger.info("Shutting down chat translation service")
    await app.state.worker.stop()
    await app.state.translation_client.close()
    if owns_redis and redis_client is not None:
        await redis_client.aclose()


def create_app(
    settings: Optional[Settings] = None,
    redis_client: Optional[Any] = None,
    message_store: Optional[MessageStore] = None,
    room_directory: Optional[RoomDirectory] = None,
    notifier: Optional[RoomNotifier] = None,
    start_worker: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance
        redis_client: Optional Redis client; connects to ``redis_url`` when omitted
        message_store: Message store of the host application
        room_directory: Room membership lookups of the host application
        notifier: Room broadcaster; publishes on Redis when omitted
        start_worker: Whether the lifespan starts the background worker

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Chat Translation Service",
        description=(
            "Asynchronous translation of chat messages into multiple languages. "
            "Jobs are queued on Redis and processed by a background worker "
            "against Azure AI Translator."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.redis = redis_client
    app.state.message_store = message_store or InMemoryMessageStore()
    app.state.room_directory = room_directory or InMemoryRoomDirectory()
    app.state.notifier = notifier
    app.state.start_worker = start_worker

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chat_translation.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
