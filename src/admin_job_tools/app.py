"""Runnable FastAPI application serving the job API."""

import argparse
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from loguru import logger

from .common.file_storage_impl import LocalFileStorage
from .common.sqlalchemy_repository import SQLAlchemyJobRepository
from .common.user import UserLike
from .config import Settings, get_settings
from .dispatcher import Dispatcher
from .master import create_master_router
from .utils.log_config import configure_logging
from .utils.mqtt import DISPATCHER_STATUS_TOPIC, get_broadcaster, shutdown_broadcaster


def anonymous_user() -> UserLike | None:
    return None


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    repository = SQLAlchemyJobRepository(settings.database_url)
    file_storage = LocalFileStorage(settings.storage_dir)
    broadcaster = get_broadcaster(settings.mqtt_url, will_topic=DISPATCHER_STATUS_TOPIC)
    dispatcher = Dispatcher(
        repository,
        max_workers=settings.max_workers,
        timeout_seconds=settings.job_timeout,
        broadcaster=broadcaster,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        _ = broadcaster.publish_retained(topic=DISPATCHER_STATUS_TOPIC, payload="online")
        logger.info(f"Job API ready (database={repository.engine.url!r})")
        try:
            yield
        finally:
            await dispatcher.shutdown()
            _ = broadcaster.publish_retained(topic=DISPATCHER_STATUS_TOPIC, payload="offline")
            shutdown_broadcaster()
            repository.engine.dispose()

    app = FastAPI(title="Admin Job Tools", lifespan=lifespan)
    app.state.settings = settings
    app.state.repository = repository
    app.state.file_storage = file_storage
    app.state.dispatcher = dispatcher

    app.include_router(
        create_master_router(repository, file_storage, dispatcher, anonymous_user),
        prefix="/api",
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    _ = health
    return app


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Serve the admin job API.")
    _ = parser.add_argument("--host", default="127.0.0.1")
    _ = parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
