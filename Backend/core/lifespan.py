from contextlib import asynccontextmanager
from fastapi import FastAPI

from core.di_container import DependencyContainer
from core.logger import app_logger, configure_uvicorn_logger


@asynccontextmanager
async def lifespan_manager(app: FastAPI):
    """Context manager that runs tasks at app start and shutdown."""

    # Run at start
    configure_uvicorn_logger()
    container = DependencyContainer()
    await container.init_resources()
    app_logger.info(f"{app.title} {app.version} started")

    # Yield to app
    yield

    # Run at shutdown
    try:
        await container.shutdown_resources()
    except Exception as exc:
        app_logger.warning(f"Error while releasing resources: {exc}")
