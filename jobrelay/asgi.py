"""ASGI entry point for uvicorn.

Usage:
    uvicorn jobrelay.asgi:app --host 0.0.0.0 --port 8080
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from jobrelay import __version__
from jobrelay.config import RelayConfig
from jobrelay.logging_filters import install_uvicorn_access_log_filters
from jobrelay.main import Application


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    """Set up the application on startup and shut it down on exit."""
    install_uvicorn_access_log_filters()
    application = Application(RelayConfig.from_json_file())
    await application.setup()
    application.include_routers(fastapi_app)
    fastapi_app.state.application = application

    try:
        yield
    finally:
        await application.shutdown()


app = FastAPI(
    title="jobrelay",
    description="Job post publishing and chat context relay",
    version=__version__,
    lifespan=lifespan,
)
