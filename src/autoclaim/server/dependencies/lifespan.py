from contextlib import asynccontextmanager

from fastapi import FastAPI

from autoclaim.main.aiohttp_client import aiohttp_client
from autoclaim.main.config import get_settings
from autoclaim.sessions.session_controller import session_controller


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup()
    yield
    await shutdown()


async def startup():
    aiohttp_client.start()


async def shutdown():
    # Stop any running session before the shared HTTP session goes away
    await session_controller.shutdown(timeout=get_settings().shutdown_timeout_seconds)
    await aiohttp_client.stop()
