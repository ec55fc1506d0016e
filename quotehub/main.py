"""
main.py — quotehub FastAPI application

Mounts the inbox router behind session auth. On startup, configures logging
and negotiates the store's schema capabilities so the first inbox request
does not pay for inspection.

Called by: uvicorn (quotehub.main:app)
Depends on: config.py, logging_config.py, dependencies.py, routers/inbox.py
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .config import settings
from .dependencies import get_store
from .logging_config import setup_logging
from .routers.inbox import router as inbox_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    loop = asyncio.get_running_loop()
    store = await loop.run_in_executor(None, get_store)
    caps = store.capabilities
    logger.info(
        "Inbox store ready",
        thread_relation=caps.thread_relation,
        message_shape=caps.message_shape.value,
        kickoff_shape=caps.kickoff_shape.value,
    )
    yield


app = FastAPI(title="quotehub", version=__version__, lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)
app.include_router(inbox_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
