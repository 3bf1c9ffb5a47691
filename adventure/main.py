import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from adventure.api.deps import peek_controller
from adventure.api.routes import router

load_dotenv()

# Configure logging
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    controller = peek_controller()
    if controller is not None:
        # Let in-flight scene art land in the save before exiting.
        await controller.drain_images()


app = FastAPI(title="gemstone-adventure", version="0.1.0", lifespan=lifespan)
app.include_router(router)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "gemstone-adventure", "version": "0.1.0"}
