import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes.jobs import router as jobs_router
from services.context import build_context
from services.pipeline import ClipPipeline
from services.settings import Settings

load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = Settings.from_env()
    async with httpx.AsyncClient() as http:
        context = build_context(settings, http)
        app.state.context = context
        app.state.pipeline = ClipPipeline(context)
        logger.info(
            "[app] Pipeline ready: bucket=%s upload=%s model=%s",
            settings.gcs_bucket,
            context.can_upload,
            settings.gemini_model,
        )
        yield
        app.state.pipeline = None


app = FastAPI(title="Clipcaster API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(jobs_router, prefix="/api")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
