"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from butler.api import router as api_router
from butler.core.butler import build_butler
from butler.core.config import get_settings
from butler.core.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.butler = build_butler(settings)
    logger.info(f"Context butler ready (env={settings.BUTLER_ENV}, model={settings.EMBEDDING_MODEL})")
    yield
    app.state.butler = None


app = FastAPI(
    title="Butler Context Engine",
    description="Automatic context retrieval for chat assistants",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
