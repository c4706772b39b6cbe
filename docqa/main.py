"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, startup/shutdown hooks.
"""
import asyncio
import os

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from . import config
from .db.migrations import run_sql_migrations
from .dependencies import get_embedder
from .logging_config import logger
from .ollama_boot import ensure_ollama_models
from .routes import chat, documents, models

# -------------------------------------------------
# App setup
# -------------------------------------------------

app = FastAPI(title="Document Q&A", version="1.0.0")

# Register routers
app.include_router(chat.router)
app.include_router(documents.router)
app.include_router(models.router)


@app.on_event("startup")
async def startup_event():
    """Initialize database, embedding model and Ollama models on startup."""
    if not config.RUN_STARTUP_TASKS:
        logger.info("Startup tasks disabled")
        return
    try:
        logger.info("Running database migrations...")
        await asyncio.to_thread(run_sql_migrations)
        logger.info("Database migrations completed")

        logger.info("Preloading embedding model...")
        await asyncio.to_thread(get_embedder().preload)
        logger.info("Embedding model ready")

        if config.DEFAULT_PROVIDER == "ollama":
            logger.info("Ensuring Ollama models are available...")
            await ensure_ollama_models()
            logger.info("Ollama models ready")
    except Exception as e:
        logger.error("Startup initialization error", exc_info=e)
        # Continue anyway - app might still be usable


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Application shutting down")


# Static files last (so they don't swallow /api/* routes)
if os.path.isdir(config.WEB_DIR):
    app.mount("/", StaticFiles(directory=config.WEB_DIR, html=True), name="web")
