"""
FastAPI application for the Client Vetting service.

Startup configures logging, seeds an empty store with the default
question bank, and starts the background enrichment queue.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import clients_router, conversations_router
from config import get_settings
from intelligence import get_task_queue
from storage import get_storage, seed_defaults
from utils.logging import setup_logging

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Set up logging, seed data and the task queue; drain the queue on shutdown."""
    current = get_settings()
    setup_logging(current.log_level, current.log_file)
    if current.seed_defaults:
        seed_defaults(get_storage())
    tasks = get_task_queue()
    logger.info("Vetting API started in %s mode", current.interview_mode)

    yield

    tasks.shutdown()
    get_task_queue.cache_clear()
    logger.info("Vetting API stopped")


app = FastAPI(
    title="Client Vetting API",
    description="Interview, dossier and scoring service for vetting new clients",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for Streamlit UIs
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(conversations_router)
app.include_router(clients_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "client_vetting"}


@app.get("/")
def root():
    """Root endpoint with API info."""
    return {
        "service": "Client Vetting API",
        "version": "1.0.0",
        "interview_mode": get_settings().interview_mode,
        "endpoints": {
            "conversations": "/v1/conversations",
            "clients": "/v1/clients",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
