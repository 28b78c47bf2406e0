"""Main FastAPI application."""
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from voice_gateway.api import debug, health
from voice_gateway.api.webhooks import voice
from voice_gateway.core.config import settings
from voice_gateway.core.dependencies import close_clients, get_session_store
from voice_gateway.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    store = get_session_store()
    store.start_sweeper()
    yield
    # Shutdown
    await store.stop_sweeper()
    await close_clients()


app = FastAPI(
    title="Voice Booking Gateway",
    description="Phone booking assistant bridging Twilio voice webhooks to a tool-using LLM agent",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(voice.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(debug.router, tags=["debug"])


@app.get("/")
async def root():
    """Service information."""
    return {
        "message": "Voice Booking Gateway",
        "version": "0.1.0",
        "webhook": "POST /webhooks/voice/incoming",
    }


def run() -> None:
    """Run the server with uvicorn."""
    uvicorn.run("voice_gateway.main:app", host=settings.host, port=settings.port)
