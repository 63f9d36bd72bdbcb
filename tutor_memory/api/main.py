"""Main FastAPI application and server startup."""

import argparse
from typing import Dict

import uvicorn
from fastapi import Depends, FastAPI
from pydantic import BaseModel, Field

from tutor_memory.config.settings import load_settings
from tutor_memory.memory.integrate import MemoryEngine
from tutor_memory.telemetry import configure_logging
from .memory import close_memory_engine, get_memory_engine
from .memory import router as memory_router

app = FastAPI(
    title="Tutor Memory API",
    description="Conversational memory for tutoring chats",
    version="1.0.0",
)

app.include_router(memory_router, prefix="/api", tags=["memory"])


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str = Field(..., description="Service status")
    components: Dict[str, bool] = Field(default_factory=dict, description="Component availability")


@app.on_event("startup")
async def startup_event():
    """Configure logging and load persisted memories."""
    settings = load_settings()
    configure_logging(settings.logging)
    get_memory_engine()


@app.on_event("shutdown")
async def shutdown_event():
    """Close storage on shutdown."""
    close_memory_engine()


@app.get("/health", response_model=HealthResponse)
async def health(engine: MemoryEngine = Depends(get_memory_engine)):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        components={
            "persistence": engine.persistence is not None,
        },
    )


def main():
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Tutor memory API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    uvicorn.run("tutor_memory.api.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
