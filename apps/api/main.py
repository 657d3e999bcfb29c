"""
Time Capsule - FastAPI Backend
Main application entry point with health check and API routing.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pathlib import Path

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    media,
    secrets,
    reveal,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Time Capsule API...")
    validate_security_settings()
    Path(settings.MEDIA_STORAGE_DIR).mkdir(parents=True, exist_ok=True)
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Time Capsule API",
    description="Seal messages and media today, reveal them on a future date",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(media.router, prefix="/media", tags=["Media"])
app.include_router(secrets.router, prefix="/secrets", tags=["Secrets"])
app.include_router(reveal.router, prefix="/reveal", tags=["Reveal"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Time Capsule API",
        "version": "0.1.0",
        "status": "running"
    }
