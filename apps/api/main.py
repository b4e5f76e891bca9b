"""
SiteSwift - FastAPI Backend
Main application entry point with health check and API routing.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, projects, billing
from services.generation_queue import recover_stalled_generations


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting SiteSwift API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    if settings.RECOVER_STALLED_GENERATIONS_ON_STARTUP:
        try:
            recovered = await recover_stalled_generations(settings.STALLED_GENERATION_MAX_AGE_MINUTES)
            if recovered:
                print(f"♻️ Refunded {recovered} stalled generations after startup.")
        except Exception as exc:
            print(f"⚠️ Stalled generation recovery skipped: {exc}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="SiteSwift API",
    description="Generate websites from prompts with credit-metered AI generation",
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
app.include_router(projects.router, prefix="/api/user", tags=["Projects"])
app.include_router(billing.router, prefix="/api/user", tags=["Billing"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "SiteSwift API",
        "version": "0.1.0",
        "status": "running"
    }
