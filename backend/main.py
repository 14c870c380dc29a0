"""FastAPI application entry point and configuration."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.review_router import router as review_router
from backend.api.stats_router import router as stats_router
from backend.config import settings
from backend.database import engine, get_session, init_db


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize database on startup and cleanup on shutdown."""
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Spaced repetition reviews for homeschool topics and flashcards",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(review_router)
app.include_router(stats_router)


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_session)) -> dict[str, str]:
    """Check database connectivity and return status."""
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
