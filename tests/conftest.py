from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

# Point the app-wide engine at a throwaway database before backend.config is imported.
os.environ.setdefault(
    "HOMESCHOOL_SRS_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp(prefix='homeschool_srs_')) / 'app.db'}",
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from backend.api.review_router import get_clock  # noqa: E402
from backend.database import get_session  # noqa: E402
from backend.main import app  # noqa: E402
from backend.models import Base, Child, Flashcard, LearningSession, Review, Topic  # noqa: E402
from backend.srs.service import ReviewService  # noqa: E402

FIXED_NOW = datetime(2026, 10, 19, 9, 30)
TODAY = FIXED_NOW.date()


def fixed_clock() -> datetime:
    return FIXED_NOW


@dataclass
class Seed:
    child_id: int
    other_child_id: int
    topic_id: int
    session_id: int
    flashcard_id: int


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> async_sessionmaker:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed(db: AsyncSession) -> Seed:
    child = Child(name="Ada", grade="3rd")
    other = Child(name="Ben", grade="1st")
    topic = Topic(title="Fractions")
    db.add_all([child, other, topic])
    await db.flush()

    lesson = LearningSession(child_id=child.id, topic_id=topic.id, status="done")
    card = Flashcard(topic_id=topic.id, question="1/2 + 1/4?", answer="3/4")
    db.add_all([lesson, card])
    await db.commit()

    return Seed(
        child_id=child.id,
        other_child_id=other.id,
        topic_id=topic.id,
        session_id=lesson.id,
        flashcard_id=card.id,
    )


@pytest.fixture
def service(db: AsyncSession) -> ReviewService:
    return ReviewService(db, clock=fixed_clock)


async def make_review(
    db: AsyncSession,
    seed: Seed,
    *,
    child_id: int | None = None,
    created_at: datetime | None = None,
    card: dict[str, object] | None = None,
    **fields: object,
) -> Review:
    """Insert a flashcard review with explicit scheduling fields.

    ``card`` overrides the flashcard columns (card type, answer, choices).
    """
    card_values: dict[str, object] = {"question": "q", "answer": "a"}
    card_values.update(card or {})
    flashcard = Flashcard(topic_id=seed.topic_id, **card_values)
    db.add(flashcard)
    await db.flush()

    values: dict[str, object] = {
        "interval_days": 1,
        "ease_factor": 2.5,
        "repetitions": 0,
        "status": "new",
        "due_date": date(2026, 10, 20),
    }
    values.update(fields)
    review = Review(
        flashcard_id=flashcard.id,
        child_id=child_id or seed.child_id,
        topic_id=seed.topic_id,
        created_at=created_at or FIXED_NOW,
        **values,
    )
    db.add(review)
    await db.commit()
    return review


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker) -> AsyncClient:
    """HTTP client for the app, bound to the test database and the fixed clock."""

    async def override_session() -> AsyncSession:  # type: ignore[misc]
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.clear()
