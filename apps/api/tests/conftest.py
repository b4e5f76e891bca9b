import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, get_db
from main import app
from models.user import User
from routers import rate_limit
from services import generation, generation_queue, site_ai
from services.catalog import ENHANCE_SYSTEM_PROMPT


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def inline_executor(monkeypatch):
    monkeypatch.setattr(settings, "GENERATION_EXECUTOR", "inline")


@pytest_asyncio.fixture
async def session_maker(tmp_path, monkeypatch):
    """Temp SQLite database shared by request handlers and background jobs."""
    db_path = tmp_path / "siteswift.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    monkeypatch.setattr(generation, "async_session_maker", maker)
    monkeypatch.setattr(generation_queue, "async_session_maker", maker)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def create_user(session_maker):
    async def _create(user_id: str, credits: int = 10) -> None:
        async with session_maker() as session:
            session.add(User(id=user_id, email=f"{user_id}@example.com", credits=credits, total_creation=0))
            await session.commit()

    return _create


class FakeCompletionService:
    """Stands in for the completion endpoint behind site_ai._complete."""

    def __init__(self):
        self.enhanced = "A detailed portfolio site with a dark gallery grid and contact form."
        self.code = "```html\n<!DOCTYPE html><html><body><h1>Portfolio</h1></body></html>\n```"
        self.enhance_error = None
        self.generate_error = None
        self.calls = []

    def __call__(self, client, system_prompt, user_content):
        stage = "enhance" if system_prompt == ENHANCE_SYSTEM_PROMPT else "generate"
        self.calls.append((stage, user_content))
        if stage == "enhance":
            if self.enhance_error:
                raise self.enhance_error
            return self.enhanced
        if self.generate_error:
            raise self.generate_error
        return self.code


@pytest.fixture
def fake_ai(monkeypatch):
    service = FakeCompletionService()
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-or-test-0123456789")
    monkeypatch.setattr(site_ai, "_complete", service)
    return service
