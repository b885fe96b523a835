"""Pytest configuration and shared fixtures."""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from coi_compliance.core.database import Base, build_engine, build_session_maker
from coi_compliance.core.locks import KeyedLockRegistry
from coi_compliance.main import app
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.recalculator import ComplianceRecalculator
from factories import Seeder


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def sample_pdf_content() -> bytes:
    """Sample PDF content for testing.

    Returns:
        bytes: Minimal valid PDF header
    """
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n"


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with the full schema."""
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'compliance.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_maker(engine)


@pytest.fixture
def emitter(session_factory) -> ActivityEmitter:
    return ActivityEmitter(session_factory)


@pytest.fixture
def recalculator(session_factory, emitter) -> ComplianceRecalculator:
    return ComplianceRecalculator(
        session_factory, emitter=emitter, concurrency=1, locks=KeyedLockRegistry()
    )


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)
