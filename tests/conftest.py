"""Test fixtures and configuration."""

import logging
import os
import sys

# Settings are read at import time; point them at test-only resources first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BACKEND_API_URL"] = "http://backend.test/api"

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from compliance_engine.database import Base, set_test_session_maker
from compliance_engine.services import ComplianceBackendClient, ComplianceEngine
from tests.fakes import FakeComplianceBackend

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest_asyncio.fixture
async def session_maker():
    """In-memory read-receipt database, shared by every session in one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    previous = set_test_session_maker(maker)
    yield maker
    set_test_session_maker(previous)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def backend():
    return FakeComplianceBackend()


@pytest_asyncio.fixture
async def backend_client(backend):
    client = ComplianceBackendClient(
        "http://backend.test/api",
        token="test-token",
        transport=backend.transport,
    )
    yield client
    await client.aclose()


@pytest.fixture
def engine(backend_client):
    return ComplianceEngine.create(backend_client)


@pytest_asyncio.fixture
async def app_client(engine, session_maker):
    """HTTP client against the app with the fake backend wired in."""
    from compliance_engine.main import app

    app.state.engine = engine
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def viewer_headers(user_id: str, role: str) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture
def doctor_headers():
    return viewer_headers("doc-1", "doctor")


@pytest.fixture
def business_headers():
    return viewer_headers("biz-1", "business")


@pytest.fixture
def admin_headers():
    return viewer_headers("admin-1", "admin")
