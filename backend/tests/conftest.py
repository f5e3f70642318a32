"""
SnapPDF Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── make_image: factory for real Pillow-encoded image bytes
    ├── sample_image_bytes: a small RGB JPEG
    ├── audit_store: AuditStore on in-memory SQLite (probed, available)
    ├── unreachable_audit_store: AuditStore whose probe fails
    ├── test_client: HTTPX AsyncClient, no audit store configured
    ├── client_with_store: HTTPX AsyncClient wired to audit_store
    └── client_with_unreachable_store: HTTPX AsyncClient wired to unreachable_audit_store
"""

import io
import os

# Override settings for testing BEFORE any application imports
os.environ["DATABASE_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from snappdf.database import Base
from snappdf.main import create_app
from snappdf.services.audit_service import AuditStore


# ══════════════════════════════════════════════════════════════════════════
# Image Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_image():
    """
    Factory producing encoded image bytes.

    Usage:
        data = make_image(40, 30)                          # RGB JPEG
        data = make_image(20, 20, fmt="PNG", mode="RGBA")  # PNG with alpha
    """
    def _make(width=64, height=48, fmt="JPEG", mode="RGB", color=None, noise=False):
        if noise:
            image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
            if mode != "RGB":
                image = image.convert(mode)
        else:
            image = Image.new(mode, (width, height), color if color is not None else _default_color(mode))
        buffer = io.BytesIO()
        image.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


def _default_color(mode):
    if mode == "RGBA":
        return (200, 40, 40, 128)
    if mode in ("L", "P"):
        return 128
    return (200, 40, 40)


@pytest.fixture
def sample_image_bytes(make_image):
    """A small but real RGB JPEG (64x48)."""
    return make_image(64, 48)


# ══════════════════════════════════════════════════════════════════════════
# Audit Store Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def audit_store():
    """
    AuditStore backed by a fresh in-memory SQLite database.

    StaticPool keeps every session on the same connection, so the schema
    created here is visible to the store.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = AuditStore(engine)
    await store.probe()
    yield store
    await engine.dispose()


@pytest_asyncio.fixture
async def unreachable_audit_store(tmp_path):
    """AuditStore pointing at a database file in a directory that does not exist."""
    missing = tmp_path / "missing" / "audit.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{missing}")
    store = AuditStore(engine)
    await store.probe()
    yield store
    await engine.dispose()


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client():
    """
    HTTPX AsyncClient talking to an app with no audit store configured.

    ASGITransport does not run the lifespan; stores are probed by their
    own fixtures instead.
    """
    app = create_app(audit_store=AuditStore(None))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def client_with_store(audit_store):
    """HTTPX AsyncClient for an app logging conversions to `audit_store`."""
    app = create_app(audit_store=audit_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def client_with_unreachable_store(unreachable_audit_store):
    """HTTPX AsyncClient for an app whose audit store failed its startup probe."""
    app = create_app(audit_store=unreachable_audit_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
