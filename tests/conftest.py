"""Shared fixtures: per-test SQLite database, app wired to it, data factories."""

import asyncio
import os

# 测试时只输出到控制台，不启动清理任务
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("PERMISSION_CACHE_SWEEP_SECONDS", "0")
os.environ.setdefault("SEED_DEFAULT_DATA", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from petshop.core.config import settings
from petshop.core.deps import get_db
from petshop.core.permissions import permission_cache
from petshop.db.init_db import ensure_tables_exist, seed_rbac
from petshop.db.session import build_engine, build_sessionmaker


async def _prepare(engine, session_factory):
    await ensure_tables_exist(engine)
    async with session_factory() as session:
        await seed_rbac(session)


@pytest.fixture(autouse=True)
def clear_permission_cache():
    permission_cache.invalidate()
    yield
    permission_cache.invalidate()


@pytest.fixture
def upload_root(tmp_path, monkeypatch):
    root = tmp_path / "public"
    root.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_ROOT", str(root))
    return root


# =============================================================================
# Sync fixtures (HTTP tests)
# =============================================================================


@pytest.fixture
def session_factory(tmp_path):
    """Session factory over a fresh file database with RBAC seeded."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    factory = build_sessionmaker(engine)
    asyncio.run(_prepare(engine, factory))
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def run(session_factory):
    """Run ``fn(db, *args, **kwargs)`` against the test database and return its result."""

    def _run(fn, *args, **kwargs):
        async def _inner():
            async with session_factory() as session:
                return await fn(session, *args, **kwargs)

        return asyncio.run(_inner())

    return _run


@pytest.fixture
def app(session_factory, upload_root):
    from petshop.main import app as fastapi_app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client; the lifespan is not run so the real database is never touched."""
    return TestClient(app)


@pytest.fixture
def login(client):
    def _login(email, password="secret123"):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response

    return _login


# =============================================================================
# Async fixtures (service tests)
# =============================================================================


@pytest.fixture
async def db(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'async.db'}", poolclass=NullPool)
    factory = build_sessionmaker(engine)
    await _prepare(engine, factory)
    async with factory() as session:
        yield session
    await engine.dispose()
