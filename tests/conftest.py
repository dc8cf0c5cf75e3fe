"""Shared pytest fixtures for Rulebook tests.

Unit tests run against InMemoryRuleRepository with a controllable clock.

Integration tests (marked `integration`) get PostgreSQL via two modes:
1. TEST_DATABASE_* env vars present → connect to external PG (CI scenario)
2. Otherwise → testcontainers auto-starts a temporary PG container (local dev)

Safety: refuses to run against any database whose name doesn't contain '_test'.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config.settings import LifecycleSettings
from src.constants import DB_SCHEMA
from src.rules.lifecycle import LifecycleEngine
from src.rules.repository import InMemoryRuleRepository
from src.rules.sweep import StatusSweeper
from src.storage.models import Base


class FakeClock:
    """Callable clock whose time tests move forward explicitly."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, days: int = 0, hours: int = 0) -> None:
        self.now += timedelta(days=days, hours=hours)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 14, 30, tzinfo=UTC))


@pytest.fixture
def lifecycle_settings() -> LifecycleSettings:
    return LifecycleSettings(timezone="UTC")


@pytest.fixture
def repository() -> InMemoryRuleRepository:
    return InMemoryRuleRepository()


@pytest.fixture
def engine(repository, lifecycle_settings, clock) -> LifecycleEngine:
    return LifecycleEngine(repository, lifecycle_settings, clock=clock)


@pytest.fixture
def sweeper(repository, lifecycle_settings, clock) -> StatusSweeper:
    return StatusSweeper(repository, lifecycle_settings, clock=clock)


# ── PostgreSQL (integration) ──


def _validate_test_db_name(name: str) -> None:
    """Safety: refuse to truncate a database whose name doesn't contain '_test'."""
    if "_test" not in name.lower():
        raise RuntimeError(
            f"Refusing to run tests against database '{name}': "
            "name must contain '_test' to prevent accidental data loss. "
            "Set TEST_DATABASE_NAME to a test-specific database."
        )


def _build_pg_url_from_env() -> str | None:
    """Build async PG URL from TEST_DATABASE_* env vars, or return None."""
    host = os.getenv("TEST_DATABASE_HOST")
    if host is None:
        return None
    port = os.getenv("TEST_DATABASE_PORT", "5432")
    user = os.getenv("TEST_DATABASE_USER", "postgres")
    password = os.getenv("TEST_DATABASE_PASSWORD", "")
    name = os.getenv("TEST_DATABASE_NAME", "rulebook_test")
    _validate_test_db_name(name)
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


@pytest.fixture(scope="session")
def pg_url():
    """Async PostgreSQL URL; starts a container when no external PG is configured.

    Skips integration tests when neither is available (no Docker).
    """
    url = _build_pg_url_from_env()
    if url is not None:
        yield url
        return

    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer("postgres:16", dbname="rulebook_test")
        container.start()
    except Exception as exc:  # docker missing or unreachable
        pytest.skip(f"PostgreSQL unavailable for integration tests: {exc}")

    _validate_test_db_name(container.dbname)
    host = container.get_container_host_ip()
    port = container.get_exposed_port(5432)
    yield (
        f"postgresql+asyncpg://{container.username}:{container.password}"
        f"@{host}:{port}/{container.dbname}"
    )
    container.stop()


@pytest_asyncio.fixture
async def db_session_factory(pg_url: str):
    """Per-test engine with freshly created tables, dropped afterwards."""
    db_engine = create_async_engine(pg_url, echo=False)
    async with db_engine.begin() as conn:
        await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {DB_SCHEMA}"))
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.execute(text(f"DROP SCHEMA IF EXISTS {DB_SCHEMA} CASCADE"))
    await db_engine.dispose()
