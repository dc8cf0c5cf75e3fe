"""Session bootstrap: wires settings, logging, storage and the lifecycle engine.

Callers (UI, CLI) open one session per run:

    async with open_rulebook() as rulebook:
        rules = await rulebook.repository.get_all_rules()

Opening a session runs the status sweep before anything is read, so the
first render already reflects today's activations and expirations.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

import structlog

from src.config.settings import Settings, get_settings
from src.infra.logging import setup_logging
from src.rules.lifecycle import LifecycleEngine
from src.rules.repository import RuleRepository
from src.rules.sweep import StatusSweeper
from src.rules.transitions import utc_now
from src.storage.database import create_db_engine, ensure_schema, make_session_factory
from src.storage.repository import SqlRuleRepository

logger = structlog.get_logger()


@dataclass
class Rulebook:
    """Everything a caller needs for one session."""

    settings: Settings
    repository: RuleRepository
    engine: LifecycleEngine
    sweeper: StatusSweeper
    clock: Callable[[], datetime] = utc_now
    changed_on_open: bool = False


def build_rulebook(
    repository: RuleRepository,
    settings: Settings,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> Rulebook:
    """Assemble engine and sweeper over an existing repository."""
    return Rulebook(
        settings=settings,
        repository=repository,
        engine=LifecycleEngine(repository, settings.lifecycle, clock=clock),
        sweeper=StatusSweeper(repository, settings.lifecycle, clock=clock),
        clock=clock,
    )


async def start_session(rulebook: Rulebook) -> Rulebook:
    """Run the once-per-session sweep (unless disabled in settings)."""
    if rulebook.settings.lifecycle.sweep_on_startup:
        rulebook.changed_on_open = await rulebook.sweeper.run()
    else:
        logger.info("status_sweep_skipped", reason="sweep_on_startup disabled")
    return rulebook


@asynccontextmanager
async def open_rulebook(settings: Settings | None = None) -> AsyncIterator[Rulebook]:
    """Open a PostgreSQL-backed session and dispose the engine on exit."""
    settings = settings or get_settings()
    setup_logging(json_output=settings.logging.json_output, log_level=settings.logging.level)

    # Startup fails if DB/schema unavailable.
    engine = await create_db_engine(settings.database)
    try:
        await ensure_schema(engine, settings.database.schema_)
        repository = SqlRuleRepository(make_session_factory(engine))
        rulebook = await start_session(build_rulebook(repository, settings))
        logger.info("rulebook_opened", changed_on_open=rulebook.changed_on_open)
        yield rulebook
    finally:
        await engine.dispose()
        logger.info("rulebook_closed")
