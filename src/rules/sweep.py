"""Status sweep: advances rule status as calendar days pass.

Run once per session before the first read of the rule set (src.app does
this on open). Safe to re-run any number of times: re-evaluating a rule that
was already advanced is a no-op, so a sweep interrupted by a persistence
failure simply resumes on the next run.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from src.config.settings import LifecycleSettings
from src.rules import transitions
from src.rules.models import System

if TYPE_CHECKING:
    from src.rules.repository import RuleRepository

logger = structlog.get_logger()


class StatusSweeper:
    def __init__(
        self,
        repository: RuleRepository,
        settings: LifecycleSettings | None = None,
        *,
        clock: Callable[[], datetime] = transitions.utc_now,
    ) -> None:
        self._repo = repository
        self._tz = (settings or LifecycleSettings()).tzinfo
        self._clock = clock

    async def run(self) -> bool:
        """Activate due passed rules and expire lapsed active rules.

        Every change is persisted before returning. Returns True when at least
        one rule changed, telling the caller to re-read the rule set.
        """
        now = self._clock()
        activated = 0
        expired = 0

        for rule in await self._repo.get_all_rules():
            updated = transitions.activate_if_due(rule, now=now, tz=self._tz)
            if updated is not rule:
                activated += 1
            advanced = transitions.expire_if_due(updated, now=now, tz=self._tz)
            if advanced is not updated:
                expired += 1
            if advanced is not rule:
                await self._repo.update_rule(advanced)
                logger.info(
                    "rule_status_advanced",
                    rule_id=rule.id,
                    from_status=rule.status.value,
                    to_status=advanced.status.value,
                )

        logger.info("status_sweep_completed", activated=activated, expired=expired)
        return bool(activated or expired)

    async def assign_missing_system_ids(self) -> list[System]:
        """Backfill system_id on systems created before ids existed.

        Ids continue from max(existing) + 1 in repository order. Returns the
        systems that were patched.
        """
        systems = await self._repo.get_all_systems()
        next_id = await self._repo.get_next_system_id()
        now = self._clock()

        patched: list[System] = []
        for system in systems:
            if system.system_id is not None:
                continue
            updated = replace(system, system_id=next_id, updated_at=now)
            await self._repo.update_system(updated)
            patched.append(updated)
            next_id += 1

        logger.info("system_ids_assigned", count=len(patched))
        return patched
