"""Read-side queries over the rule set.

Filters and aggregates used by views: nothing here writes. Each function
reads through the repository so callers never hold a stale copy.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import TYPE_CHECKING

from src.rules.models import Rule, RuleStatus
from src.rules.transitions import calendar_day, utc_now

if TYPE_CHECKING:
    from src.rules.repository import RuleRepository


@dataclass
class RuleStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_system: dict[str, int] = field(default_factory=dict)
    archived: int = 0
    amendments: int = 0


async def rules_by_status(
    repository: RuleRepository,
    status: RuleStatus,
    *,
    include_archived: bool = False,
) -> list[Rule]:
    return [
        r for r in await repository.get_all_rules()
        if r.status == status and (include_archived or not r.is_archived)
    ]


async def rules_by_system(repository: RuleRepository, system: str) -> list[Rule]:
    return [r for r in await repository.get_all_rules() if r.system == system]


async def archived_rules(repository: RuleRepository) -> list[Rule]:
    return [r for r in await repository.get_all_rules() if r.is_archived]


async def rules_expiring_soon(
    repository: RuleRepository,
    *,
    days: int = 7,
    tz: tzinfo,
    clock: Callable[[], datetime] = utc_now,
) -> list[Rule]:
    """Active rules whose expiration day falls within the next `days` days (today included)."""
    today = calendar_day(clock(), tz)
    horizon = today + timedelta(days=days)
    expiring = [
        r for r in await repository.get_all_rules()
        if r.status == RuleStatus.active
        and not r.is_archived
        and r.expiration_date is not None
        and today <= calendar_day(r.expiration_date, tz) <= horizon
    ]
    return sorted(expiring, key=lambda r: r.expiration_date)


async def rules_for_year(repository: RuleRepository, year: int) -> list[Rule]:
    """Rules (amendments included) whose id was issued in year."""
    prefix = f"PR{year}-"
    return [r for r in await repository.get_all_rules() if r.id.startswith(prefix)]


async def search_rules(repository: RuleRepository, text: str) -> list[Rule]:
    """Case-insensitive substring search over title, system, clause text and body."""
    needle = text.strip().casefold()
    if not needle:
        return []
    return [
        r for r in await repository.get_all_rules()
        if any(needle in value.casefold() for value in (r.title, r.system, r.clause_text, r.body))
    ]


async def compute_stats(repository: RuleRepository) -> RuleStats:
    rules = await repository.get_all_rules()
    return RuleStats(
        total=len(rules),
        by_status=dict(Counter(r.status.value for r in rules)),
        by_system=dict(Counter(r.system for r in rules)),
        archived=sum(1 for r in rules if r.is_archived),
        amendments=sum(1 for r in rules if r.is_amendment),
    )
