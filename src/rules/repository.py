"""Repository contract for Rule and System records.

LifecycleEngine, StatusSweeper and the backup functions depend only on the
RuleRepository protocol. Two implementations exist:
- InMemoryRuleRepository (here): reference implementation, used by tests
- SqlRuleRepository (src.storage.repository): PostgreSQL via SQLAlchemy

Every write is atomic with respect to subsequent reads. Errors are the
RepositoryError family from src.infra.errors and are surfaced unchanged.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from src.infra.errors import DuplicateIdError, DuplicateNameError, InUseError, NotFoundError
from src.rules.models import Rule, System

logger = structlog.get_logger()


class RuleRepository(Protocol):
    async def create_rule(self, rule: Rule) -> Rule: ...

    async def get_rule(self, rule_id: str) -> Rule | None: ...

    async def get_all_rules(self) -> list[Rule]: ...

    async def update_rule(self, rule: Rule) -> Rule: ...

    async def delete_rule(self, rule_id: str) -> None: ...

    async def get_amendments(self, base_rule_id: str) -> list[Rule]: ...

    async def get_retired_rule_ids(self) -> set[str]: ...

    async def clear_rules(self) -> None: ...

    async def create_system(self, system: System) -> System: ...

    async def get_system(self, name: str) -> System | None: ...

    async def get_all_systems(self) -> list[System]: ...

    async def update_system(self, system: System) -> System: ...

    async def delete_system(self, name: str) -> None: ...

    async def get_next_system_id(self) -> int: ...

    async def clear_systems(self) -> None: ...


def next_system_id(systems: list[System]) -> int:
    """max(existing system ids) + 1, ignoring systems without an id; 1 when none."""
    ids = [s.system_id for s in systems if s.system_id is not None]
    return max(ids) + 1 if ids else 1


class InMemoryRuleRepository:
    """Dict-backed RuleRepository.

    Records are immutable dataclasses, so storing them directly cannot leak
    later mutations into the store.
    """

    def __init__(self) -> None:
        self._rules: dict[str, Rule] = {}
        self._systems: dict[str, System] = {}
        self._retired_ids: set[str] = set()

    # ── rules ──

    async def create_rule(self, rule: Rule) -> Rule:
        if rule.id in self._rules or rule.id in self._retired_ids:
            raise DuplicateIdError(f"Rule {rule.id} already exists")
        self._rules[rule.id] = rule
        logger.debug("rule_stored", rule_id=rule.id)
        return rule

    async def get_rule(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    async def get_all_rules(self) -> list[Rule]:
        return sorted(self._rules.values(), key=lambda r: r.id)

    async def update_rule(self, rule: Rule) -> Rule:
        if rule.id not in self._rules:
            raise NotFoundError(f"Rule {rule.id} not found")
        self._rules[rule.id] = rule
        return rule

    async def delete_rule(self, rule_id: str) -> None:
        if self._rules.pop(rule_id, None) is None:
            raise NotFoundError(f"Rule {rule_id} not found")
        self._retired_ids.add(rule_id)

    async def get_amendments(self, base_rule_id: str) -> list[Rule]:
        amendments = [r for r in self._rules.values() if r.base_rule_id == base_rule_id]
        return sorted(amendments, key=lambda r: r.amendment_number)

    async def get_retired_rule_ids(self) -> set[str]:
        return set(self._retired_ids)

    async def clear_rules(self) -> None:
        self._rules.clear()
        self._retired_ids.clear()

    # ── systems ──

    async def create_system(self, system: System) -> System:
        if system.name in self._systems:
            raise DuplicateNameError(f"System {system.name!r} already exists")
        self._systems[system.name] = system
        return system

    async def get_system(self, name: str) -> System | None:
        return self._systems.get(name)

    async def get_all_systems(self) -> list[System]:
        return sorted(self._systems.values(), key=lambda s: s.name)

    async def update_system(self, system: System) -> System:
        if system.name not in self._systems:
            raise NotFoundError(f"System {system.name!r} not found")
        self._systems[system.name] = system
        return system

    async def delete_system(self, name: str) -> None:
        if name not in self._systems:
            raise NotFoundError(f"System {name!r} not found")
        referencing = [r.id for r in self._rules.values() if r.system == name]
        if referencing:
            raise InUseError(
                f"System {name!r} is referenced by {len(referencing)} rule(s)"
            )
        del self._systems[name]

    async def get_next_system_id(self) -> int:
        return next_system_id(list(self._systems.values()))

    async def clear_systems(self) -> None:
        self._systems.clear()
