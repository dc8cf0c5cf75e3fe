"""Backup interchange format: export/import of all Rule and System records.

Document shape (JSON, camelCase keys):
    {"version": 3, "exportDate": "...", "rules": [...], "systems": [...]}

Import replaces every existing record. The whole document is validated before
anything is touched, so a malformed backup leaves the store as it was.
Backups from before systems were exported (no "systems" key) import zero systems.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime
from typing import TYPE_CHECKING

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.constants import BACKUP_SCHEMA_VERSION
from src.infra.errors import BackupFormatError, ValidationError
from src.rules.models import (
    ClauseType,
    EffectiveDateType,
    Rule,
    RuleStatus,
    SuccessMetricsSource,
    SunsetType,
    System,
)
from src.rules.transitions import utc_now

if TYPE_CHECKING:
    from src.rules.repository import RuleRepository

logger = structlog.get_logger()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RuleDocument(_CamelModel):
    id: str
    title: str
    system: str
    status: RuleStatus
    clause_type: ClauseType
    clause_text: str
    success_metrics: str | None = None
    success_metrics_source: SuccessMetricsSource = SuccessMetricsSource.none
    sunset_type: SunsetType = SunsetType.default
    custom_sunset_days: int | None = None
    passed_date: datetime | None = None
    effective_date: datetime | None = None
    effective_date_type: EffectiveDateType | None = None
    expiration_date: datetime | None = None
    body: str | None = ""
    is_archived: bool = False
    base_rule_id: str | None = None
    amendment_number: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rule(cls, rule: Rule) -> RuleDocument:
        return cls.model_validate(asdict(rule))

    def to_rule(self) -> Rule:
        data = self.model_dump()
        data["body"] = data["body"] or ""
        return Rule(**data)


class SystemDocument(_CamelModel):
    name: str
    system_id: int | None = None
    success_metrics: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_system(cls, system: System) -> SystemDocument:
        return cls.model_validate(asdict(system))

    def to_system(self) -> System:
        return System(**self.model_dump())


class BackupDocument(_CamelModel):
    version: int = BACKUP_SCHEMA_VERSION
    export_date: datetime
    rules: list[RuleDocument]
    systems: list[SystemDocument] = Field(default_factory=list)


async def export_backup(
    repository: RuleRepository,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> str:
    """Serialize every rule and system to a backup JSON document."""
    rules = await repository.get_all_rules()
    systems = await repository.get_all_systems()
    document = BackupDocument(
        export_date=clock(),
        rules=[RuleDocument.from_rule(r) for r in rules],
        systems=[SystemDocument.from_system(s) for s in systems],
    )
    logger.info("backup_exported", rules=len(rules), systems=len(systems))
    return document.model_dump_json(by_alias=True, indent=2)


def parse_backup(payload: str | bytes) -> tuple[list[Rule], list[System]]:
    """Parse and validate a backup document without touching any store."""
    try:
        document = BackupDocument.model_validate_json(payload)
    except pydantic.ValidationError as e:
        raise BackupFormatError(f"Invalid backup document: {e.error_count()} error(s)") from e

    try:
        rules = [d.to_rule() for d in document.rules]
        systems = [d.to_system() for d in document.systems]
    except ValidationError as e:
        raise BackupFormatError(f"Invalid backup record: {e}") from e

    for label, keys in (
        ("rule id", [r.id for r in rules]),
        ("system name", [s.name for s in systems]),
    ):
        if len(set(keys)) != len(keys):
            raise BackupFormatError(f"Backup contains a duplicate {label}")
    return rules, systems


async def import_backup(repository: RuleRepository, payload: str | bytes) -> int:
    """Replace all rules and systems with the backup's contents.

    Returns the number of rules imported.
    """
    rules, systems = parse_backup(payload)

    await repository.clear_rules()
    await repository.clear_systems()
    for system in systems:
        await repository.create_system(system)
    for rule in rules:
        await repository.create_rule(rule)

    logger.info("backup_imported", rules=len(rules), systems=len(systems))
    return len(rules)
