"""PostgreSQL-backed RuleRepository.

One database session (and one transaction) per repository call, so every
single-entity write is atomic to subsequent reads. Rows map to the immutable
Rule/System dataclasses at this boundary; nothing ORM-attached escapes.
"""

from __future__ import annotations

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infra.errors import DuplicateIdError, DuplicateNameError, InUseError, NotFoundError
from src.rules.models import (
    ClauseType,
    EffectiveDateType,
    Rule,
    RuleStatus,
    SuccessMetricsSource,
    SunsetType,
    System,
)
from src.storage.models import RetiredRuleId, RuleRecord, SystemRecord

logger = structlog.get_logger()


class SqlRuleRepository:
    def __init__(self, db_session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._db_factory = db_session_factory

    # ── rules ──

    async def create_rule(self, rule: Rule) -> Rule:
        async with self._db_factory() as db:
            if await db.get(RetiredRuleId, rule.id) is not None:
                raise DuplicateIdError(f"Rule id {rule.id} was retired and cannot be reused")
            db.add(self._to_rule_record(rule))
            try:
                await db.commit()
            except IntegrityError as e:
                raise DuplicateIdError(f"Rule {rule.id} already exists") from e
        return rule

    async def get_rule(self, rule_id: str) -> Rule | None:
        async with self._db_factory() as db:
            record = await db.get(RuleRecord, rule_id)
            return self._to_rule(record) if record else None

    async def get_all_rules(self) -> list[Rule]:
        async with self._db_factory() as db:
            result = await db.execute(select(RuleRecord).order_by(RuleRecord.id))
            return [self._to_rule(r) for r in result.scalars().all()]

    async def update_rule(self, rule: Rule) -> Rule:
        async with self._db_factory() as db:
            if await db.get(RuleRecord, rule.id) is None:
                raise NotFoundError(f"Rule {rule.id} not found")
            await db.merge(self._to_rule_record(rule))
            await db.commit()
        return rule

    async def delete_rule(self, rule_id: str) -> None:
        async with self._db_factory() as db:
            result = await db.execute(delete(RuleRecord).where(RuleRecord.id == rule_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Rule {rule_id} not found")
            db.add(RetiredRuleId(id=rule_id))
            await db.commit()

    async def get_amendments(self, base_rule_id: str) -> list[Rule]:
        async with self._db_factory() as db:
            result = await db.execute(
                select(RuleRecord)
                .where(RuleRecord.base_rule_id == base_rule_id)
                .order_by(RuleRecord.amendment_number.asc())
            )
            return [self._to_rule(r) for r in result.scalars().all()]

    async def get_retired_rule_ids(self) -> set[str]:
        async with self._db_factory() as db:
            result = await db.execute(select(RetiredRuleId.id))
            return set(result.scalars().all())

    async def clear_rules(self) -> None:
        async with self._db_factory() as db:
            await db.execute(delete(RuleRecord))
            await db.execute(delete(RetiredRuleId))
            await db.commit()
        logger.info("rules_cleared")

    # ── systems ──

    async def create_system(self, system: System) -> System:
        async with self._db_factory() as db:
            if await db.get(SystemRecord, system.name) is not None:
                raise DuplicateNameError(f"System {system.name!r} already exists")
            db.add(self._to_system_record(system))
            try:
                await db.commit()
            except IntegrityError as e:
                raise DuplicateNameError(
                    f"System {system.name!r} conflicts with an existing system"
                ) from e
        return system

    async def get_system(self, name: str) -> System | None:
        async with self._db_factory() as db:
            record = await db.get(SystemRecord, name)
            return self._to_system(record) if record else None

    async def get_all_systems(self) -> list[System]:
        async with self._db_factory() as db:
            result = await db.execute(select(SystemRecord).order_by(SystemRecord.name))
            return [self._to_system(r) for r in result.scalars().all()]

    async def update_system(self, system: System) -> System:
        async with self._db_factory() as db:
            if await db.get(SystemRecord, system.name) is None:
                raise NotFoundError(f"System {system.name!r} not found")
            await db.merge(self._to_system_record(system))
            await db.commit()
        return system

    async def delete_system(self, name: str) -> None:
        async with self._db_factory() as db:
            if await db.get(SystemRecord, name) is None:
                raise NotFoundError(f"System {name!r} not found")
            # Archived rules count too.
            in_use = await db.scalar(
                select(func.count()).select_from(RuleRecord).where(RuleRecord.system == name)
            )
            if in_use:
                raise InUseError(f"System {name!r} is referenced by {in_use} rule(s)")
            await db.execute(delete(SystemRecord).where(SystemRecord.name == name))
            await db.commit()

    async def get_next_system_id(self) -> int:
        async with self._db_factory() as db:
            max_id = await db.scalar(select(func.max(SystemRecord.system_id)))
            return (max_id or 0) + 1

    async def clear_systems(self) -> None:
        async with self._db_factory() as db:
            await db.execute(delete(SystemRecord))
            await db.commit()
        logger.info("systems_cleared")

    # ── mapping ──

    @staticmethod
    def _to_rule_record(rule: Rule) -> RuleRecord:
        return RuleRecord(
            id=rule.id,
            title=rule.title,
            system=rule.system,
            status=rule.status.value,
            clause_type=rule.clause_type.value,
            clause_text=rule.clause_text,
            success_metrics=rule.success_metrics,
            success_metrics_source=rule.success_metrics_source.value,
            sunset_type=rule.sunset_type.value,
            custom_sunset_days=rule.custom_sunset_days,
            passed_date=rule.passed_date,
            effective_date=rule.effective_date,
            effective_date_type=(
                rule.effective_date_type.value if rule.effective_date_type else None
            ),
            expiration_date=rule.expiration_date,
            body=rule.body,
            is_archived=rule.is_archived,
            base_rule_id=rule.base_rule_id,
            amendment_number=rule.amendment_number,
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )

    @staticmethod
    def _to_rule(record: RuleRecord) -> Rule:
        return Rule(
            id=record.id,
            title=record.title,
            system=record.system,
            status=RuleStatus(record.status),
            clause_type=ClauseType(record.clause_type),
            clause_text=record.clause_text,
            success_metrics=record.success_metrics,
            success_metrics_source=SuccessMetricsSource(record.success_metrics_source),
            sunset_type=SunsetType(record.sunset_type),
            custom_sunset_days=record.custom_sunset_days,
            passed_date=record.passed_date,
            effective_date=record.effective_date,
            effective_date_type=(
                EffectiveDateType(record.effective_date_type)
                if record.effective_date_type
                else None
            ),
            expiration_date=record.expiration_date,
            body=record.body or "",
            is_archived=record.is_archived,
            base_rule_id=record.base_rule_id,
            amendment_number=record.amendment_number,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _to_system_record(system: System) -> SystemRecord:
        return SystemRecord(
            name=system.name,
            system_id=system.system_id,
            success_metrics=system.success_metrics,
            created_at=system.created_at,
            updated_at=system.updated_at,
        )

    @staticmethod
    def _to_system(record: SystemRecord) -> System:
        return System(
            name=record.name,
            system_id=record.system_id,
            success_metrics=record.success_metrics,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
