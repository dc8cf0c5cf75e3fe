"""Lifecycle engine: rule creation, approval, amendment and archiving.

Orchestrates the pure transitions in src.rules.transitions over a
RuleRepository. The engine keeps no state between calls: every operation
reads what it needs, persists what it changed and returns the updated record.
Callers re-query the repository afterwards instead of caching.

Failure rules:
- ValidationError / InvalidTransitionError are raised before any write
- Repository errors (NotFound, DuplicateId, ...) propagate unchanged
- Create/Edit confirm the System exists (auto-provisioning it) before the
  rule write, so a failed System write never leaves a half-created rule
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime
from typing import TYPE_CHECKING

import structlog

from src.config.settings import LifecycleSettings
from src.infra.errors import InvalidTransitionError, NotFoundError, ValidationError
from src.rules import transitions
from src.rules.models import (
    AmendmentDraft,
    ClauseType,
    Rule,
    RuleDraft,
    RuleStatus,
    SuccessMetricsSource,
    SunsetType,
    System,
)

if TYPE_CHECKING:
    from src.rules.repository import RuleRepository

logger = structlog.get_logger()


class LifecycleEngine:
    """Applies user operations to rules and systems.

    Args:
        repository: persistence collaborator.
        settings: timezone and sunset limits; defaults apply when omitted.
        clock: returns the current aware datetime (injected for tests).
    """

    def __init__(
        self,
        repository: RuleRepository,
        settings: LifecycleSettings | None = None,
        *,
        clock: Callable[[], datetime] = transitions.utc_now,
    ) -> None:
        self._repo = repository
        self._settings = settings or LifecycleSettings()
        self._tz = self._settings.tzinfo
        self._clock = clock

    # ── rules ──

    async def create_rule(self, draft: RuleDraft) -> Rule:
        """Create a proposed rule with id PR<year>-<NN>."""
        now = self._clock()
        fields = await self._resolve_draft(draft)
        await self._ensure_system(fields["system"], now)

        existing = [r.id for r in await self._repo.get_all_rules()]
        existing.extend(await self._repo.get_retired_rule_ids())
        rule_id = transitions.next_rule_id(now.astimezone(self._tz).year, existing)

        rule = Rule(
            id=rule_id,
            status=RuleStatus.proposed,
            created_at=now,
            updated_at=now,
            **fields,
        )
        await self._repo.create_rule(rule)
        logger.info("rule_created", rule_id=rule.id, system=rule.system)
        return rule

    async def edit_proposed(self, rule_id: str, draft: RuleDraft) -> Rule:
        """Rewrite a proposed rule's content in place.

        id, status, base_rule_id, amendment_number and created_at are preserved.
        """
        rule = await self._get_rule(rule_id)
        if rule.status != RuleStatus.proposed:
            raise InvalidTransitionError(
                f"Cannot edit rule {rule_id}: status is '{rule.status}', expected proposed"
            )
        now = self._clock()
        fields = await self._resolve_draft(draft)
        await self._ensure_system(fields["system"], now)

        updated = replace(rule, updated_at=now, **fields)
        await self._repo.update_rule(updated)
        logger.info("rule_edited", rule_id=rule_id)
        return updated

    async def pass_rule(self, rule_id: str, effective_on: date | None = None) -> Rule:
        """Pass a proposed rule; effective_on=None means effective today."""
        rule = await self._get_rule(rule_id)
        updated = transitions.pass_rule(
            rule, now=self._clock(), tz=self._tz, effective_on=effective_on
        )
        await self._repo.update_rule(updated)
        logger.info(
            "rule_passed",
            rule_id=rule_id,
            status=updated.status.value,
            effective_date=updated.effective_date.isoformat() if updated.effective_date else None,
            expiration_date=(
                updated.expiration_date.isoformat() if updated.expiration_date else None
            ),
        )
        return updated

    async def reject_rule(self, rule_id: str) -> Rule:
        rule = await self._get_rule(rule_id)
        updated = transitions.reject_rule(rule, now=self._clock())
        await self._repo.update_rule(updated)
        logger.info("rule_rejected", rule_id=rule_id)
        return updated

    async def amend_rule(self, rule_id: str, draft: AmendmentDraft) -> Rule:
        """Propose an amendment to an active rule.

        The amended rule is the base of the new record, so amending PR2026-01A1
        yields PR2026-01A1A1 (base PR2026-01A1, number 1).
        """
        target = await self._get_rule(rule_id)
        if target.status != RuleStatus.active:
            raise InvalidTransitionError(
                f"Cannot amend rule {rule_id}: status is '{target.status}', expected active"
            )
        changes = draft.changes.strip()
        clause_text = draft.clause_text.strip()
        if not changes or not clause_text:
            raise ValidationError("Amendment requires a description of changes and clause text")

        base_rule_id = target.id
        existing = [r.id for r in await self._repo.get_amendments(base_rule_id)]
        existing.extend(await self._repo.get_retired_rule_ids())
        number = transitions.next_amendment_number(base_rule_id, existing)

        now = self._clock()
        amendment = Rule(
            id=transitions.amendment_id(base_rule_id, number),
            title=f"Amendment {number}: {changes}",
            system=target.system,
            status=RuleStatus.proposed,
            clause_type=target.clause_type,
            clause_text=clause_text,
            success_metrics=target.success_metrics,
            success_metrics_source=target.success_metrics_source,
            body=draft.body.strip(),
            base_rule_id=base_rule_id,
            amendment_number=number,
            created_at=now,
            updated_at=now,
        )
        await self._repo.create_rule(amendment)
        logger.info(
            "amendment_created",
            rule_id=amendment.id,
            base_rule_id=base_rule_id,
            amendment_number=number,
        )
        return amendment

    async def archive_rule(self, rule_id: str) -> Rule:
        rule = await self._get_rule(rule_id)
        updated = transitions.archive_rule(rule, now=self._clock())
        await self._repo.update_rule(updated)
        logger.info("rule_archived", rule_id=rule_id, status=rule.status.value)
        return updated

    async def unarchive_rule(self, rule_id: str) -> Rule:
        rule = await self._get_rule(rule_id)
        updated = transitions.unarchive_rule(rule, now=self._clock())
        await self._repo.update_rule(updated)
        logger.info("rule_unarchived", rule_id=rule_id)
        return updated

    async def delete_rule(self, rule_id: str) -> None:
        """Permanently delete an archived rule. The id is never issued again."""
        rule = await self._get_rule(rule_id)
        if not rule.is_archived:
            raise InvalidTransitionError(
                f"Cannot delete rule {rule_id}: only archived rules can be deleted",
                code="NOT_ARCHIVED",
            )
        await self._repo.delete_rule(rule_id)
        logger.info("rule_deleted", rule_id=rule_id)

    # ── systems ──

    async def create_system(self, name: str, success_metrics: str | None = None) -> System:
        name = name.strip()
        if not name:
            raise ValidationError("System name is required")
        now = self._clock()
        system = System(
            name=name,
            system_id=await self._repo.get_next_system_id(),
            success_metrics=_clean(success_metrics),
            created_at=now,
            updated_at=now,
        )
        await self._repo.create_system(system)
        logger.info("system_created", system=name, system_id=system.system_id)
        return system

    async def update_system(self, name: str, success_metrics: str | None) -> System:
        """Replace a system's success metrics. The name cannot change."""
        system = await self._repo.get_system(name)
        if system is None:
            raise NotFoundError(f"System {name!r} not found")
        updated = replace(
            system, success_metrics=_clean(success_metrics), updated_at=self._clock()
        )
        await self._repo.update_system(updated)
        logger.info("system_updated", system=name)
        return updated

    async def delete_system(self, name: str) -> None:
        await self._repo.delete_system(name)
        logger.info("system_deleted", system=name)

    # ── helpers ──

    async def _get_rule(self, rule_id: str) -> Rule:
        rule = await self._repo.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule {rule_id} not found")
        return rule

    async def _resolve_draft(self, draft: RuleDraft) -> dict:
        """Validate a draft and resolve its success metrics. Performs no writes."""
        title = draft.title.strip()
        system_name = draft.system.strip()
        clause_text = draft.clause_text.strip()
        if not title or not system_name or not clause_text:
            raise ValidationError("Title, system and clause text are required")

        custom_days: int | None = None
        if draft.sunset_type == SunsetType.custom:
            limit = self._settings.max_custom_sunset_days
            if draft.custom_sunset_days is None or not 1 <= draft.custom_sunset_days <= limit:
                raise ValidationError(
                    f"Custom sunset must be between 1 and {limit} days "
                    f"(got {draft.custom_sunset_days})"
                )
            custom_days = draft.custom_sunset_days

        metrics: str | None = None
        if draft.metrics_choice == SuccessMetricsSource.custom:
            metrics = _clean(draft.custom_metrics)
            if metrics is None:
                raise ValidationError("Custom success metrics cannot be empty")
        elif draft.metrics_choice == SuccessMetricsSource.system:
            system = await self._repo.get_system(system_name)
            if system is None or not system.success_metrics:
                raise ValidationError(
                    f"System {system_name!r} has no success metrics defined",
                    code="SYSTEM_METRICS_MISSING",
                )
            metrics = system.success_metrics

        if draft.clause_type == ClauseType.hypothesis and metrics is None:
            raise ValidationError(
                "Hypothesis rules require success metrics", code="METRICS_REQUIRED"
            )

        return {
            "title": title,
            "system": system_name,
            "clause_type": draft.clause_type,
            "clause_text": clause_text,
            "success_metrics": metrics,
            "success_metrics_source": draft.metrics_choice,
            "sunset_type": draft.sunset_type,
            "custom_sunset_days": custom_days,
            "body": draft.body.strip(),
        }

    async def _ensure_system(self, name: str, now: datetime) -> System:
        """Return the named system, creating it with the next system_id if missing."""
        system = await self._repo.get_system(name)
        if system is not None:
            return system
        system = System(
            name=name,
            system_id=await self._repo.get_next_system_id(),
            success_metrics=None,
            created_at=now,
            updated_at=now,
        )
        await self._repo.create_system(system)
        logger.info("system_auto_provisioned", system=name, system_id=system.system_id)
        return system


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None
