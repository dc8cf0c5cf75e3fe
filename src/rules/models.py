"""Entity model: Rule and System records.

Both are immutable value objects. Lifecycle functions return updated copies
(dataclasses.replace) and the Repository persists them; nothing mutates a
record in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from src.infra.errors import ValidationError


class RuleStatus(StrEnum):
    proposed = "proposed"
    passed = "passed"
    active = "active"
    expired = "expired"
    rejected = "rejected"


class ClauseType(StrEnum):
    purpose = "purpose"  # confirmed rationale
    hypothesis = "hypothesis"  # experimental, expects success metrics


class SuccessMetricsSource(StrEnum):
    none = "none"
    system = "system"
    custom = "custom"


class SunsetType(StrEnum):
    default = "default"
    indefinite = "indefinite"
    custom = "custom"


class EffectiveDateType(StrEnum):
    same_as_passed_date = "sameAsPassedDate"
    custom = "custom"


# Statuses reached through Pass; they always carry lifecycle dates.
DATED_STATUSES = frozenset({RuleStatus.passed, RuleStatus.active, RuleStatus.expired})
ARCHIVABLE_STATUSES = frozenset({RuleStatus.rejected, RuleStatus.expired})


@dataclass(frozen=True)
class Rule:
    """One governance rule, possibly an amendment to another rule.

    Invariants checked on construction:
    - amendment_number > 0 iff base_rule_id is set
    - custom_sunset_days is set iff sunset_type is custom (and is >= 1)
    - passed/active/expired rules carry passed, effective and expiration dates
      (expiration is None exactly for indefinite sunsets); proposed rules carry none
    """

    id: str
    title: str
    system: str
    status: RuleStatus
    clause_type: ClauseType
    clause_text: str
    created_at: datetime
    updated_at: datetime
    success_metrics: str | None = None
    success_metrics_source: SuccessMetricsSource = SuccessMetricsSource.none
    sunset_type: SunsetType = SunsetType.default
    custom_sunset_days: int | None = None
    passed_date: datetime | None = None
    effective_date: datetime | None = None
    effective_date_type: EffectiveDateType | None = None
    expiration_date: datetime | None = None
    body: str = ""
    is_archived: bool = False
    base_rule_id: str | None = None
    amendment_number: int = 0

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("Rule id is required")
        if not self.title.strip():
            raise ValidationError(f"Rule {self.id}: title is required")
        if not self.system.strip():
            raise ValidationError(f"Rule {self.id}: system is required")
        if not self.clause_text.strip():
            raise ValidationError(f"Rule {self.id}: clause text is required")

        if (self.amendment_number > 0) != (self.base_rule_id is not None):
            raise ValidationError(
                f"Rule {self.id}: amendment_number={self.amendment_number} "
                f"inconsistent with base_rule_id={self.base_rule_id!r}"
            )
        if self.amendment_number < 0:
            raise ValidationError(f"Rule {self.id}: amendment_number must be >= 0")

        if self.sunset_type == SunsetType.custom:
            if self.custom_sunset_days is None or self.custom_sunset_days < 1:
                raise ValidationError(
                    f"Rule {self.id}: custom sunset requires a positive number of days"
                )
        elif self.custom_sunset_days is not None:
            raise ValidationError(
                f"Rule {self.id}: custom_sunset_days only allowed with a custom sunset"
            )

        if self.status in DATED_STATUSES:
            if (
                self.passed_date is None
                or self.effective_date is None
                or self.effective_date_type is None
            ):
                raise ValidationError(
                    f"Rule {self.id}: status '{self.status}' requires passed/effective dates"
                )
            if (self.expiration_date is None) != (self.sunset_type == SunsetType.indefinite):
                raise ValidationError(
                    f"Rule {self.id}: expiration date must be empty exactly "
                    "when the sunset is indefinite"
                )
        elif self.status == RuleStatus.proposed and (
            self.passed_date is not None
            or self.effective_date is not None
            or self.expiration_date is not None
        ):
            raise ValidationError(f"Rule {self.id}: proposed rules carry no lifecycle dates")

    @property
    def is_amendment(self) -> bool:
        return self.base_rule_id is not None


@dataclass(frozen=True)
class System:
    """Named grouping of rules, optionally carrying shared success metrics.

    system_id is None only for legacy records created before ids existed;
    StatusSweeper.assign_missing_system_ids() backfills those.
    """

    name: str
    system_id: int | None
    created_at: datetime
    updated_at: datetime
    success_metrics: str | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValidationError("System name is required")
        if self.system_id is not None and self.system_id < 1:
            raise ValidationError(f"System {self.name!r}: system_id must be >= 1")


@dataclass(frozen=True)
class RuleDraft:
    """User-supplied fields for Create and Edit-proposed.

    metrics_choice selects where success metrics come from; custom_metrics is
    only read when metrics_choice is custom.
    """

    title: str
    system: str
    clause_type: ClauseType
    clause_text: str
    metrics_choice: SuccessMetricsSource = SuccessMetricsSource.none
    custom_metrics: str | None = None
    sunset_type: SunsetType = SunsetType.default
    custom_sunset_days: int | None = None
    body: str = ""


@dataclass(frozen=True)
class AmendmentDraft:
    """User-supplied fields for an amendment."""

    changes: str  # becomes the amendment title
    clause_text: str
    body: str = ""
