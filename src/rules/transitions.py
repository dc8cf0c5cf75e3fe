"""Pure lifecycle transitions for Rule.status.

No I/O here: every function takes the current record plus the moment of the
operation and returns a new record (or raises). LifecycleEngine and
StatusSweeper wrap these with Repository reads and writes.

Status machine:
- proposed → active | passed (Pass), proposed → rejected (Reject)
- passed → active (sweep, effective day reached)
- active → expired (sweep, expiration day passed)
- rejected | expired → archived flag (Archive / Unarchive, status unchanged)

Date comparisons are calendar days in the configured timezone.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from src.constants import DEFAULT_SUNSET_DAYS
from src.infra.errors import InvalidTransitionError
from src.rules.models import (
    ARCHIVABLE_STATUSES,
    EffectiveDateType,
    Rule,
    RuleStatus,
    SunsetType,
)

_BASE_ID_RE = re.compile(r"^PR(?P<year>\d{4})-(?P<seq>\d+)$")


def utc_now() -> datetime:
    return datetime.now(UTC)


def calendar_day(moment: datetime, tz: tzinfo) -> date:
    """Truncate a timestamp to its calendar day in tz."""
    return moment.astimezone(tz).date()


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def compute_expiration(
    effective_date: datetime,
    sunset_type: SunsetType,
    custom_sunset_days: int | None = None,
) -> datetime | None:
    """Expiration for a rule taking effect at effective_date. None = never expires."""
    if sunset_type == SunsetType.indefinite:
        return None
    if sunset_type == SunsetType.custom and custom_sunset_days:
        return effective_date + timedelta(days=custom_sunset_days)
    return effective_date + timedelta(days=DEFAULT_SUNSET_DAYS)


def _require_status(rule: Rule, allowed: Iterable[RuleStatus], action: str) -> None:
    allowed = frozenset(allowed)
    if rule.status not in allowed:
        expected = " or ".join(sorted(s.value for s in allowed))
        raise InvalidTransitionError(
            f"Cannot {action} rule {rule.id}: status is '{rule.status}', expected {expected}"
        )


def pass_rule(
    rule: Rule,
    *,
    now: datetime,
    tz: tzinfo,
    effective_on: date | None = None,
) -> Rule:
    """Pass a proposed rule.

    effective_on=None means "same as passed date" (takes effect now); a date
    takes effect at the start of that day and may lie in the past or future.
    """
    _require_status(rule, [RuleStatus.proposed], "pass")

    if effective_on is None:
        effective_date = now
        effective_type = EffectiveDateType.same_as_passed_date
    else:
        effective_date = start_of_day(effective_on, tz)
        effective_type = EffectiveDateType.custom

    status = (
        RuleStatus.active
        if calendar_day(effective_date, tz) <= calendar_day(now, tz)
        else RuleStatus.passed
    )
    return replace(
        rule,
        status=status,
        passed_date=now,
        effective_date=effective_date,
        effective_date_type=effective_type,
        expiration_date=compute_expiration(
            effective_date, rule.sunset_type, rule.custom_sunset_days
        ),
        updated_at=now,
    )


def reject_rule(rule: Rule, *, now: datetime) -> Rule:
    _require_status(rule, [RuleStatus.proposed], "reject")
    return replace(rule, status=RuleStatus.rejected, updated_at=now)


def archive_rule(rule: Rule, *, now: datetime) -> Rule:
    _require_status(rule, ARCHIVABLE_STATUSES, "archive")
    return replace(rule, is_archived=True, updated_at=now)


def unarchive_rule(rule: Rule, *, now: datetime) -> Rule:
    return replace(rule, is_archived=False, updated_at=now)


def activate_if_due(rule: Rule, *, now: datetime, tz: tzinfo) -> Rule:
    """passed → active once the effective day has arrived."""
    if rule.status != RuleStatus.passed or rule.effective_date is None:
        return rule
    if calendar_day(rule.effective_date, tz) > calendar_day(now, tz):
        return rule
    return replace(rule, status=RuleStatus.active, updated_at=now)


def expire_if_due(rule: Rule, *, now: datetime, tz: tzinfo) -> Rule:
    """active → expired once the expiration day is strictly in the past."""
    if rule.status != RuleStatus.active or rule.expiration_date is None:
        return rule
    if calendar_day(rule.expiration_date, tz) >= calendar_day(now, tz):
        return rule
    return replace(rule, status=RuleStatus.expired, updated_at=now)


def next_rule_id(year: int, existing_ids: Iterable[str]) -> str:
    """Next base rule id for year: PR<year>-<NN>.

    NN is the count of the year's base rules plus one. When deletions left a
    higher sequence number in use (or retired), the id moves past it so no id
    is ever issued twice.
    """
    count = 0
    highest = 0
    for rule_id in existing_ids:
        match = _BASE_ID_RE.match(rule_id)
        if not match or int(match["year"]) != year:
            continue
        count += 1
        highest = max(highest, int(match["seq"]))
    seq = max(count + 1, highest + 1)
    return f"PR{year}-{seq:02d}"


def next_amendment_number(base_rule_id: str, existing_ids: Iterable[str]) -> int:
    """Next amendment number for base_rule_id (count of its amendments + 1)."""
    pattern = re.compile(rf"^{re.escape(base_rule_id)}A(?P<n>\d+)$")
    count = 0
    highest = 0
    for rule_id in existing_ids:
        match = pattern.match(rule_id)
        if not match:
            continue
        count += 1
        highest = max(highest, int(match["n"]))
    return max(count + 1, highest + 1)


def amendment_id(base_rule_id: str, number: int) -> str:
    return f"{base_rule_id}A{number}"
