"""Tests for Rule/System invariants enforced at construction."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from src.infra.errors import ValidationError
from src.rules.models import (
    ClauseType,
    EffectiveDateType,
    Rule,
    RuleStatus,
    SunsetType,
    System,
)

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def _make_rule(**overrides) -> Rule:
    fields = {
        "id": "PR2026-01",
        "title": "Sleep by 11pm",
        "system": "Sleep",
        "status": RuleStatus.proposed,
        "clause_type": ClauseType.purpose,
        "clause_text": "Consistent sleep improves focus.",
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Rule(**fields)


class TestRuleDefaults:
    def test_new_rule_defaults(self) -> None:
        rule = _make_rule()
        assert rule.amendment_number == 0
        assert rule.base_rule_id is None
        assert rule.is_archived is False
        assert rule.sunset_type == SunsetType.default
        assert rule.passed_date is None
        assert rule.is_amendment is False

    def test_frozen(self) -> None:
        rule = _make_rule()
        with pytest.raises(AttributeError):
            rule.status = RuleStatus.active


class TestAmendmentLink:
    def test_amendment_with_base(self) -> None:
        rule = _make_rule(id="PR2026-01A1", base_rule_id="PR2026-01", amendment_number=1)
        assert rule.is_amendment

    def test_number_without_base_rejected(self) -> None:
        with pytest.raises(ValidationError, match="inconsistent"):
            _make_rule(amendment_number=1)

    def test_base_without_number_rejected(self) -> None:
        with pytest.raises(ValidationError, match="inconsistent"):
            _make_rule(base_rule_id="PR2026-01")


class TestSunsetFields:
    def test_custom_requires_days(self) -> None:
        with pytest.raises(ValidationError, match="positive number of days"):
            _make_rule(sunset_type=SunsetType.custom)

    def test_custom_zero_days_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _make_rule(sunset_type=SunsetType.custom, custom_sunset_days=0)

    def test_days_without_custom_rejected(self) -> None:
        with pytest.raises(ValidationError, match="only allowed with a custom sunset"):
            _make_rule(custom_sunset_days=10)

    def test_custom_with_days(self) -> None:
        rule = _make_rule(sunset_type=SunsetType.custom, custom_sunset_days=60)
        assert rule.custom_sunset_days == 60


class TestStatusDates:
    def _dated(self, **overrides) -> dict:
        fields = {
            "status": RuleStatus.active,
            "passed_date": NOW,
            "effective_date": NOW,
            "effective_date_type": EffectiveDateType.same_as_passed_date,
            "expiration_date": NOW + timedelta(days=30),
        }
        fields.update(overrides)
        return fields

    def test_active_with_dates(self) -> None:
        assert _make_rule(**self._dated()).status == RuleStatus.active

    def test_active_without_dates_rejected(self) -> None:
        with pytest.raises(ValidationError, match="requires passed/effective dates"):
            _make_rule(status=RuleStatus.active)

    def test_indefinite_must_not_expire(self) -> None:
        with pytest.raises(ValidationError, match="indefinite"):
            _make_rule(**self._dated(sunset_type=SunsetType.indefinite))

    def test_indefinite_without_expiration(self) -> None:
        rule = _make_rule(**self._dated(sunset_type=SunsetType.indefinite, expiration_date=None))
        assert rule.expiration_date is None

    def test_default_sunset_requires_expiration(self) -> None:
        with pytest.raises(ValidationError, match="indefinite"):
            _make_rule(**self._dated(expiration_date=None))

    def test_proposed_with_dates_rejected(self) -> None:
        with pytest.raises(ValidationError, match="no lifecycle dates"):
            _make_rule(passed_date=NOW)

    def test_archiving_keeps_dates(self) -> None:
        expired = _make_rule(**self._dated(status=RuleStatus.expired))
        archived = replace(expired, is_archived=True)
        assert archived.effective_date == expired.effective_date
        assert archived.expiration_date == expired.expiration_date


class TestRequiredText:
    @pytest.mark.parametrize("field", ["title", "system", "clause_text"])
    def test_blank_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError, match="required"):
            _make_rule(**{field: "   "})


class TestSystem:
    def test_create(self) -> None:
        system = System(name="Sleep", system_id=1, created_at=NOW, updated_at=NOW)
        assert system.success_metrics is None

    def test_legacy_without_id(self) -> None:
        system = System(name="Sleep", system_id=None, created_at=NOW, updated_at=NOW)
        assert system.system_id is None

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            System(name=" ", system_id=1, created_at=NOW, updated_at=NOW)

    def test_non_positive_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            System(name="Sleep", system_id=0, created_at=NOW, updated_at=NOW)
