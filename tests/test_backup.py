"""Tests for backup export/import."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from src.infra.errors import BackupFormatError
from src.rules.backup import export_backup, import_backup, parse_backup
from src.rules.models import (
    AmendmentDraft,
    ClauseType,
    RuleDraft,
    RuleStatus,
    SuccessMetricsSource,
    System,
)
from src.rules.repository import InMemoryRuleRepository


def _make_draft(**overrides) -> RuleDraft:
    fields = {
        "title": "Sleep by 11pm",
        "system": "Sleep",
        "clause_type": ClauseType.purpose,
        "clause_text": "Consistent sleep improves focus.",
    }
    fields.update(overrides)
    return RuleDraft(**fields)


async def _populate(engine, clock) -> None:
    await engine.create_system("Sleep", "8h per night")
    base = await engine.create_rule(_make_draft(metrics_choice=SuccessMetricsSource.system))
    await engine.pass_rule(base.id)
    await engine.amend_rule(
        base.id, AmendmentDraft(changes="Earlier bedtime", clause_text="Sleep by 10:30pm.")
    )
    await engine.create_rule(_make_draft(title="Gym twice a week", system="Fitness", body="Notes"))
    rejected = await engine.create_rule(_make_draft(title="Cold showers"))
    await engine.reject_rule(rejected.id)
    await engine.archive_rule(rejected.id)
    await engine.pass_rule(
        (await engine.create_rule(_make_draft(title="Later"))).id,
        clock.now.date() + timedelta(days=5),
    )


@pytest.mark.asyncio
async def test_export_uses_camel_case_keys(engine, repository, clock) -> None:
    await _populate(engine, clock)

    document = json.loads(await export_backup(repository, clock=clock))

    assert document["version"] == 3
    assert "exportDate" in document
    rule = next(r for r in document["rules"] if r["id"] == "PR2026-01A1")
    assert rule["baseRuleId"] == "PR2026-01"
    assert rule["amendmentNumber"] == 1
    assert rule["clauseType"] == "purpose"
    assert rule["successMetricsSource"] == "system"
    passed = next(r for r in document["rules"] if r["id"] == "PR2026-01")
    assert passed["effectiveDateType"] == "sameAsPassedDate"
    assert {s["name"] for s in document["systems"]} == {"Sleep", "Fitness"}
    assert "systemId" in document["systems"][0]


@pytest.mark.asyncio
async def test_round_trip_reproduces_store(engine, repository, clock) -> None:
    await _populate(engine, clock)
    payload = await export_backup(repository, clock=clock)

    restored = InMemoryRuleRepository()
    count = await import_backup(restored, payload)

    assert count == len(await repository.get_all_rules())
    assert await restored.get_all_rules() == await repository.get_all_rules()
    assert await restored.get_all_systems() == await repository.get_all_systems()


@pytest.mark.asyncio
async def test_import_replaces_existing_records(engine, repository, clock) -> None:
    await _populate(engine, clock)
    payload = await export_backup(repository, clock=clock)

    target = InMemoryRuleRepository()
    await target.create_system(System("Stale", 99, clock.now, clock.now))
    await import_backup(target, payload)

    assert await target.get_system("Stale") is None


@pytest.mark.asyncio
async def test_legacy_backup_without_systems(repository) -> None:
    payload = json.dumps(
        {
            "version": 2,
            "exportDate": "2025-11-01T08:00:00Z",
            "rules": [
                {
                    "id": "PR2025-01",
                    "title": "Read daily",
                    "system": "Learning",
                    "status": "proposed",
                    "clauseType": "hypothesis",
                    "clauseText": "Reading builds vocabulary.",
                    "createdAt": "2025-10-01T08:00:00Z",
                    "updatedAt": "2025-10-01T08:00:00Z",
                }
            ],
        }
    )

    assert await import_backup(repository, payload) == 1
    rule = await repository.get_rule("PR2025-01")
    assert rule.status == RuleStatus.proposed
    assert rule.body == ""
    assert rule.amendment_number == 0
    assert await repository.get_all_systems() == []


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        json.dumps({"version": 3, "rules": []}),
        json.dumps({"exportDate": "2026-01-01T00:00:00Z", "rules": [{"id": "PR2026-01"}]}),
    ],
)
def test_malformed_document_rejected(payload: str) -> None:
    with pytest.raises(BackupFormatError) as exc_info:
        parse_backup(payload)
    assert exc_info.value.code == "INVALID_BACKUP"


def test_record_violating_invariants_rejected() -> None:
    payload = json.dumps(
        {
            "exportDate": "2026-01-01T00:00:00Z",
            "rules": [
                {
                    "id": "PR2026-01",
                    "title": "Active without dates",
                    "system": "Sleep",
                    "status": "active",
                    "clauseType": "purpose",
                    "clauseText": "x",
                    "createdAt": "2026-01-01T00:00:00Z",
                    "updatedAt": "2026-01-01T00:00:00Z",
                }
            ],
        }
    )
    with pytest.raises(BackupFormatError, match="Invalid backup record"):
        parse_backup(payload)


@pytest.mark.asyncio
async def test_invalid_import_leaves_store_untouched(engine, repository, clock) -> None:
    await _populate(engine, clock)
    before_rules = await repository.get_all_rules()
    before_systems = await repository.get_all_systems()

    with pytest.raises(BackupFormatError):
        await import_backup(repository, '{"rules": "oops"}')

    assert await repository.get_all_rules() == before_rules
    assert await repository.get_all_systems() == before_systems


def test_duplicate_rule_ids_rejected() -> None:
    rule = {
        "id": "PR2026-01",
        "title": "Dup",
        "system": "Sleep",
        "status": "proposed",
        "clauseType": "purpose",
        "clauseText": "x",
        "createdAt": "2026-01-01T00:00:00Z",
        "updatedAt": "2026-01-01T00:00:00Z",
    }
    payload = json.dumps({"exportDate": "2026-01-01T00:00:00Z", "rules": [rule, rule]})
    with pytest.raises(BackupFormatError, match="duplicate rule id"):
        parse_backup(payload)
