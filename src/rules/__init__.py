"""Rules module: entity model, lifecycle engine, status sweep, repository, backup."""

from src.rules.backup import BackupDocument, export_backup, import_backup, parse_backup
from src.rules.lifecycle import LifecycleEngine
from src.rules.models import (
    AmendmentDraft,
    ClauseType,
    EffectiveDateType,
    Rule,
    RuleDraft,
    RuleStatus,
    SuccessMetricsSource,
    SunsetType,
    System,
)
from src.rules.queries import RuleStats, compute_stats
from src.rules.repository import InMemoryRuleRepository, RuleRepository
from src.rules.sweep import StatusSweeper

__all__ = [
    "AmendmentDraft",
    "BackupDocument",
    "ClauseType",
    "EffectiveDateType",
    "InMemoryRuleRepository",
    "LifecycleEngine",
    "Rule",
    "RuleDraft",
    "RuleRepository",
    "RuleStats",
    "RuleStatus",
    "StatusSweeper",
    "SuccessMetricsSource",
    "SunsetType",
    "System",
    "compute_stats",
    "export_backup",
    "import_backup",
    "parse_backup",
]
