"""Maintenance command line for a rulebook database.

    rulebook sweep                  advance statuses for today
    rulebook repair-system-ids      backfill system ids on legacy systems
    rulebook export [-o FILE]       write a backup document
    rulebook import FILE            replace everything with a backup document
    rulebook stats                  counts by status/system
    rulebook expiring [--days N]    active rules expiring soon
    rulebook list [--status S]      list rules
    rulebook search TEXT            search title/system/clause/body

Every command opens a session first, which runs the status sweep.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import asdict
from pathlib import Path
from typing import Any

from src.app import Rulebook, open_rulebook
from src.infra.errors import RulebookError
from src.rules import queries
from src.rules.backup import export_backup, import_backup
from src.rules.models import Rule, RuleStatus

Opener = Callable[[], AbstractAsyncContextManager[Rulebook]]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Personal rulebook maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("sweep", help="Activate and expire rules as of today")
    subparsers.add_parser(
        "repair-system-ids", help="Assign ids to systems created before ids existed"
    )

    export_parser = subparsers.add_parser("export", help="Write a backup document")
    export_parser.add_argument("-o", "--output", type=Path, help="Defaults to stdout")

    import_parser = subparsers.add_parser(
        "import", help="Replace all rules and systems with a backup document"
    )
    import_parser.add_argument("path", type=Path)

    subparsers.add_parser("stats", help="Rule counts by status and system")

    expiring_parser = subparsers.add_parser("expiring", help="Active rules expiring soon")
    expiring_parser.add_argument("--days", type=int, default=None)

    list_parser = subparsers.add_parser("list", help="List rules")
    list_parser.add_argument("--status", choices=[s.value for s in RuleStatus])
    list_parser.add_argument("--archived", action="store_true", help="Only archived rules")

    search_parser = subparsers.add_parser("search", help="Search rules by text")
    search_parser.add_argument("text")
    return parser


async def _execute(args: argparse.Namespace, rulebook: Rulebook) -> Any:
    repo = rulebook.repository
    tz = rulebook.settings.lifecycle.tzinfo

    if args.command == "sweep":
        # open already swept; a second run reports whether anything was still due
        changed = await rulebook.sweeper.run()
        return {"changed": rulebook.changed_on_open or changed}
    if args.command == "repair-system-ids":
        patched = await rulebook.sweeper.assign_missing_system_ids()
        return {"patched": {s.name: s.system_id for s in patched}}
    if args.command == "export":
        document = await export_backup(repo, clock=rulebook.clock)
        if args.output is None:
            return json.loads(document)
        args.output.write_text(document, encoding="utf-8")
        return {"written": str(args.output)}
    if args.command == "import":
        count = await import_backup(repo, args.path.read_text(encoding="utf-8"))
        return {"imported_rules": count}
    if args.command == "stats":
        return asdict(await queries.compute_stats(repo))
    if args.command == "expiring":
        days = args.days
        if days is None:
            days = rulebook.settings.lifecycle.expiring_soon_days
        rules = await queries.rules_expiring_soon(
            repo, days=days, tz=tz, clock=rulebook.clock
        )
        return [_summary(r) for r in rules]
    if args.command == "list":
        if args.archived:
            rules = await queries.archived_rules(repo)
        elif args.status:
            rules = await queries.rules_by_status(repo, RuleStatus(args.status))
        else:
            rules = await repo.get_all_rules()
        return [_summary(r) for r in rules]
    if args.command == "search":
        return [_summary(r) for r in await queries.search_rules(repo, args.text)]
    raise RulebookError(f"unknown command: {args.command}")


def _summary(rule: Rule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "title": rule.title,
        "system": rule.system,
        "status": rule.status.value,
        "archived": rule.is_archived,
        "expires": rule.expiration_date.date().isoformat() if rule.expiration_date else None,
    }


async def _run(args: argparse.Namespace, opener: Opener) -> Any:
    async with opener() as rulebook:
        return await _execute(args, rulebook)


def run_cli(argv: Sequence[str] | None = None, *, opener: Opener = open_rulebook) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        result = asyncio.run(_run(args, opener))
    except RulebookError as exc:
        print(f"error [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    sys.exit(main())
