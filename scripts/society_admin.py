#!/usr/bin/env python3
"""
Society finance admin commands.

Usage:
  python3 scripts/society_admin.py init-db
  python3 scripts/society_admin.py missing-report [--fiscal-year FY25-26]
      [--type Income|Expense|"Petty Cash"|CAM] [--from Jan] [--to Jun]
      [--xlsx PATH]
  python3 scripts/society_admin.py trail RECORD_ID [--xlsx PATH]
  python3 scripts/society_admin.py verify-audit
  python3 scripts/society_admin.py quota [--role accountant] [--actor-id UUID]
  python3 scripts/society_admin.py budget-report [--fiscal-year FY25-26] [--xlsx PATH]
  python3 scripts/society_admin.py budget-import SHEET.xlsx --fiscal-year FY25-26
      --actor-id UUID

The database comes from --db-url, else DATABASE_URL, else a local SQLite
file.  Configuration comes from --config, else SOCIETY_CONFIG_PATH, else
the packaged defaults.
"""

import argparse
import os
import sys
from pathlib import Path
from uuid import UUID, uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = os.environ.get("DATABASE_URL", "sqlite:///society.db")

ENTRY_TYPE_CHOICES = ("Income", "Expense", "Petty Cash", "CAM")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Society finance administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url", type=str, default=DB_URL,
        help=f"Database URL (default: {DB_URL})",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Configuration YAML (default: SOCIETY_CONFIG_PATH or packaged defaults)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")

    report = sub.add_parser("missing-report", help="List months with no recorded entry")
    report.add_argument(
        "--fiscal-year", type=str, default=None,
        help="Fiscal year label such as FY25-26 (default: current)",
    )
    report.add_argument("--type", choices=ENTRY_TYPE_CHOICES, default=None)
    report.add_argument("--from", dest="from_month", type=str, default=None, help="e.g. Jan")
    report.add_argument("--to", dest="to_month", type=str, default=None, help="e.g. Jun")
    report.add_argument("--xlsx", type=Path, default=None, help="Write the report to this file")

    trail = sub.add_parser("trail", help="Print a record's audit trail")
    trail.add_argument("record_id", type=UUID)
    trail.add_argument("--xlsx", type=Path, default=None)

    sub.add_parser("verify-audit", help="Validate the audit hash chain")

    quota = sub.add_parser("quota", help="Show today's correction quota usage")
    quota.add_argument("--role", type=str, default="accountant")
    quota.add_argument(
        "--actor-id", type=UUID, default=None,
        help="Needed when the quota scope is per actor",
    )

    budget = sub.add_parser("budget-report", help="Budget versus actual spend per item")
    budget.add_argument(
        "--fiscal-year", type=str, default=None,
        help="Fiscal year label such as FY25-26 (default: current)",
    )
    budget.add_argument("--xlsx", type=Path, default=None, help="Write the report to this file")

    budget_import = sub.add_parser("budget-import", help="Load a budget sheet for a fiscal year")
    budget_import.add_argument("workbook", type=Path)
    budget_import.add_argument("--fiscal-year", type=str, required=True)
    budget_import.add_argument(
        "--actor-id", type=UUID, required=True, help="Treasurer performing the import",
    )
    return parser


def _missing_report(session, policy, args) -> int:
    from society_kernel.domain.clock import SystemClock
    from society_kernel.domain.reconciliation import (
        EntryType,
        fiscal_year_label,
        fiscal_year_start,
        month_number,
        parse_fiscal_year_label,
    )
    from society_reports import (
        MissingDataReportService,
        default_report_filename,
        missing_data_workbook,
        save_workbook,
    )

    today = SystemClock().today(policy.tzinfo)
    if args.fiscal_year:
        start_year = parse_fiscal_year_label(args.fiscal_year)
    else:
        start_year = fiscal_year_start(today, policy.fiscal_year_start_month)

    entries = MissingDataReportService(session, policy).report(
        start_year,
        entry_type=EntryType(args.type) if args.type else None,
        from_month=month_number(args.from_month) if args.from_month else None,
        to_month=month_number(args.to_month) if args.to_month else None,
    )

    print(f"Missing data for {fiscal_year_label(start_year)}: {len(entries)} entries")
    for entry in entries:
        print(
            f"  {entry.entry_type.value:<11} {entry.category:<30} "
            f"{entry.subcategory or '-':<20} {entry.month}"
        )

    if args.xlsx is not None:
        target = args.xlsx
        if target.is_dir():
            target = target / default_report_filename(today)
        save_workbook(missing_data_workbook(entries), target)
        print(f"Wrote {target}")
    return 0


def _trail(session, args) -> int:
    from society_kernel.services import AuditorService
    from society_reports import audit_trail_workbook, save_workbook

    trail = AuditorService(session).get_trail(args.record_id)
    if trail.is_empty:
        print(f"No audit entries for {args.record_id}", file=sys.stderr)
        return 1
    for line in trail.render():
        print(line)
    if args.xlsx is not None:
        save_workbook(audit_trail_workbook(trail), args.xlsx)
        print(f"Wrote {args.xlsx}")
    return 0


def _verify_audit(session) -> int:
    from society_kernel.exceptions import AuditChainBrokenError
    from society_kernel.services import AuditorService

    try:
        AuditorService(session).validate_chain()
    except AuditChainBrokenError as exc:
        print(f"BROKEN: {exc}", file=sys.stderr)
        return 1
    print("Audit chain OK")
    return 0


def _quota(session, policy, args) -> int:
    from society_kernel.domain.roles import Actor, Role
    from society_kernel.services import AuditorService, DailyQuotaGuard

    actor = Actor(actor_id=args.actor_id or uuid4(), role=Role(args.role))
    guard = DailyQuotaGuard(session, policy)
    if not policy.is_quota_constrained(actor.role):
        print(f"Role {actor.role.value} is not quota constrained")
        return 0
    used = guard.used_today(actor)
    audited = guard.audited_usage(actor, AuditorService(session))
    print(f"Day:       {guard.today().isoformat()} ({policy.timezone})")
    print(f"Limit:     {guard.limit}")
    print(f"Used:      {used}")
    print(f"Remaining: {max(guard.limit - used, 0)}")
    if audited != used:
        print(f"WARNING: audit trail shows {audited} correction requests today")
    return 0


def _fiscal_start(policy, label: str | None) -> int:
    from society_kernel.domain.clock import SystemClock
    from society_kernel.domain.reconciliation import fiscal_year_start, parse_fiscal_year_label

    if label:
        return parse_fiscal_year_label(label)
    return fiscal_year_start(SystemClock().today(policy.tzinfo), policy.fiscal_year_start_month)


def _budget_report(session, policy, args) -> int:
    from society_reports import BudgetReportService, budget_workbook, save_workbook

    summary = BudgetReportService(session, policy).summary(
        _fiscal_start(policy, args.fiscal_year)
    )
    print(
        f"Budget {summary.fiscal_year}: {summary.total_actual} of {summary.total_budget} "
        f"({summary.utilization}%)"
    )
    for line in summary.lines:
        print(
            f"  {line.serial_no:>4} {line.item_name:<35} {line.annual_budget:>14} "
            f"{line.actual:>14} {line.utilization:>7}%  {line.band.value}"
        )
    if summary.over_budget:
        print(f"Over budget: {len(summary.over_budget)} items by {summary.total_over_amount}")
    if args.xlsx is not None:
        save_workbook(budget_workbook(summary), args.xlsx)
        print(f"Wrote {args.xlsx}")
    return 0


def _budget_import(session, policy, args) -> int:
    from society_kernel.domain.roles import Actor, Role
    from society_kernel.exceptions import BudgetImportError
    from society_reports import BudgetReportService, read_budget_workbook

    treasurer = Actor(actor_id=args.actor_id, role=Role.TREASURER)
    try:
        lines = read_budget_workbook(args.workbook)
        result = BudgetReportService(session, policy).import_lines(
            _fiscal_start(policy, args.fiscal_year), lines, treasurer,
        )
    except BudgetImportError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    print(
        f"Imported {result.total} budget items for {result.fiscal_year} "
        f"({result.created} new, {result.updated} updated)"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from society_config import get_active_config, workflow_policy_from_config
    from society_kernel.db.engine import (
        create_tables,
        init_engine_from_url,
        session_scope,
    )

    policy = workflow_policy_from_config(get_active_config(args.config))

    try:
        init_engine_from_url(args.db_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Cannot connect to database: {exc}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        create_tables()
        print("Tables created")
        return 0

    with session_scope() as session:
        if args.command == "missing-report":
            return _missing_report(session, policy, args)
        if args.command == "trail":
            return _trail(session, args)
        if args.command == "verify-audit":
            return _verify_audit(session)
        if args.command == "budget-report":
            return _budget_report(session, policy, args)
        if args.command == "budget-import":
            return _budget_import(session, policy, args)
        return _quota(session, policy, args)


if __name__ == "__main__":
    sys.exit(main())
