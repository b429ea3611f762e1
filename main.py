"""FinanceFlow command line: balances, forecast, pots and JSON import/export."""
import argparse
import json
import logging
import os
import sqlite3
import sys
from datetime import date
from pathlib import Path
from typing import Iterable

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.errors import BudgetError
from database.pot_config_dao import PotConfigDAO
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO

from services.balance_service import BalanceService
from services.data_service import DataService, default_export_name
from services.forecast_service import ForecastService
from services.pot_service import PotService
from services.recurring_service import RecurringService
from services.report_service import ReportService
from services.transaction_service import TransactionService

from utils.app_config import get_db_folder, load_config, load_policy
from utils.constants import APP_NAME
from utils.currency import format_currency, format_signed
from utils.date_helpers import end_of_month, format_date, format_month, friendly_month, today

logger = logging.getLogger(__name__)


class App:
    """Wires the database, DAOs and services together."""

    def __init__(self, db: DatabaseManager, config: dict | None = None):
        policy = load_policy(config if config is not None else {})
        self.db = db

        # ── DAOs ─────────────────────────────────────────────────────────────
        self.tx_dao = TransactionDAO(db)
        self.recurring_dao = RecurringDAO(db)
        self.pot_config_dao = PotConfigDAO(db)

        # ── Services ─────────────────────────────────────────────────────────
        self.tx_svc = TransactionService(db, self.tx_dao, self.recurring_dao)
        self.recurring_svc = RecurringService(self.recurring_dao, self.tx_dao, policy)
        self.balance_svc = BalanceService(self.tx_dao)
        self.pot_svc = PotService(self.pot_config_dao, self.tx_dao)
        self.forecast_svc = ForecastService(
            self.tx_dao, self.recurring_dao, self.pot_config_dao, policy=policy
        )
        self.report_svc = ReportService(self.tx_dao)
        self.data_svc = DataService(db, self.tx_dao, self.recurring_dao, self.pot_config_dao)

    def startup(self, reference_date: date):
        """First-run seeding, then materialize the current month's rules."""
        if self.recurring_svc.seed_defaults(reference_date):
            logger.info("First run: default rules and opening balance created")
        report = self.recurring_svc.apply_due_rules(reference_date)
        for rule_id, error in report.failed:
            logger.warning("Rule %s was not materialized: %s", rule_id, error)
        self.db.set_setting("last_materialized", report.month)
        return report

    @property
    def currency(self) -> str:
        return self.db.get_setting("currency_symbol", "€")


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_status(app: App, args) -> str:
    ref = args.as_of
    sym = app.currency
    lines = [f"{APP_NAME}: {friendly_month(format_month(ref))}"]
    for mode, summary in app.balance_svc.get_overview(ref).items():
        lines.append(
            f"  {mode:<9} bank {format_currency(summary.bank_balance, sym):>12}"
            f"  cash {format_currency(summary.cash_balance, sym):>10}"
            f"  total {format_currency(summary.total, sym):>12}"
        )
    summary = app.report_svc.get_summary(ref)
    lines.append(
        f"  month     income {format_currency(summary['income'], sym)}"
        f"  expense {format_currency(summary['expense'], sym)}"
        f"  net {format_signed(summary['balance'], sym)}"
    )
    applied = app.db.get_setting("last_materialized")
    if applied:
        lines.append(f"  recurring rules applied for {friendly_month(applied)}")
    return "\n".join(lines)


def cmd_forecast(app: App, args) -> str:
    ref = args.as_of
    to_date = args.to or end_of_month(ref)
    sym = app.currency
    if args.daily:
        series = app.forecast_svc.get_daily_series(to_date, ref)
        return "\n".join(
            f"{p['date']}  {format_currency(p['balance'], sym):>12}{'  *' if p['is_future'] else ''}"
            for p in series
        )
    rows = app.forecast_svc.get_month_end_balances(to_date, ref)
    return "\n".join(
        f"{friendly_month(r['month']):<16} {format_currency(r['balance'], sym):>12}" for r in rows
    )


def cmd_stable(app: App, args) -> str:
    stability = app.forecast_svc.get_stable_date(args.as_of)
    if not stability.achievable:
        return "Balance does not become stable within the forecast horizon."
    if stability.immediate:
        return "Balance is stable now."
    return f"Balance is stable from {format_date(stability.date)}."


def cmd_pots(app: App, args) -> str:
    month = args.month or format_month(args.as_of)
    sym = app.currency
    lines = [f"Pots for {friendly_month(month)}"]
    for status in app.pot_svc.get_pot_status(month):
        flag = "  exhausted" if status.is_exhausted else ""
        lines.append(
            f"  {status.pot.display_name:<10} {format_currency(status.spent_amount, sym):>10}"
            f" / {format_currency(status.limit_amount, sym):<10}"
            f" left {format_currency(status.remaining, sym)}{flag}"
        )
    return "\n".join(lines)


def cmd_add(app: App, args) -> str:
    tx = app.tx_svc.create(
        date=args.date or format_date(args.as_of),
        amount=args.amount,
        type_=args.type,
        category=args.category,
        account=args.account,
        status="pending" if args.pending else "completed",
        note=args.note,
    )
    return f"Added {tx.type} {format_currency(tx.amount, app.currency)} ({tx.category}) [{tx.id}]"


def cmd_correct(app: App, args) -> str:
    tx = app.tx_svc.record_correction(args.account, args.target, args.as_of)
    if tx is None:
        return "Balance already matches."
    return f"Recorded correction of {format_signed(tx.signed_amount, app.currency)}"


def cmd_export(app: App, args) -> str:
    path = args.path or Path(default_export_name(args.as_of))
    if args.backup:
        path.write_text(json.dumps(app.data_svc.export_backup(), indent=2), encoding="utf-8")
        return f"Backup written to {path}"
    count = app.data_svc.export_json(path)
    return f"Exported {count} transaction(s) to {path}"


def cmd_import(app: App, args) -> str:
    if args.backup:
        try:
            data = json.loads(args.path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise SystemExit(f"Not valid JSON: {e}")
        stats = app.data_svc.import_backup(data)
        return f"Restored {stats['transactions']} transaction(s), {stats['recurring_rules']} rule(s)"
    count = app.data_svc.import_json(args.path)
    return f"Imported {count} transaction(s)"


# ── Argument parsing ─────────────────────────────────────────────────────────

def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="financeflow", description=f"{APP_NAME} budget planner.")
    parser.add_argument("--db", type=Path, help="Path to the sqlite database file.")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Override today's date (YYYY-MM-DD).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show actual and forecast balances.").set_defaults(func=cmd_status)

    p = sub.add_parser("forecast", help="Simulate the bank balance.")
    p.add_argument("--to", type=date.fromisoformat, help="Last day to simulate (default: month end).")
    p.add_argument("--daily", action="store_true", help="Print every day instead of month ends.")
    p.set_defaults(func=cmd_forecast)

    sub.add_parser("stable", help="When the balance stays non-negative.").set_defaults(func=cmd_stable)

    p = sub.add_parser("pots", help="Pot limits and spending.")
    p.add_argument("--month", help="YYYY-MM (default: current month).")
    p.set_defaults(func=cmd_pots)

    p = sub.add_parser("add", help="Record a transaction.")
    p.add_argument("type", choices=["income", "expense"])
    p.add_argument("amount", type=float)
    p.add_argument("category")
    p.add_argument("--account", choices=["bank", "cash"], default="bank")
    p.add_argument("--date", help="YYYY-MM-DD (default: today).")
    p.add_argument("--note", default="")
    p.add_argument("--pending", action="store_true", help="Store as pending instead of completed.")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("correct", help="Record a correction to reach a target balance.")
    p.add_argument("account", choices=["bank", "cash"])
    p.add_argument("target", type=float)
    p.set_defaults(func=cmd_correct)

    p = sub.add_parser("export", help="Export transactions as JSON.")
    p.add_argument("path", nargs="?", type=Path)
    p.add_argument("--backup", action="store_true", help="Include rules and pot limits.")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Replace transactions from a JSON export.")
    p.add_argument("path", type=Path)
    p.add_argument("--backup", action="store_true", help="Restore a full backup.")
    p.set_defaults(func=cmd_import)

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "status"
        args.func = cmd_status
    if args.as_of is None:
        args.as_of = today()
    return args


def run(argv: Iterable[str] | None = None) -> str:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ── Bootstrap: read DB folder and policy from pre-DB config ──────────────
    config = load_config()
    if args.db:
        db = DatabaseManager(str(args.db))
        db.initialize()
    else:
        db = DatabaseManager.open(db_folder=get_db_folder(config))

    try:
        app = App(db, config)
        app.startup(args.as_of)
        return args.func(app, args)
    except (BudgetError, ValueError, OSError, sqlite3.Error) as e:
        raise SystemExit(f"Error: {e}")
    finally:
        db.close()


def main() -> None:
    print(run())


if __name__ == "__main__":
    main()
