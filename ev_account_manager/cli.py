"""Console interface for the EV account manager."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from evledger.aggregation import LedgerView
from evledger.auth import CredentialStore
from evledger.config import Settings
from evledger.exceptions import (
    AuthenticationError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from evledger.gateway import StorageGateway
from evledger.logging_config import setup_logging
from evledger.models import AccountType, ServiceType, TireServiceType, Transaction, TransactionType
from evledger.reports import MonthlyReport, format_currency, local_date_string
from evledger.session import LedgerSession
from evledger.storage import JSONStorage
from evledger.validators import clean_payload

DATE_FORMAT = "%Y-%m-%d"
TIRE_POSITIONS = ("fl", "fr", "rl", "rr", "spare")


def _parse_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc
    return value


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except Exception as exc:  # pragma: no cover - delegated to service
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if amount <= 0:
        raise argparse.ArgumentTypeError("Amount must be greater than zero")
    return value


def _today(session: LedgerSession) -> date:
    """Today on the calendar's wall clock, not the host's."""
    return session.calendar.local_date(datetime.now(timezone.utc))


def _format_transaction(tx: Transaction, session: LedgerSession) -> str:
    sign = "+" if tx.type is TransactionType.INCOME else "-"
    local = local_date_string(session.calendar, tx.date) or "-"
    return (
        f"[{tx.id}] {local} ({tx.date.strftime(DATE_FORMAT)}) {sign}{format_currency(tx.amount)}\n"
        f"  {tx.type_label} | Account: {tx.account.value}\n"
        f"  Description: {tx.description}\n"
    )


def _format_totals(view: LedgerView) -> str:
    totals = view.totals
    return (
        f"Cash balance:   {format_currency(totals.cash_balance)}\n"
        f"Loan balance:   {format_currency(totals.loan_balance)}\n"
        f"Total income:   {format_currency(totals.total_income)}\n"
        f"Total expenses: {format_currency(totals.total_expenses)}\n"
        f"Net profit:     {format_currency(totals.net_profit)}"
    )


def _format_report(report: MonthlyReport) -> str:
    lines = [report.title, _format_totals(report.view)]
    if report.is_empty:
        lines.append("No transactions for this month.")
        return "\n".join(lines)
    for heading, items in (("Income", report.income), ("Expenses", report.expense), ("Loans", report.loan)):
        lines.append(f"{heading}:")
        if not items:
            lines.append("  -")
        for item in items:
            lines.append(f"  {item.date} {item.description} ({item.label}) {item.sign} {item.amount}")
    return "\n".join(lines)


def _is_mutation(args: argparse.Namespace) -> bool:
    if args.entity == "transaction":
        return args.command in {"add", "edit", "delete"}
    return args.entity == "service" and args.command == "add"


def _build_gateway(settings: Settings) -> StorageGateway:
    return StorageGateway(
        JSONStorage(settings.data_dir),
        load_latency=settings.load_latency,
        save_latency=settings.save_latency,
    )


def handle_transaction(args: argparse.Namespace, session: LedgerSession) -> None:
    service = session.transactions
    if args.command == "add":
        payload = {
            "description": args.description,
            "amount": args.amount,
            "type": args.type,
            "account": args.account,
            "date": args.date or _today(session),
        }
        transaction = service.add(payload)
        print("Transaction added:\n" + _format_transaction(transaction, session))
    elif args.command == "list":
        view = session.dashboard()
        if not view.transactions:
            print("No transactions found.")
            return
        print(f"Found {len(view.transactions)} transactions:")
        for transaction in view.transactions:
            print(_format_transaction(transaction, session))
    elif args.command == "edit":
        changes = clean_payload({
            "description": args.description,
            "amount": args.amount,
            "type": args.type,
            "account": args.account,
            "date": args.date,
        })
        transaction = service.update(args.id, changes)
        print("Transaction updated:\n" + _format_transaction(transaction, session))
    elif args.command == "delete":
        service.delete(args.id)
        print(f"Transaction {args.id} deleted.")


def handle_service(args: argparse.Namespace, session: LedgerSession) -> None:
    if args.command == "add":
        payload: Dict[str, Any] = {
            "service_types": args.types,
            "description": args.description,
            "cost": args.cost,
            "odometer": args.odometer,
            "date": args.date or _today(session),
            "notes": args.notes,
            "tire_detail": args.tire_detail,
            "tire_company": args.tire_company,
            "tires": {position: position in (args.tires or []) for position in TIRE_POSITIONS},
        }
        record = session.service_records.add(payload)
        print(f"Service record added: [{record.id}] {record.display_description}")
    elif args.command == "list":
        rows = session.service_history()
        if not rows:
            print("No service records found.")
            return
        for row in rows:
            print(
                f"[{row['id']}] {row['local_date'] or row['date']} {row['odometer']} km "
                f"{row['display_description']} {row['cost_display']}"
            )


async def _run(args: argparse.Namespace, settings: Settings) -> None:
    gateway = _build_gateway(settings)
    credentials = CredentialStore(gateway)

    if args.entity == "register":
        username = await credentials.register(args.user, args.password, args.confirm)
        print(f"Registered {username}.")
        return

    username = await credentials.login(args.user, args.password)
    session = await LedgerSession(gateway, settings.build_calendar(), username).open()
    if session.error:
        print(f"Storage warning: {session.error}", file=sys.stderr)
    if _is_mutation(args):
        session.ensure_writable()

    if args.entity == "transaction":
        handle_transaction(args, session)
    elif args.entity == "service":
        handle_service(args, session)
    elif args.entity == "dashboard":
        print(_format_totals(session.dashboard()))
    elif args.entity == "report":
        print(_format_report(session.monthly_report(args.month, args.year)))

    await session.flush()
    if session.error:
        print(f"Storage warning: {session.error}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="EV Account Manager CLI")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory to store JSON data (default: $EV_LEDGER_DATA_DIR or ./data)",
    )
    parser.add_argument("--calendar", choices=["bikram_sambat", "gregorian"])
    parser.add_argument("--user", default=os.getenv("EV_LEDGER_USER"))
    parser.add_argument("--password", default=os.getenv("EV_LEDGER_PASSWORD"))

    subparsers = parser.add_subparsers(dest="entity", required=True)

    register_parser = subparsers.add_parser("register", help="Create a user")
    register_parser.add_argument("--confirm", help="Repeat the password")

    tx_parser = subparsers.add_parser("transaction", help="Manage transactions")
    tx_sub = tx_parser.add_subparsers(dest="command", required=True)

    types = [member.value for member in TransactionType]
    accounts = [member.value for member in AccountType]

    tx_add = tx_sub.add_parser("add", help="Add a new transaction")
    tx_add.add_argument("amount", type=_parse_amount)
    tx_add.add_argument("description")
    tx_add.add_argument("--type", choices=types, default=TransactionType.INCOME.value)
    tx_add.add_argument("--account", choices=accounts, default=AccountType.CASH.value)
    tx_add.add_argument("--date", type=_parse_date)

    tx_sub.add_parser("list", help="List transactions, newest first")

    tx_edit = tx_sub.add_parser("edit", help="Edit an existing transaction")
    tx_edit.add_argument("id")
    tx_edit.add_argument("--amount", type=_parse_amount)
    tx_edit.add_argument("--description")
    tx_edit.add_argument("--type", choices=types)
    tx_edit.add_argument("--account", choices=accounts)
    tx_edit.add_argument("--date", type=_parse_date)

    tx_delete = tx_sub.add_parser("delete", help="Delete a transaction")
    tx_delete.add_argument("id")

    subparsers.add_parser("dashboard", help="Show all-time balances and profit/loss")

    report_parser = subparsers.add_parser("report", help="Show a Bikram Sambat monthly report")
    report_parser.add_argument("--month", type=int, help="Month index 0-11 (Baisakh is 0)")
    report_parser.add_argument("--year", type=int)

    service_parser = subparsers.add_parser("service", help="Manage the service and repair log")
    service_sub = service_parser.add_subparsers(dest="command", required=True)

    service_add = service_sub.add_parser("add", help="Log a service or repair")
    service_add.add_argument("cost")
    service_add.add_argument("odometer")
    service_add.add_argument(
        "--types", nargs="+", required=True, choices=[member.value for member in ServiceType]
    )
    service_add.add_argument("--description")
    service_add.add_argument("--date", type=_parse_date)
    service_add.add_argument("--notes")
    service_add.add_argument("--tire-detail", choices=[member.value for member in TireServiceType])
    service_add.add_argument("--tire-company")
    service_add.add_argument("--tires", nargs="+", choices=TIRE_POSITIONS)

    service_sub.add_parser("list", help="List service history, newest first")

    return parser


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = settings or Settings.from_env()
    if args.data_dir is not None:
        settings.data_dir = args.data_dir
    if args.calendar is not None:
        settings.calendar = args.calendar
    setup_logging(settings.log_level)

    try:
        asyncio.run(_run(args, settings))
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except AuthenticationError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
