"""Time clock payroll command line interface.

Provides operational tools for:
- Schema creation
- Appending pay rates and resolving the rate in effect on a date
- Payroll reports over a date range
- Reconciliation of entries the shift close trigger could not price

Usage:
    python -m timeclock_payroll.cli init-db
    python -m timeclock_payroll.cli add-rate --business-id B --user-id U --rate-cents 2000 --effective-from 2024-01-01
    python -m timeclock_payroll.cli resolve-rate --business-id B --user-id U --on 2024-03-15
    python -m timeclock_payroll.cli report --business-id B --start 2024-03-01 --end 2024-03-31
    python -m timeclock_payroll.cli reconcile [--business-id B] [--limit 500]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Coroutine

from timeclock_payroll.calculators.rate_resolver import RateResolver
from timeclock_payroll.calculators.types import OvertimeConfig
from timeclock_payroll.config import get_settings
from timeclock_payroll.database import create_schema, get_engine, make_session_factory
from timeclock_payroll.logging_config import configure_logging
from timeclock_payroll.services.rate_service import PayRateService
from timeclock_payroll.services.reconciliation import ReconciliationService
from timeclock_payroll.services.report_service import PayrollReport, PayrollReportService

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_datetime(s: str) -> datetime:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def format_currency(cents: int) -> str:
    """Format minor units as dollars, e.g. 95000 -> $950.00."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) // 100:,}.{abs(cents) % 100:02d}"


def format_hours(hours: Decimal) -> str:
    return f"{hours:.2f}"


def report_to_dict(report: PayrollReport) -> dict[str, Any]:
    """JSON-ready view of a payroll report."""
    return {
        "business_id": report.business_id,
        "window_start": report.window_start.isoformat(),
        "window_end": report.window_end.isoformat(),
        "rows": [
            {
                "user_id": row.user_id,
                "location_id": row.location_id,
                "entry_count": row.entry_count,
                "regular_hours": format_hours(row.result.regular_hours),
                "overtime_hours": format_hours(row.result.overtime_hours),
                "double_time_hours": format_hours(row.result.double_time_hours),
                "total_hours": format_hours(row.result.total_hours),
                "hourly_rate_cents": row.result.hourly_rate_cents,
                "gross_pay_cents": row.result.gross_pay_cents,
                "rate_missing": row.rate_missing,
            }
            for row in report.rows
        ],
        "summary": {
            "total_hours": format_hours(report.total_hours),
            "total_regular_hours": format_hours(report.total_regular_hours),
            "total_overtime_hours": format_hours(report.total_overtime_hours),
            "total_double_time_hours": format_hours(report.total_double_time_hours),
            "total_gross_pay_cents": report.total_gross_pay_cents,
            "workers_missing_rate": report.workers_missing_rate,
        },
    }


class PayrollCli:
    """Time clock payroll command line interface."""

    def __init__(self, database_url: str | None = None) -> None:
        self.parser = self._build_parser()
        self.database_url = database_url

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="timeclock-payroll",
            description="Time clock payroll operational tools",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            default=None,
            help="Logging level (default: LOG_LEVEL setting)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create database tables")

        add_rate = subparsers.add_parser("add-rate", help="Append a pay rate for a worker")
        add_rate.add_argument("--business-id", required=True)
        add_rate.add_argument("--user-id", required=True)
        add_rate.add_argument(
            "--rate-cents",
            type=int,
            required=True,
            help="Hourly rate in cents (e.g. 2000 for $20.00)",
        )
        add_rate.add_argument(
            "--effective-from",
            type=parse_datetime,
            required=True,
            help="Effective date (ISO format)",
        )

        resolve = subparsers.add_parser("resolve-rate", help="Show the rate in effect on a date")
        resolve.add_argument("--business-id", required=True)
        resolve.add_argument("--user-id", required=True)
        resolve.add_argument("--on", type=parse_datetime, required=True, help="Date (ISO format)")

        report = subparsers.add_parser("report", help="Payroll report for a date range")
        report.add_argument("--business-id", required=True)
        report.add_argument("--start", type=parse_date, required=True, help="First day (inclusive)")
        report.add_argument("--end", type=parse_date, required=True, help="Last day (inclusive)")
        report.add_argument("--user-id", help="Limit to one worker")
        report.add_argument("--location-id", help="Limit to one location")
        report.add_argument("--timezone", help="Timezone for week boundaries")
        report.add_argument(
            "--double-time-threshold",
            type=Decimal,
            help="Weekly hours after which double time applies",
        )
        report.add_argument("--json", action="store_true", help="Output JSON")

        reconcile = subparsers.add_parser(
            "reconcile",
            help="Recalculate closed entries that have no calculated pay",
        )
        reconcile.add_argument("--business-id", help="Limit to one business")
        reconcile.add_argument(
            "--limit",
            type=int,
            default=500,
            help="Maximum entries to process (default: 500)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)
        configure_logging(parsed.log_level or get_settings().log_level)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Coroutine[Any, Any, int]]] = {
            "init-db": self._cmd_init_db,
            "add-rate": self._cmd_add_rate,
            "resolve-rate": self._cmd_resolve_rate,
            "report": self._cmd_report,
            "reconcile": self._cmd_reconcile,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(self._run_with_engine(handler, parsed))
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except Exception:
            logger.exception("Command %s failed", parsed.command)
            return 1

    async def _run_with_engine(
        self,
        handler: Callable[[argparse.Namespace], Coroutine[Any, Any, int]],
        args: argparse.Namespace,
    ) -> int:
        self.engine = get_engine(self.database_url)
        self.session_factory = make_session_factory(self.engine)
        try:
            return await handler(args)
        finally:
            await self.engine.dispose()

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create tables."""
        await create_schema(self.engine)
        print("Database schema created")
        return 0

    async def _cmd_add_rate(self, args: argparse.Namespace) -> int:
        """Append a pay rate."""
        async with self.session_factory() as session:
            async with session.begin():
                rate = await PayRateService(session).add_pay_rate(
                    args.business_id,
                    args.user_id,
                    args.rate_cents,
                    args.effective_from,
                )
        print(
            f"Added rate {rate.pay_rate_id}: {format_currency(args.rate_cents)}/hr "
            f"for {args.user_id} from {args.effective_from.isoformat()}"
        )
        return 0

    async def _cmd_resolve_rate(self, args: argparse.Namespace) -> int:
        """Resolve the rate in effect on a date."""
        async with self.session_factory() as session:
            rate = await RateResolver(session).resolve_pay_rate(
                args.business_id, args.user_id, args.on
            )
        if rate is None:
            print(f"No pay rate on file for {args.user_id}")
            return 1
        print(f"{args.user_id} on {args.on.date().isoformat()}: {format_currency(rate)}/hr")
        return 0

    async def _cmd_report(self, args: argparse.Namespace) -> int:
        """Print a payroll report."""
        config = None
        if args.double_time_threshold is not None:
            defaults = OvertimeConfig.from_settings(get_settings())
            config = OvertimeConfig(
                regular_hours_per_week=defaults.regular_hours_per_week,
                overtime_multiplier=defaults.overtime_multiplier,
                double_time_multiplier=defaults.double_time_multiplier,
                double_time_threshold_hours=args.double_time_threshold,
            )

        window_start = datetime.combine(args.start, time.min, tzinfo=timezone.utc)
        window_end = datetime.combine(args.end + timedelta(days=1), time.min, tzinfo=timezone.utc)

        async with self.session_factory() as session:
            report = await PayrollReportService(session, config).build_report(
                args.business_id,
                window_start,
                window_end,
                user_id=args.user_id,
                location_id=args.location_id,
                timezone_name=args.timezone,
            )

        if args.json:
            print(json.dumps(report_to_dict(report), indent=2))
            return 0

        print(f"Payroll for {args.business_id}: {args.start} to {args.end}")
        print(f"{'Worker':<24} {'Entries':>7} {'Reg':>8} {'OT':>8} {'DT':>8} {'Rate':>10} {'Gross':>12}")
        for row in report.rows:
            rate = "MISSING" if row.rate_missing else format_currency(row.result.hourly_rate_cents)
            print(
                f"{row.user_id:<24} {row.entry_count:>7} "
                f"{format_hours(row.result.regular_hours):>8} "
                f"{format_hours(row.result.overtime_hours):>8} "
                f"{format_hours(row.result.double_time_hours):>8} "
                f"{rate:>10} {format_currency(row.result.gross_pay_cents):>12}"
            )
        print(
            f"Total: {format_hours(report.total_hours)} hours, "
            f"{format_currency(report.total_gross_pay_cents)}"
        )
        return 0

    async def _cmd_reconcile(self, args: argparse.Namespace) -> int:
        """Recalculate pending entries."""
        service = ReconciliationService(self.session_factory)
        result = await service.recalculate_pending(args.business_id, args.limit)
        print(
            f"Examined {result.examined}: {result.calculated} calculated, {result.failed} failed"
        )
        for entry_id in result.failed_entry_ids:
            print(f"  failed: {entry_id}")
        return 0 if result.failed == 0 else 1


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
