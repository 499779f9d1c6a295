"""Benefits engine command line interface.

Operational entry points for the scheduler and for running the API:

Usage:
    benefits-engine refresh-schedules [--as-of 2025-01-31] [--skip-completion]
    benefits-engine complete-loans
    benefits-engine serve [--host 0.0.0.0] [--port 8000]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import Awaitable, Callable, TypeVar

import uvicorn

from benefits_engine.config import configure_logging, get_settings
from benefits_engine.database import dispose_db, get_session_factory, init_db
from benefits_engine.errors import BenefitsError
from benefits_engine.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_date(s: str) -> date:
    """Parse YYYY-MM-DD."""
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{s}', expected YYYY-MM-DD") from None


class BenefitsCli:
    """Benefits engine command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="benefits-engine",
            description="Benefits approval and loan ledger tools",
        )
        parser.add_argument(
            "--database-url",
            help="Override DATABASE_URL",
        )
        parser.add_argument(
            "--log-level",
            help="Override LOG_LEVEL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # refresh-schedules command
        refresh = subparsers.add_parser(
            "refresh-schedules",
            help="Update deduction statuses up to a date and close repaid loans",
        )
        refresh.add_argument(
            "--as-of",
            type=parse_date,
            help="Reference date (YYYY-MM-DD, default: today)",
        )
        refresh.add_argument(
            "--skip-completion",
            action="store_true",
            help="Only refresh statuses, do not complete repaid loans",
        )

        # complete-loans command
        subparsers.add_parser(
            "complete-loans",
            help="Mark approved loans whose deductions cover the principal as completed",
        )

        # serve command
        serve = subparsers.add_parser(
            "serve",
            help="Run the HTTP API with uvicorn",
        )
        serve.add_argument("--host", help="Bind address (default: HOST)")
        serve.add_argument("--port", type=int, help="Port (default: PORT)")
        serve.add_argument("--reload", action="store_true", help="Reload on code changes")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "refresh-schedules": self._cmd_refresh_schedules,
            "complete-loans": self._cmd_complete_loans,
            "serve": self._cmd_serve,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _with_ledger(
        self,
        database_url: str | None,
        work: Callable[[LedgerService], Awaitable[T]],
    ) -> T:
        async def _run() -> T:
            init_db(database_url)
            try:
                async with get_session_factory()() as session:
                    return await work(LedgerService(session))
            finally:
                await dispose_db()

        return asyncio.run(_run())

    def _cmd_refresh_schedules(self, args: argparse.Namespace) -> int:
        """Refresh deduction schedules."""
        try:
            if args.skip_completion:
                result = self._with_ledger(
                    args.database_url, lambda ledger: ledger.refresh_schedules(args.as_of)
                )
            else:
                result = self._with_ledger(
                    args.database_url, lambda ledger: ledger.run_maintenance(args.as_of)
                )
        except BenefitsError as e:
            print(f"ERROR: {e.message}", file=sys.stderr)
            return 1
        except Exception:
            logger.exception("refresh-schedules failed")
            return 1

        print(f"Deduction schedules refreshed as of {result.as_of.isoformat()}")
        print(f"  Entries updated: {result.entries_updated}")
        if not args.skip_completion:
            print(f"  Loans completed: {result.loans_completed}")
        return 0

    def _cmd_complete_loans(self, args: argparse.Namespace) -> int:
        """Complete fully repaid loans."""
        try:
            completed = self._with_ledger(
                args.database_url, lambda ledger: ledger.complete_loans_if_paid()
            )
        except Exception:
            logger.exception("complete-loans failed")
            return 1

        print(f"Loans completed: {completed}")
        return 0

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        """Run the API server."""
        settings = get_settings()
        uvicorn.run(
            "benefits_engine.api.app:app",
            host=args.host or settings.HOST,
            port=args.port or settings.PORT,
            reload=args.reload or settings.DEBUG,
        )
        return 0


def main() -> int:
    """CLI entry point."""
    cli = BenefitsCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
