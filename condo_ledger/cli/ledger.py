"""CLI for ledger maintenance jobs.

Usage:
    python -m condo_ledger.cli.ledger backfill [--house NUMBER]
    python -m condo_ledger.cli.ledger reprocess
    python -m condo_ledger.cli.ledger status NUMBER
    python -m condo_ledger.cli.ledger ensure-period YEAR MONTH
    python -m condo_ledger.cli.ledger initial-debt NUMBER AMOUNT
    python -m condo_ledger.cli.ledger condone-penalty YEAR MONTH [--house NUMBER]

Exit Codes:
    0 - Success
    1 - Failure: error encountered, or a backfill left failed records

Ledger errors are also printed to stdout as {"error": {"code", "message"}}.

Logging:
    LOG_LEVEL (default INFO) to both stdout and LOG_FILE (default logs/ledger.log)
"""

import argparse
import asyncio
import json
import sys
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv
from sqlalchemy import select

from condo_ledger.config import get_settings
from condo_ledger.errors import LedgerError, error_response, not_found_error
from condo_ledger.models.house import House
from condo_ledger.services.engine import LedgerEngine
from condo_ledger.services.logging import setup_logging
from condo_ledger.services.period_service import PeriodRepository


def amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="condo-ledger", description="Condominium dues ledger jobs")
    commands = parser.add_subparsers(dest="command", required=True)

    backfill = commands.add_parser("backfill", help="Allocate confirmed payments not yet applied")
    backfill.add_argument("--house", type=int, default=None, help="Only this house number")

    commands.add_parser("reprocess", help="Wipe allocations and balances, then replay all payments")

    status = commands.add_parser("status", help="Print the balance status of a house")
    status.add_argument("house", type=int, help="House number")

    ensure = commands.add_parser("ensure-period", help="Create a period and its charges if missing")
    ensure.add_argument("year", type=int)
    ensure.add_argument("month", type=int)

    debt = commands.add_parser("initial-debt", help="Set the debt a house carried before the ledger")
    debt.add_argument("house", type=int, help="House number")
    debt.add_argument("amount", type=amount)

    condone = commands.add_parser("condone-penalty", help="Forgive late-payment penalties of a period")
    condone.add_argument("year", type=int)
    condone.add_argument("month", type=int)
    condone.add_argument("--house", type=int, default=None, help="Only this house number")

    return parser


async def find_house(ledger: LedgerEngine, number: int) -> House:
    async with ledger.session_factory() as session:
        house = (
            await session.execute(select(House).where(House.number_house == number))
        ).scalar_one_or_none()
    if house is None:
        raise not_found_error(f"House {number} not found")
    return house


async def run(args: argparse.Namespace, ledger: LedgerEngine, logger) -> int:
    if args.command == "backfill":
        result = await ledger.backfill_service.backfill(house_number=args.house)
        logger.info(
            f"Backfill: found={result.total_records_found} processed={result.processed} "
            f"skipped={result.skipped} failed={result.failed}"
        )
        for item in result.results:
            if item.status == "failed":
                logger.warning(f"Record {item.record_id} (house {item.house_id}) failed: {item.error}")
        return 0 if result.failed == 0 else 1

    if args.command == "reprocess":
        result = await ledger.backfill_service.reprocess()
        logger.info(
            f"Reprocess: deleted {result.allocations_deleted} allocations, "
            f"reset {result.balances_reset} balances, "
            f"processed {result.backfill_result.processed} records"
        )
        return 0 if result.backfill_result.failed == 0 else 1

    if args.command == "status":
        house = await find_house(ledger, args.house)
        balance = await ledger.snapshot_cache.get_or_calculate(house.id, house)
        print(balance.model_dump_json(indent=2))
        return 0

    if args.command == "ensure-period":
        period = await ledger.period_registry.ensure_period_exists(args.year, args.month)
        logger.info(f"Period {period.year}-{period.month:02d} ready (id={period.id})")
        return 0

    if args.command == "initial-debt":
        house = await find_house(ledger, args.house)
        result = await ledger.set_initial_debt.execute(house.id, args.amount)
        logger.info(result.message)
        return 0

    if args.command == "condone-penalty":
        async with ledger.session_factory() as session:
            period = await PeriodRepository(session).find_by_year_and_month(args.year, args.month)
        if period is None:
            raise not_found_error(f"Period {args.year}-{args.month:02d} not found")
        house_ids = [(await find_house(ledger, args.house)).id] if args.house is not None else None
        result = await ledger.condone_penalty.execute_multiple(period.id, house_ids)
        logger.info(
            f"Condoned {result.condoned} penalties totalling {result.total_condoned_amount}, "
            f"{result.failed} failed"
        )
        for detail in result.details:
            if detail.status == "failed":
                logger.warning(f"House id {detail.house_id}: {detail.reason}")
        return 0 if result.failed == 0 else 1

    return 1


async def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the ledger CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)

    load_dotenv()
    settings = get_settings()
    logger = setup_logging(settings.log_file, settings.log_level, settings.database_echo)

    ledger, db_engine = LedgerEngine.from_settings(settings)
    try:
        return await run(args, ledger, logger)
    except LedgerError as e:
        logger.error(f"{args.command} failed ({e.kind.value}): {e.message}")
        print(json.dumps(error_response(e)))
        return 1
    except KeyboardInterrupt:
        logger.warning(f"{args.command} interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1
    finally:
        await db_engine.dispose()


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
