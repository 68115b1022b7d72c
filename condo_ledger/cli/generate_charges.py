"""CLI entry point for monthly charge generation.

Creates the common-expense and reserve-fund charges of a period for every
apartment that does not have them yet. Safe to re-run.

Usage:
    python -m condo_ledger.cli.generate_charges               (current month)
    python -m condo_ledger.cli.generate_charges --month 3 --year 2025

Exit Codes:
    0 - Success: charges created, or nothing to do
    1 - Failure: error encountered; no charges committed

Logging:
    LOG_LEVEL controls verbosity; output goes to stdout and the log file
"""

import argparse
import logging
import sys
from datetime import date

from condo_ledger.config import settings
from condo_ledger.services.logging import setup_server_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    today = date.today()
    parser = argparse.ArgumentParser(description="Generate monthly apartment charges")
    parser.add_argument("--month", type=int, default=today.month, choices=range(1, 13))
    parser.add_argument("--year", type=int, default=today.year)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Run the monthly charge generator.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = parse_args(argv)
    setup_server_logging(settings.log_file, settings.log_level, settings.database_echo)
    logger = logging.getLogger(__name__)

    try:
        from condo_ledger.services import SessionLocal
        from condo_ledger.services.period_service import ChargeGenerationService

        db = SessionLocal()
        try:
            result = ChargeGenerationService(db).generate_monthly_charges(args.month, args.year)
            logger.info(
                f"{result.period_label}: {result.status.value}, {result.created} charge(s) created"
            )
            return 0
        finally:
            db.close()

    except KeyboardInterrupt:
        logger.warning("Charge generation interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Charge generation failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
