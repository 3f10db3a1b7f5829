"""Main entry point with CLI."""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cartcheck.config import config
from cartcheck.errors import ConfigurationError, NothingToProcessError
from cartcheck.logging_conf import setup_logging
from cartcheck.jobs.runner import CheckRunner

import logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Storefront Add-to-Cart checker")

    # Input
    parser.add_argument(
        "--input",
        default=None,
        help=f"File with one UPC per line (default: {config.UPC_FILE})",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help=f"Identifiers per batch/session/CSV (default: {config.BATCH_SIZE})",
    )
    parser.add_argument(
        "--no-dedupe",
        action="store_true",
        help="Keep duplicate identifiers from the input",
    )
    parser.add_argument(
        "--no-resume",
        action="store_true",
        help="Ignore the checkpoint log and process every identifier",
    )

    # Scheduling
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--parallel",
        dest="mode",
        action="store_const",
        const="parallel",
        help="Run all batches concurrently",
    )
    mode.add_argument(
        "--sequential",
        dest="mode",
        action="store_const",
        const="sequential",
        help="Run batches one after another",
    )
    parser.add_argument(
        "--max-parallel-batches",
        type=int,
        default=None,
        help="Cap on concurrent batches in parallel mode (0 = no cap)",
    )

    # Recovery
    parser.add_argument(
        "--retry-count",
        type=int,
        default=None,
        help=f"Retries per identifier after the first attempt (default: {config.RETRY_COUNT})",
    )
    parser.add_argument(
        "--blocked-backoff-ms",
        type=int,
        default=None,
        help=f"Pause after a blocked result (default: {config.BLOCKED_BACKOFF_MS})",
    )
    parser.add_argument(
        "--no-screenshots",
        action="store_true",
        help="Disable diagnostic screenshots",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the browser headless",
    )

    # Run control flags
    parser.add_argument(
        "--stop-after-minutes",
        type=float,
        default=None,
        help="Stop taking new identifiers after M minutes",
    )
    parser.add_argument(
        "--max-errors",
        type=int,
        default=None,
        help="Stop after N failed records",
    )
    parser.add_argument(
        "--max-consecutive-errors",
        type=int,
        default=None,
        help="Stop after N failed records in a row",
    )
    parser.add_argument(
        "--max-blocked",
        type=int,
        default=None,
        help="Stop after N blocked results",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    setup_logging()
    args = parse_args(argv)

    if args.headless:
        config.HEADLESS = True
    if args.mode:
        config.EXECUTION_MODE = args.mode
    if args.batch_size is not None:
        config.BATCH_SIZE = args.batch_size
    if args.retry_count is not None:
        config.RETRY_COUNT = args.retry_count

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Cart check starting")
    logger.info(f"Site: {config.BASE_URL}")
    logger.info(f"Input: {args.input or config.UPC_FILE}")
    logger.info(f"Batch size: {config.BATCH_SIZE}")
    logger.info(f"Mode: {config.EXECUTION_MODE}")
    logger.info(f"Resume: {not args.no_resume}")
    logger.info(f"Headless: {config.HEADLESS}")
    logger.info("=" * 60)

    runner = CheckRunner(
        input_file=args.input,
        max_parallel_batches=args.max_parallel_batches,
        deduplicate=False if args.no_dedupe else None,
        resume=not args.no_resume,
        blocked_backoff=args.blocked_backoff_ms / 1000 if args.blocked_backoff_ms is not None else None,
        screenshots=False if args.no_screenshots else None,
        stop_after_minutes=args.stop_after_minutes,
        max_errors=args.max_errors,
        max_consecutive_errors=args.max_consecutive_errors,
        max_blocked=args.max_blocked,
    )
    try:
        summary = asyncio.run(runner.run())
    except NothingToProcessError as e:
        logger.info(f"Nothing to do: {e}")
        sys.exit(0)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    if not summary.completed:
        logger.warning(
            f"Run incomplete: {summary.recorded}/{summary.total} recorded, "
            f"failed batches: {summary.failed_batches or 'none'}"
        )
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
