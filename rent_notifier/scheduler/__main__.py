"""Scheduler command-line entry point.

Run one tick and print its JSON result, for use from cron:

    python -m rent_notifier.scheduler daily
    python -m rent_notifier.scheduler monthly

Exits with status 1 when the tick reports success=false.
"""

from __future__ import annotations

import argparse
import sys

from rent_notifier.config import get_settings
from rent_notifier.core.exceptions import NotifierError
from rent_notifier.core.logger import get_logger, setup_logging
from rent_notifier.scheduler.tick import create_scheduler

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the requested tick and print the result."""
    parser = argparse.ArgumentParser(prog="rent_notifier.scheduler", description="Run a notification tick")
    parser.add_argument("tick", choices=["daily", "monthly"], help="Which tick to run")
    args = parser.parse_args(argv)

    config = get_settings()
    setup_logging(
        log_level=config.LOG_LEVEL,
        console_level="WARNING",
        enable_file=config.LOG_TO_FILE,
        log_dir=config.LOG_DIR,
        max_size_mb=config.LOG_MAX_SIZE_MB,
        backup_count=config.LOG_BACKUP_COUNT,
    )

    try:
        scheduler, storage = create_scheduler(config)
    except NotifierError as e:
        logger.error(f"Scheduler initialization failed: {e}")
        return 1

    try:
        result = scheduler.run_daily() if args.tick == "daily" else scheduler.run_monthly()
    finally:
        scheduler.close()
        storage.close()

    print(result.model_dump_json(by_alias=True, indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
