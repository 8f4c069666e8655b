#!/usr/bin/env python3
"""
Remove stale rate limit state (untouched for more than 24 hours).

Safe to run while the API is serving requests: only files whose mtime is
past the threshold are deleted. Meant for cron, e.g.

    17 * * * *  cd /srv/formrelay && python scripts/sweep_rate_limits.py

Reads RATE_LIMIT_STORAGE_DIR (and the rest of the settings) from the
environment or a .env file.
"""

import argparse
import logging
import sys

from formrelay.config import load_settings
from formrelay.services.rate_limiter import FileRateStateStore, RateLimiter

logger = logging.getLogger("sweep_rate_limits")


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="sweep_rate_limits.py",
        description="Delete rate limit state files older than 24 hours.",
    )
    parser.add_argument(
        "--dir",
        default=None,
        metavar="PATH",
        help="State directory (default: RATE_LIMIT_STORAGE_DIR or storage/cache)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = load_settings()
    directory = args.dir or settings.rate_limit_storage_dir

    try:
        store = FileRateStateStore(directory)
    except OSError as e:
        logger.error(f"Cannot open rate limit storage {directory!r}: {e}")
        return 1

    limiter = RateLimiter(
        store,
        window_minutes=settings.rate_limit_window_minutes,
        max_requests=settings.rate_limit_max_requests,
    )
    removed = limiter.sweep()
    print(f"Removed {removed} stale rate limit entr{'y' if removed == 1 else 'ies'} from {directory}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
