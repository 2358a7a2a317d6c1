"""
Delete expired stories from the key-value store.

The API already hides expired stories when listing them; this script only
reclaims the space and trims each user's story index.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storychat.dependencies import get_kv_client
from storychat.stories import purge_expired_stories

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Purge expired stories")
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=3600,
        help="Seconds between purge runs",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single purge and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    kv = get_kv_client()
    while True:
        try:
            purged = purge_expired_stories(kv)
            logger.info("Purge complete, removed %d stories", purged)
        except Exception as exc:
            logger.exception("Purge failed: %s", exc)
            if args.once:
                return 1

        if args.once:
            return 0

        logger.info("Sleeping for %ds", args.interval_seconds)
        time.sleep(args.interval_seconds)


if __name__ == "__main__":
    raise SystemExit(main())
