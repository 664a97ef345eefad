"""Run one coupon expiry sweep outside the API process.

Useful when the in-process worker is disabled, or for catching up after
downtime.

Example:
    python tooling/scripts/run_coupon_expiry.py --limit 1000
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Expire member coupons past their validity window once")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Override the number of coupons expired in this sweep.",
    )
    return parser.parse_args()


async def _run(limit: int | None) -> dict[str, int]:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))

    from perks_api.db.session import async_session  # type: ignore import-position
    from perks_api.workers import CouponExpiryWorker  # type: ignore import-position

    worker = CouponExpiryWorker(async_session, batch_size=limit)
    return await worker.run_once()


def main() -> int:
    args = parse_args()
    summary = asyncio.run(_run(args.limit))
    logger.success(
        "Coupon expiry sweep completed",
        candidates=summary.get("candidates", 0),
        expired=summary.get("expired", 0),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
