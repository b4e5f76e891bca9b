"""Operator tool: fail and refund interrupted generations, then settle refunds that never landed."""

import argparse
import asyncio
import os
import sys

# Add parent dir to path to find app modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings
from database import engine
from services.generation_queue import recover_stalled_generations, settle_unrefunded_generations


async def reconcile(max_age_minutes: int) -> None:
    print(f"🔍 Looking for generations in progress for more than {max_age_minutes} minutes...")
    recovered = await recover_stalled_generations(max_age_minutes)
    print(f"♻️ Refunded {recovered} stalled generations.")
    settled = await settle_unrefunded_generations()
    print(f"💳 Settled {settled} refunds left unpaid by failed generations.")
    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--max-age-minutes",
        type=int,
        default=settings.STALLED_GENERATION_MAX_AGE_MINUTES,
    )
    args = parser.parse_args()
    if args.max_age_minutes * 60 <= settings.GENERATION_JOB_TIMEOUT_SECONDS:
        parser.error(
            f"--max-age-minutes must exceed the job timeout ({settings.GENERATION_JOB_TIMEOUT_SECONDS}s)"
        )
    asyncio.run(reconcile(args.max_age_minutes))


if __name__ == "__main__":
    main()
