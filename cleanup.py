"""
Maintenance script -- deletes ALL booking-related data.

Removes fare adjustments, booking notes, booking audit logs, taxi
assignments, payments and bookings (in that order).  Users are kept.

    python cleanup.py --yes

A Redis lock stops two operators from purging at the same time.
"""

import argparse
import asyncio
import sys

from cabbooking.config import settings
from cabbooking.infrastructure.database import async_session_factory, engine
from cabbooking.infrastructure.locks import DistributedLock, LockNotAcquired
from cabbooking.infrastructure.redis_client import get_redis
from cabbooking.services.maintenance import purge_booking_data


async def cleanup() -> dict[str, int]:
    lock = DistributedLock(
        get_redis(), "booking_cleanup", ttl_seconds=settings.cleanup_lock_ttl_seconds
    )
    async with lock:
        async with async_session_factory() as session:
            async with session.begin():
                return await purge_booking_data(session)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Delete all booking data.")
    parser.add_argument("--yes", action="store_true", help="skip the confirmation")
    args = parser.parse_args()

    if not args.yes:
        answer = input("This deletes every booking, payment and audit row. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return 1

    print("Cleaning booking data...")
    try:
        counts = await cleanup()
    except LockNotAcquired:
        print("Another cleanup is already running.")
        return 2
    finally:
        await engine.dispose()

    for table, count in counts.items():
        print(f"  Deleted {count} {table.replace('_', ' ')}")
    print("\nCleanup complete!")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
