#!/usr/bin/env python3
"""
Queue provisioning for successful payments that have no subscription yet.
Usage:
    python scripts/retry_provisioning.py            # queue every stuck session
    python scripts/retry_provisioning.py --dry-run  # only list them
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.database import AsyncSessionLocal, engine
from app.services.payment_session_service import list_unprovisioned
from app.workers.tasks_provisioning import provision_payment_session


async def retry_provisioning(dry_run: bool) -> int:
    async with AsyncSessionLocal() as db:
        records = await list_unprovisioned(db, limit=500)
        for record in records:
            print(
                f"{record.session_id}  user={record.user_id}  plan={record.plan_name}  "
                f"state={record.provisioning_state}  attempts={record.provisioning_attempts}  "
                f"error={record.last_error or '-'}"
            )
            if not dry_run:
                provision_payment_session.delay(record.session_id)
        return len(records)


async def _main():
    dry_run = "--dry-run" in sys.argv[1:]
    try:
        count = await retry_provisioning(dry_run)
        action = "Found" if dry_run else "Queued"
        print(f"✓ {action} {count} session(s)")
    finally:
        await engine.dispose()


def main():
    asyncio.run(_main())


if __name__ == "__main__":
    main()
