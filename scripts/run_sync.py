#!/usr/bin/env python
"""Run one ZSBMS sync and wait for it to finish.

Meant for an external scheduler (cron, launchd, systemd timers).

Usage:
    uv run python scripts/run_sync.py
    uv run python scripts/run_sync.py --trigger manual

Cron example (every day at 06:00):
    0 6 * * * cd /srv/lupita && uv run python scripts/run_sync.py >> /var/log/lupita-sync.log 2>&1

Exit codes:
    0  all reports imported
    1  run finished partial or failed
    2  sync could not start (missing credentials, another run in progress)
"""

import argparse
import asyncio
import sys

from app.core.database import Database
from app.core.exceptions import SyncAlreadyRunningError, SyncConfigurationError
from app.core.logging import configure_logging, get_logger
from app.features.data_platform.models import SyncStatus, SyncTrigger
from app.features.sync.service import SyncService

logger = get_logger(__name__)


async def run(trigger: SyncTrigger) -> int:
    """Create the schema if needed, run the sync and print its summary."""
    database = Database.from_settings()
    await database.create_all()
    service = SyncService(database)

    try:
        sync_run = await service.run_sync(trigger)
    except (SyncConfigurationError, SyncAlreadyRunningError) as e:
        print(f"[FAIL] {e.message}")
        return 2
    finally:
        await service.shutdown()
        await database.dispose()

    print(f"Sync #{sync_run.id}: {sync_run.status}")
    print(f"  Reports: {sync_run.reports_succeeded} ok, {sync_run.reports_failed} failed")
    print(f"  Rows: {sync_run.total_inserted} inserted, {sync_run.total_updated} updated")
    for detail in sync_run.details or []:
        line = f"  - {detail.get('report')}: {detail.get('status')}"
        if detail.get("error"):
            line += f" ({detail['error']})"
        print(line)
    if sync_run.error_message:
        print(f"  Error: {sync_run.error_message}")

    return 0 if sync_run.status == SyncStatus.SUCCESS.value else 1


def main():
    parser = argparse.ArgumentParser(description="Download and import the ZSBMS reports")
    parser.add_argument(
        "--trigger",
        choices=[t.value for t in SyncTrigger],
        default=SyncTrigger.CRON.value,
        help="Trigger recorded in sync_run (default: cron)",
    )
    args = parser.parse_args()

    configure_logging()
    logger.info("sync.cli_started", trigger=args.trigger)
    sys.exit(asyncio.run(run(SyncTrigger(args.trigger))))


if __name__ == "__main__":
    main()
