#!/usr/bin/env python
"""Import every workbook waiting in the inbox directory.

Imported files move to ``processed/<YYYY-MM>/``, unreadable ones to
``errors/`` (both next to the inbox).

Usage:
    uv run python scripts/import_inbox.py
    uv run python scripts/import_inbox.py --inbox ./data/inbox
"""

import argparse
import asyncio
import sys
from pathlib import Path

from app.core.config import get_settings
from app.core.database import Database
from app.core.logging import configure_logging
from app.features.ingest.inbox import import_inbox


async def run(inbox_dir: Path) -> int:
    """Import the inbox and print a per-file summary."""
    database = Database.from_settings()
    await database.create_all()

    try:
        report = await import_inbox(database, inbox_dir)
    finally:
        await database.dispose()

    if not report.imported and not report.failed:
        print(f"No files found in {inbox_dir}.")
        return 0

    for result in report.imported:
        print(f"[OK] {result.filename} ({result.file_format.value})")
        print(f"     Inserted: {result.records_inserted}, Updated: {result.records_updated}")
        if result.date_from and result.date_to:
            print(f"     Period: {result.date_from} to {result.date_to}")
        for error in result.errors:
            print(f"     - {error}")
    for filename, error in report.failed.items():
        print(f"[FAIL] {filename}: {error}")

    print()
    print(
        f"Summary: {report.total_inserted} inserted, {report.total_updated} updated, "
        f"{len(report.failed)} errors"
    )
    return 1 if report.failed else 0


def main():
    parser = argparse.ArgumentParser(description="Import ZSBMS workbooks from the inbox")
    parser.add_argument(
        "--inbox",
        type=Path,
        default=None,
        help="Inbox directory (default: INGEST_INBOX_DIR)",
    )
    args = parser.parse_args()

    configure_logging()
    inbox_dir = args.inbox or Path(get_settings().ingest_inbox_dir)
    sys.exit(asyncio.run(run(inbox_dir)))


if __name__ == "__main__":
    main()
