#!/usr/bin/env python
"""Check database connectivity and schema.

Usage:
    uv run python scripts/check_db.py
    uv run python scripts/check_db.py --create
"""

import argparse
import asyncio
import sys

from sqlalchemy import inspect, text

from app.core.config import get_settings
from app.core.database import Base, Database

EXPECTED_TABLES = (
    "daily_sales",
    "zone_sales",
    "article_sales",
    "abc_daily",
    "hourly_sales",
    "import_log",
    "sync_run",
)


def _table_names(sync_conn) -> list[str]:
    return inspect(sync_conn).get_table_names()


async def check_database(create: bool) -> int:
    """Verify the store is reachable and every table exists."""
    settings = get_settings()
    database = Database.from_settings()

    print("LupitaAnalytics - Database Check")
    print("=" * 45)
    print(f"Database URL: {settings.database_url}")
    print()

    try:
        if create:
            await database.create_all()
            print(f"[OK] Created missing tables ({len(Base.metadata.tables)} registered)")

        async with database.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1
            print("[OK] Basic connectivity")

            if database.is_sqlite:
                result = await conn.execute(text("SELECT sqlite_version()"))
                print(f"[OK] SQLite version: {result.scalar()}")
                result = await conn.execute(text("PRAGMA journal_mode"))
                print(f"[OK] Journal mode: {result.scalar()}")

            tables = set(await conn.run_sync(_table_names))

        missing = [name for name in EXPECTED_TABLES if name not in tables]
        if missing:
            print(f"[WARN] Missing tables: {', '.join(missing)}")
            print("       Run: uv run python scripts/check_db.py --create")
        else:
            print(f"[OK] All {len(EXPECTED_TABLES)} tables present")

        print()
        print("Database check completed successfully!")
        return 0

    except Exception as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Check DATABASE_URL in .env file")
        print("  2. Make sure the data directory is writable")
        return 1

    finally:
        await database.dispose()


def main():
    parser = argparse.ArgumentParser(description="Check the LupitaAnalytics database")
    parser.add_argument("--create", action="store_true", help="Create missing tables first")
    args = parser.parse_args()
    sys.exit(asyncio.run(check_database(args.create)))


if __name__ == "__main__":
    main()
