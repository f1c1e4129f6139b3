"""Batch import of workbooks dropped into an inbox directory.

Imported files are archived under ``processed/<YYYY-MM>/``, files that
cannot be imported under ``errors/``; both get a timestamp prefix so a
re-exported report never overwrites an earlier one.
"""

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from app.core.database import Database
from app.core.exceptions import BadRequestError, SpreadsheetReadError
from app.core.logging import get_logger
from app.features.ingest.schemas import ImportResult
from app.features.ingest.service import ImportService
from app.features.parsers.detector import SPREADSHEET_SUFFIXES

logger = get_logger(__name__)

# Office lock files and hidden files are never reports
IGNORED_PREFIXES = ("~$", ".")


@dataclass
class InboxReport:
    """Outcome of one inbox pass."""

    imported: list[ImportResult] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total_inserted(self) -> int:
        return sum(r.records_inserted for r in self.imported)

    @property
    def total_updated(self) -> int:
        return sum(r.records_updated for r in self.imported)


def archive_name(filename: str, now: datetime) -> str:
    """Timestamped archive name: "2025-03-10T06-00-00_Zonas.xlsx"."""
    return f"{now:%Y-%m-%dT%H-%M-%S}_{filename}"


def pending_files(inbox_dir: Path) -> list[Path]:
    """Spreadsheets waiting in ``inbox_dir``, by name."""
    return sorted(
        path
        for path in inbox_dir.iterdir()
        if path.is_file()
        and path.suffix.lower() in SPREADSHEET_SUFFIXES
        and not path.name.startswith(IGNORED_PREFIXES)
    )


def _move(path: Path, target_dir: Path, now: datetime) -> Path:
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / archive_name(path.name, now)
    shutil.move(path, target)
    return target


async def import_inbox(
    database: Database,
    inbox_dir: Path,
    processed_dir: Path | None = None,
    errors_dir: Path | None = None,
    service: ImportService | None = None,
    now: Callable[[], datetime] = datetime.now,
) -> InboxReport:
    """Import every spreadsheet in ``inbox_dir`` and archive it.

    Each file is imported in its own session. Row-level problems do not
    stop a file from being archived as processed; they stay in its
    import_log row.

    Args:
        database: Store handle.
        inbox_dir: Directory scanned for workbooks (created if missing).
        processed_dir: Archive root for imported files (default: sibling "processed").
        errors_dir: Destination of unreadable files (default: sibling "errors").
        service: Importer to use.
        now: Clock used for archive names and the monthly subdirectory.

    Returns:
        Import results and failures by file name.
    """
    inbox_dir.mkdir(parents=True, exist_ok=True)
    processed_dir = processed_dir or inbox_dir.parent / "processed"
    errors_dir = errors_dir or inbox_dir.parent / "errors"
    service = service or ImportService()
    report = InboxReport()

    files = pending_files(inbox_dir)
    logger.info("ingest.inbox_scanned", inbox=str(inbox_dir), file_count=len(files))

    for path in files:
        started = now()
        async with database.session() as session:
            try:
                result = await service.import_file(session, path)
            except (SpreadsheetReadError, BadRequestError) as e:
                await session.rollback()
                target = _move(path, errors_dir, started)
                report.failed[path.name] = e.message
                logger.warning(
                    "ingest.inbox_file_failed",
                    filename=path.name,
                    error=e.message,
                    moved_to=str(target),
                )
                continue

        target = _move(path, processed_dir / f"{started:%Y-%m}", started)
        report.imported.append(result)
        logger.info(
            "ingest.inbox_file_archived",
            filename=path.name,
            inserted=result.records_inserted,
            updated=result.records_updated,
            errors=len(result.errors),
            moved_to=str(target),
        )

    return report
