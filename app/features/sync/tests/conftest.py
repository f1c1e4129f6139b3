"""Test fixtures for sync orchestration."""

import asyncio
from datetime import date
from pathlib import Path

import httpx
import pytest

from app.features.exporter.client import ExportPeriod, PortalCredentials, ZsbmsClient
from app.features.exporter.reports import REPORTS, ReportDefinition
from app.features.exporter.schemas import ExportResult
from app.features.ingest.schemas import ImportResult
from app.features.parsers.schemas import FileFormat

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def portal_handler(html_report_ids: set[str] = frozenset()) -> httpx.MockTransport:
    """Portal that logs in and serves a dummy workbook per report.

    Reports in ``html_report_ids`` answer with an HTML page instead.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/user/login/" and request.method == "GET":
            return httpx.Response(200, headers={"set-cookie": "csrftoken=tok; Path=/"})
        if path == "/user/login/":
            return httpx.Response(302, headers={"set-cookie": "sessionid=sid; Path=/"})
        report_id = path.split("/")[2]
        if report_id in html_report_ids:
            return httpx.Response(200, headers={"content-type": "text/html"}, text="<html/>")
        return httpx.Response(200, headers={"content-type": XLSX_CONTENT_TYPE}, content=b"PK")

    return httpx.MockTransport(handler)


class StubImportService:
    """Records imported files and returns canned counts per format."""

    def __init__(self, failing_formats: set[FileFormat] = frozenset()) -> None:
        self.failing_formats = failing_formats
        self.imported: list[tuple[Path, FileFormat]] = []

    async def import_file(self, db, file_path: Path, file_format=None, filename=None):
        self.imported.append((file_path, file_format))
        if file_format in self.failing_formats:
            raise ValueError(f"cannot parse {file_path.name}")
        return ImportResult(
            filename=file_path.name,
            file_format=file_format,
            records_inserted=10,
            records_updated=2,
            errors=["Row 9: invalid date \"x\""] if file_format is FileFormat.DAILY else [],
        )


class BlockingClient:
    """Portal client whose export waits until ``release`` is set."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __aenter__(self) -> "BlockingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def export_all(
        self,
        credentials: PortalCredentials,
        period: ExportPeriod,
        output_dir: Path,
        reports: tuple[ReportDefinition, ...] = REPORTS,
    ) -> list[ExportResult]:
        self.started.set()
        await self.release.wait()
        return []


@pytest.fixture
def stub_importer() -> StubImportService:
    return StubImportService()


@pytest.fixture
def make_portal_client(portal_settings):
    """Factory for real clients backed by a mock portal."""

    def _make(html_report_ids: set[str] = frozenset()):
        return lambda: ZsbmsClient.from_settings(
            portal_settings, transport=portal_handler(html_report_ids)
        )

    return _make


@pytest.fixture
def fixed_today():
    return lambda: date(2025, 3, 15)


@pytest.fixture
def blocking_client() -> BlockingClient:
    return BlockingClient()
