"""HTTP client for the ZSBMS PRO reporting portal.

The portal is a Django application with session authentication:

1. GET /user/login/ hands out a ``csrftoken`` cookie.
2. POST /user/login/ with the token and credentials returns ``sessionid``.
3. POST /reports/{id}/print/ with ``export_type=xls`` returns the workbook.

Column visibility in the portal UI is client-side only; the export always
contains every column, so no column parameters are sent.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from types import TracebackType
from typing import Self
from urllib.parse import urlencode

import httpx

from app.core.config import Settings, get_settings
from app.core.exceptions import LupitaError, PortalAuthenticationError, ReportExportError
from app.core.logging import get_logger
from app.features.exporter.reports import REPORTS, ReportDefinition
from app.features.exporter.schemas import ExportResult

logger = get_logger(__name__)

LOGIN_PATH = "/user/login/"
SPREADSHEET_CONTENT_MARKERS = ("spreadsheet", "excel")
BODY_PREVIEW_CHARS = 200


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class PortalCredentials:
    """Portal login."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class PortalSession:
    """Authenticated portal session cookies."""

    session_id: str = field(repr=False)
    csrf_token: str = field(repr=False)

    @property
    def cookie_header(self) -> str:
        return f"sessionid={self.session_id}; csrftoken={self.csrf_token}"


@dataclass(frozen=True)
class ExportPeriod:
    """Inclusive date range requested from the portal."""

    date_from: date
    date_to: date

    def __post_init__(self) -> None:
        if self.date_from > self.date_to:
            raise ValueError(
                f"date_from ({self.date_from}) must not be after date_to ({self.date_to})"
            )

    @classmethod
    def year_to_date(cls, today: date | None = None) -> "ExportPeriod":
        """January 1st of the current year through today."""
        today = today or date.today()
        return cls(date_from=date(today.year, 1, 1), date_to=today)

    @property
    def date_range(self) -> str:
        """Period in the portal's date-range picker format."""
        return f"{self.date_from.isoformat()}   -   {self.date_to.isoformat()}"


# =============================================================================
# Client
# =============================================================================


class ZsbmsClient:
    """Session-authenticated exporter for ZSBMS PRO reports.

    Downloads are strictly sequential with a pacing delay between
    reports. Cookies are sent as explicit headers on every request so
    the session in use is always the one returned by login().
    """

    def __init__(
        self,
        base_url: str,
        *,
        store_ids: list[str] | tuple[str, ...] = ("35", "2"),
        request_delay: float = 1.0,
        timeout: float = 120.0,
        user_agent: str = "LupitaDashboard/1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Portal root URL without trailing slash.
            store_ids: Portal store ids included in every export.
            request_delay: Seconds to wait between report downloads.
            timeout: Read timeout for a single request in seconds.
            user_agent: User-Agent header sent to the portal.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.store_ids = list(store_ids)
        self.request_delay = request_delay
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ZsbmsClient":
        """Build a client from application settings."""
        settings = settings or get_settings()
        return cls(
            settings.zsbms_base_url,
            store_ids=settings.zsbms_store_ids,
            request_delay=settings.zsbms_request_delay_seconds,
            timeout=settings.zsbms_timeout_seconds,
            user_agent=settings.zsbms_user_agent,
            transport=transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self, credentials: PortalCredentials) -> PortalSession:
        """Authenticate and return the session cookies.

        Args:
            credentials: Portal username and password.

        Returns:
            Session with ``sessionid`` and the (possibly rotated) CSRF token.

        Raises:
            PortalAuthenticationError: If the portal is unreachable, hands
                out no CSRF token, or does not open a session.
        """
        client = self._get_client()
        login_url = f"{self.base_url}{LOGIN_PATH}"
        logger.info("exporter.login_started", base_url=self.base_url)

        try:
            page = await client.get(LOGIN_PATH, follow_redirects=False)
            csrf_token = page.cookies.get("csrftoken")
            if not csrf_token:
                raise PortalAuthenticationError("Failed to obtain CSRF token from login page")

            response = await client.post(
                LOGIN_PATH,
                data={
                    "csrfmiddlewaretoken": csrf_token,
                    "username": credentials.username,
                    "password": credentials.password,
                    "next": "/",
                },
                headers={"Cookie": f"csrftoken={csrf_token}", "Referer": login_url},
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            logger.error(
                "exporter.login_failed",
                error=str(e),
                error_type=type(e).__name__,
                base_url=self.base_url,
            )
            raise PortalAuthenticationError(
                f"Cannot reach portal at {self.base_url}: {e}"
            ) from e

        session_id = response.cookies.get("sessionid")
        if not session_id:
            logger.error("exporter.login_failed", status_code=response.status_code)
            raise PortalAuthenticationError(
                "Login failed: no sessionid cookie received. Check credentials.",
                details={"status_code": response.status_code},
            )

        logger.info("exporter.login_succeeded")
        return PortalSession(
            session_id=session_id,
            csrf_token=response.cookies.get("csrftoken") or csrf_token,
        )

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def build_form_data(
        self, session: PortalSession, report: ReportDefinition, period: ExportPeriod
    ) -> list[tuple[str, str]]:
        """Form fields for a report export, in the order the portal posts them.

        Stores are repeated once per id.
        """
        fields: list[tuple[str, str]] = [
            ("csrfmiddlewaretoken", session.csrf_token),
            ("date_range", period.date_range),
            ("group_by_dates", "1"),
            ("store_type", ""),
        ]
        fields.extend(("stores", store_id) for store_id in self.store_ids)
        fields.extend(report.form_params)
        fields.append(("export_type", "xls"))
        fields.append(("extra_info", ""))
        return fields

    async def export_report(
        self, session: PortalSession, report: ReportDefinition, period: ExportPeriod
    ) -> bytes:
        """Download one report as XLSX bytes.

        Raises:
            ReportExportError: On transport errors, non-2xx responses, or
                a body that is not a spreadsheet (e.g. an HTML error page).
        """
        client = self._get_client()
        path = f"/reports/{report.portal_id}/print/"

        try:
            response = await client.post(
                path,
                content=urlencode(self.build_form_data(session, report, period)),
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Cookie": session.cookie_header,
                    "Referer": f"{self.base_url}/reports/{report.portal_id}/",
                },
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            raise ReportExportError(
                f"Export failed for {report.title}: {e}",
                details={"report_key": report.key, "error_type": type(e).__name__},
            ) from e

        if not response.is_success:
            raise ReportExportError(
                f"Export failed for {report.title}: HTTP {response.status_code}",
                details={"report_key": report.key, "status_code": response.status_code},
            )

        content_type = response.headers.get("content-type", "")
        if not any(marker in content_type for marker in SPREADSHEET_CONTENT_MARKERS):
            raise ReportExportError(
                f"Unexpected response type for {report.title}: {content_type}. "
                f"Body: {response.text[:BODY_PREVIEW_CHARS]}",
                details={"report_key": report.key, "content_type": content_type},
            )

        return response.content

    async def export_all(
        self,
        credentials: PortalCredentials,
        period: ExportPeriod,
        output_dir: Path,
        reports: tuple[ReportDefinition, ...] = REPORTS,
    ) -> list[ExportResult]:
        """Log in once and download every report into ``output_dir``.

        A login failure is fatal and propagates. A failed download is
        recorded in its ExportResult and the remaining reports still run.

        Args:
            credentials: Portal login.
            period: Date range for every report.
            output_dir: Directory for the workbooks (created if missing).
            reports: Reports to download, in order.

        Returns:
            One result per report, in input order.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        session = await self.login(credentials)
        date_from = period.date_from.isoformat()
        date_to = period.date_to.isoformat()

        results: list[ExportResult] = []
        for index, report in enumerate(reports):
            if index > 0 and self.request_delay > 0:
                await asyncio.sleep(self.request_delay)

            file_path = output_dir / report.file_name_for(date_from, date_to)
            logger.info(
                "exporter.report_started",
                report_key=report.key,
                portal_id=report.portal_id,
            )
            try:
                body = await self.export_report(session, report, period)
                file_path.write_bytes(body)
            except (LupitaError, OSError) as e:
                logger.warning(
                    "exporter.report_failed",
                    report_key=report.key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                results.append(
                    ExportResult(
                        report_key=report.key,
                        report_name=report.export_file_name,
                        file_path=str(file_path),
                        size=0,
                        success=False,
                        error=e.message if isinstance(e, LupitaError) else str(e),
                    )
                )
                continue

            logger.info(
                "exporter.report_downloaded",
                report_key=report.key,
                size_bytes=len(body),
            )
            results.append(
                ExportResult(
                    report_key=report.key,
                    report_name=report.export_file_name,
                    file_path=str(file_path),
                    size=len(body),
                    success=True,
                )
            )

        logger.info(
            "exporter.export_completed",
            succeeded=sum(1 for r in results if r.success),
            total=len(results),
        )
        return results
