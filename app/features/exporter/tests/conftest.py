"""Test fixtures for the portal exporter."""

from collections.abc import Callable
from datetime import date

import httpx
import pytest

from app.features.exporter.client import ExportPeriod, PortalCredentials, ZsbmsClient

BASE_URL = "https://portal.test"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FakePortal:
    """Scriptable stand-in for the ZSBMS portal.

    Records every request; ``export_overrides`` maps a report id to a
    response factory for simulating failures.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.issue_csrf = True
        self.accept_login = True
        self.rotated_csrf: str | None = "csrf-after-login"
        self.export_overrides: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/user/login/" and request.method == "GET":
            headers = [("set-cookie", "csrftoken=csrf-initial; Path=/")] if self.issue_csrf else []
            return httpx.Response(200, headers=headers, text="<form></form>")

        if path == "/user/login/" and request.method == "POST":
            if not self.accept_login:
                return httpx.Response(200, text="<form>invalid</form>")
            headers = [("set-cookie", "sessionid=session-123; Path=/; HttpOnly")]
            if self.rotated_csrf:
                headers.append(("set-cookie", f"csrftoken={self.rotated_csrf}; Path=/"))
            headers.append(("location", "/"))
            return httpx.Response(302, headers=headers)

        if path.startswith("/reports/") and path.endswith("/print/"):
            report_id = path.split("/")[2]
            override = self.export_overrides.get(report_id)
            if override is not None:
                return override(request)
            return httpx.Response(
                200,
                headers={"content-type": XLSX_CONTENT_TYPE},
                content=f"xlsx-{report_id}".encode(),
            )

        return httpx.Response(404)

    def export_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/reports/")]


@pytest.fixture
def portal() -> FakePortal:
    """Fake portal with default happy-path behaviour."""
    return FakePortal()


@pytest.fixture
def portal_client(portal: FakePortal) -> ZsbmsClient:
    """Client talking to the fake portal with no pacing delay."""
    return ZsbmsClient(
        BASE_URL,
        store_ids=["35", "2"],
        request_delay=0,
        transport=httpx.MockTransport(portal.handler),
    )


@pytest.fixture
def credentials() -> PortalCredentials:
    return PortalCredentials(username="gerente", password="segredo")


@pytest.fixture
def period() -> ExportPeriod:
    return ExportPeriod(date_from=date(2025, 1, 1), date_to=date(2025, 3, 15))
