"""Shared pytest fixtures for LupitaAnalytics tests.

Every test gets its own SQLite file under ``tmp_path``; workbooks are
generated with openpyxl in the layouts the ZSBMS portal exports.
"""

import datetime
import zipfile
from collections.abc import AsyncGenerator, Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import Database
from app.features.sync.service import SyncService
from app.main import create_app

DAILY_HEADER = [
    "Loja", "Data", "Dia", "Tickets", "Ticket Médio", "Pessoas", "Média Pessoa",
    "Qtd", "Qtd/Ticket", "%", "Total Líquido", "IVA", "Total Final", "Objetivo",
]  # fmt: skip
ZONE_HEADER = ["Loja", "Data", "Dia", "Zona", "Total Líquido", "Total Final"]
ZONE_HEADER_WIDE = [
    "Zona", "Loja", "Data", "Dia", "Tickets", "Pessoas", "Ticket Médio", "Média Pessoa",
    "Qtd", "%", "Total Líquido", "% Líquido", "IVA", "Total Final", "% Final",
]  # fmt: skip
ARTICLE_HEADER = [
    "Loja", "Cód. Artigo", "Artigo", "Cód. Barras", "Família", "Subfamília",
    "Qtd", "Total Líquido", "Total Final",
]  # fmt: skip
ABC_HEADER = [
    "Loja", "Data", "Cód. Artigo", "Artigo", "Qtd", "% Qtd", "Valor Líquido",
    "Valor Final", "% Valor", "Valor Acumulado", "% Acumulado", "Ranking", "ABC",
]  # fmt: skip
HOURLY_HEADER = [
    "Loja", "Zona", "Data", "Hora", "Tickets", "Pessoas", "Ticket Médio",
    "Média Pessoa", "Total Líquido", "Total Final",
]  # fmt: skip

WriteWorkbook = Callable[[str, Sequence[Sequence[Any]]], Path]


def title_rows(
    title: str, period: str = "01-03-2025 a 31-03-2025", count: int = 6
) -> list[list[Any]]:
    """Report title block: name, period line, then filter lines."""
    rows: list[list[Any]] = [[title], ["Período", period]]
    rows.extend([[f"Filtro {i}"] for i in range(count - len(rows))])
    return rows


def _daily_row(
    store: str,
    day: datetime.date,
    tickets: int,
    gross: float,
    customers: int | None = None,
    target: float = 0.0,
) -> list[Any]:
    customers = tickets if customers is None else customers
    net = round(gross / 1.13, 2)
    return [
        store, day, day.strftime("%a"), tickets, gross / tickets if tickets else 0,
        customers, gross / customers if customers else 0, tickets * 2, 2, None,
        net, round(gross - net, 2), gross, target,
    ]  # fmt: skip


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite store with every table created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'lupita-test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Session on the test store."""
    async with database.session() as session:
        yield session


@pytest.fixture
def portal_settings() -> Settings:
    """Settings with portal credentials and no pacing delay."""
    return Settings(
        _env_file=None,
        zsbms_base_url="https://portal.test",
        zsbms_username="gerente",
        zsbms_password="segredo",
        zsbms_request_delay_seconds=0,
    )


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def api_app(database: Database, portal_settings: Settings) -> FastAPI:
    """Application wired to the test store (lifespan state set by hand)."""
    application = create_app()
    application.state.database = database
    application.state.sync_service = SyncService(database, settings=portal_settings)
    return application


@pytest.fixture
async def client(api_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=api_app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Workbooks
# =============================================================================


@pytest.fixture
def write_workbook(tmp_path: Path) -> WriteWorkbook:
    """Factory writing rows to ``tmp_path/<name>`` as a one-sheet workbook."""

    def _write(name: str, rows: Sequence[Sequence[Any]]) -> Path:
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(list(row))
        path = tmp_path / name
        workbook.save(path)
        return path

    return _write


@pytest.fixture
def corrupt_workbook(write_workbook: WriteWorkbook) -> Callable[..., Path]:
    """Factory for a valid .xlsx archive whose ``part`` holds broken XML."""

    def _write(name: str = "corrupt.xlsx", part: str = "xl/workbook.xml") -> Path:
        source = write_workbook(f"source-{name}", [["Loja", "Data"], ["a", "b"]])
        path = source.with_name(name)
        with zipfile.ZipFile(source) as src, zipfile.ZipFile(path, "w") as dst:
            for item in src.infolist():
                data = b"<not xml" if item.filename == part else src.read(item.filename)
                dst.writestr(item, data)
        return path

    return _write


@pytest.fixture
def daily_workbook(write_workbook: WriteWorkbook) -> Callable[..., Path]:
    """Daily clearance report with header on row 7 and a grand-total footer."""

    def _build(rows: Sequence[Sequence[Any]], name: str = "Vendas_Completo.xlsx") -> Path:
        return write_workbook(
            name,
            [
                *title_rows("Vendas - Apuramentos - Completo"),
                DAILY_HEADER,
                *rows,
                ["Total Global"],
            ],
        )

    return _build


@pytest.fixture
def zone_workbook(write_workbook: WriteWorkbook) -> Callable[..., Path]:
    """Zone report; ``wide=True`` gives the reordered 15-column layout."""

    def _build(
        rows: Sequence[Sequence[Any]],
        name: str = "Zonas.xlsx",
        wide: bool = False,
    ) -> Path:
        header = ZONE_HEADER_WIDE if wide else ZONE_HEADER
        return write_workbook(
            name,
            [*title_rows("Vendas - Apuramentos - Zonas"), header, *rows, ["Total Global"]],
        )

    return _build


@pytest.fixture
def article_workbook(write_workbook: WriteWorkbook) -> Callable[..., Path]:
    """Article report: period in the title, header on row 6."""

    def _build(
        rows: Sequence[Sequence[Any]],
        name: str = "Artigos.xlsx",
        period: str = "01-03-2025 a 31-03-2025",
        header: Sequence[str] = ARTICLE_HEADER,
    ) -> Path:
        return write_workbook(
            name,
            [
                *title_rows("Vendas - Apuramentos - Artigos", period, count=5),
                list(header),
                *rows,
                ["Total Global"],
            ],
        )

    return _build


@pytest.fixture
def abc_workbook(write_workbook: WriteWorkbook) -> Callable[..., Path]:
    """Daily ABC analysis with the title marker on row 1."""

    def _build(rows: Sequence[Sequence[Any]], name: str = "ABC_Vendas.xlsx") -> Path:
        return write_workbook(
            name,
            [*title_rows("Análise ABC Vendas"), ABC_HEADER, *rows, ["Total Global"]],
        )

    return _build


@pytest.fixture
def hourly_workbook(write_workbook: WriteWorkbook) -> Callable[..., Path]:
    """Totals-per-hour report grouped by store and zone."""

    def _build(rows: Sequence[Sequence[Any]], name: str = "Totais_Hora.xlsx") -> Path:
        return write_workbook(
            name,
            [*title_rows("Totais Apurados por Hora"), HOURLY_HEADER, *rows, ["Total Global"]],
        )

    return _build


@pytest.fixture
def daily_row() -> Callable[..., list[Any]]:
    """Builder for one daily clearance line (store, day, tickets, gross, ...)."""
    return _daily_row
