"""Registry of ZSBMS portal reports.

Each entry says how to request the report from the portal (id and form
parameters), where to save the download, and which parser imports it.
Adding a report means adding one ReportDefinition here; the exporter,
sync orchestrator and /sync/reports endpoint all read from REPORTS.
"""

from dataclasses import dataclass, field

from app.core.exceptions import NotFoundError
from app.features.parsers.schemas import FileFormat

# Filter rules shown to operators exporting reports by hand
COMMON_RULES: tuple[str, ...] = (
    "Agrupar por Data",
    "Agrupar por Loja",
    "Retirar LUPITA SEDE em Lojas",
)


@dataclass(frozen=True)
class ReportDefinition:
    """One exportable portal report.

    Attributes:
        key: Stable identifier used in sync details and the API.
        title: Human-readable name.
        portal_path: Menu path in the portal UI.
        portal_id: Numeric report id in ``/reports/{id}/print/``.
        export_file_name: Base name of the downloaded workbook.
        file_format: Parser that imports the download.
        form_params: Report-specific form fields, sent in order.
        periods: Portal period presets used for the export.
        extra_rules: Filter rules replacing COMMON_RULES, if any.
    """

    key: str
    title: str
    portal_path: str
    portal_id: str
    export_file_name: str
    file_format: FileFormat
    form_params: tuple[tuple[str, str], ...] = (("group_by_stores", "1"),)
    periods: tuple[str, ...] = ("Este Ano",)
    extra_rules: tuple[str, ...] = field(default_factory=tuple)

    @property
    def rules(self) -> tuple[str, ...]:
        """Filter rules to apply when exporting this report by hand."""
        return self.extra_rules or COMMON_RULES

    def file_name_for(self, date_from: str, date_to: str) -> str:
        """Name of the saved workbook for a period."""
        return f"{self.export_file_name}_{date_from}_{date_to}.xlsx"


REPORTS: tuple[ReportDefinition, ...] = (
    ReportDefinition(
        key="full_clearance",
        title="Vendas Completo",
        portal_path="Relatórios > Vendas > Apuramentos > Completo",
        portal_id="48",
        export_file_name="Vendas_Completo",
        file_format=FileFormat.DAILY,
    ),
    ReportDefinition(
        key="zones",
        title="Zonas (Canais de Venda)",
        portal_path="Relatórios > Vendas > Apuramentos > Zonas",
        portal_id="46",
        export_file_name="Zonas",
        file_format=FileFormat.ZONE,
    ),
    ReportDefinition(
        key="items",
        title="Artigos",
        portal_path="Relatórios > Vendas > Apuramentos > Artigos",
        portal_id="49",
        export_file_name="Artigos",
        file_format=FileFormat.ARTICLE,
        form_params=(("group_by_stores", "1"), ("extension_model", "ITEMS")),
    ),
    ReportDefinition(
        key="abc_analysis",
        title="Análise ABC",
        portal_path="Relatórios > Vendas > Rankings > Análise ABC Vendas",
        portal_id="9",
        export_file_name="ABC_Vendas",
        file_format=FileFormat.ABC,
        form_params=(("group_by_stores", "1"), ("extension_model", "ITEMS")),
    ),
    ReportDefinition(
        key="hourly_totals",
        title="Totais Apurados por Hora",
        portal_path="Relatórios > Vendas > Horárias > Totais Apurados",
        portal_id="70",
        export_file_name="Totais_Hora",
        file_format=FileFormat.HOURLY,
        form_params=(("group_by_stores_zones", "3"), ("options", "2")),
        extra_rules=(
            "Agrupar por Data",
            "Agrupar por Loja e Zona",
            "Retirar LUPITA SEDE em Lojas",
            "Período: 30 minutos",
        ),
    ),
)

REPORT_BY_KEY: dict[str, ReportDefinition] = {report.key: report for report in REPORTS}


def get_report(key: str) -> ReportDefinition:
    """Look up a report by key.

    Raises:
        NotFoundError: If no report has this key.
    """
    try:
        return REPORT_BY_KEY[key]
    except KeyError:
        raise NotFoundError(
            f"Unknown report key: {key}",
            details={"available": sorted(REPORT_BY_KEY)},
        ) from None
