"""Excel export of reviewed RFP items.

Items are flattened into one row per RFP line with the selected inventory
match (if any), a percentage similarity and a status label.
"""

from __future__ import annotations

from dataclasses import astuple, dataclass
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Any
from uuid import UUID

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.admin.settings import get_export_columns
from cardiva.models import ExportColumn, ReviewStatus
from cardiva.review.models import ReviewItem
from cardiva.review.repository import fetch_job_items

SHEET_NAME = "Resultados RFP"
MAX_COLUMN_WIDTH = 50
DEFAULT_FILENAME_PREFIX = "RFP_Resultados"

STATUS_SELECTED = "Selecionado"
STATUS_NO_MATCH = "Sem correspondência"
STATUS_PENDING = "Pendente"

HEADER_FONT = Font(bold=True)

# Cell formats per configured column type; text cells keep the default
NUMBER_FORMATS = {
    "number": "#,##0.###",
    "currency": '#,##0.00 "€"',
    "date": "dd/mm/yyyy",
}


@dataclass(slots=True)
class ExportRow:
    lote: int | None
    posicao: int | None
    artigo_pedido: str
    descricao_pedido: str
    quantidade: Decimal | None
    codigo_spms: str
    artigo_match: str
    descricao_match: str
    preco_unit: Decimal | None
    similaridade: str
    tipo_match: str
    status: str


DEFAULT_HEADERS = [
    "Lote",
    "Posição",
    "Artigo Pedido",
    "Descrição Pedido",
    "Quantidade",
    "Cód. SPMS",
    "Artigo Match",
    "Descrição Match",
    "Preço Unit.",
    "Similaridade",
    "Tipo",
    "Status",
]
DEFAULT_COLUMN_TYPES = [
    "number",
    "number",
    "text",
    "text",
    "number",
    "text",
    "text",
    "text",
    "currency",
    "text",
    "text",
    "text",
]


@dataclass(slots=True)
class ExportSummary:
    total_items: int = 0
    confirmed_count: int = 0
    rejected_count: int = 0
    manual_count: int = 0
    no_match_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalItems": self.total_items,
            "confirmedCount": self.confirmed_count,
            "rejectedCount": self.rejected_count,
            "manualCount": self.manual_count,
            "noMatchCount": self.no_match_count,
        }


def format_similarity(score: float | None) -> str:
    if score is None:
        return "-"
    return f"{round(score * 100)}%"


def status_label(item: ReviewItem) -> str:
    if item.review_status in (ReviewStatus.ACCEPTED.value, ReviewStatus.MANUAL.value):
        return STATUS_SELECTED
    if item.review_status == ReviewStatus.REJECTED.value:
        return STATUS_NO_MATCH
    return STATUS_PENDING if item.suggestions else STATUS_NO_MATCH


def _is_selected(item: ReviewItem) -> bool:
    return item.review_status in (ReviewStatus.ACCEPTED.value, ReviewStatus.MANUAL.value)


def transform_to_export_rows(
    items: list[ReviewItem], confirmed_only: bool = False
) -> list[ExportRow]:
    """Flatten items into export rows.

    Args:
        items: Items with their suggestions
        confirmed_only: Keep only accepted/manual items
    """
    rows = []
    for item in items:
        if confirmed_only and not _is_selected(item):
            continue

        match = item.selected_match if _is_selected(item) else None
        rows.append(
            ExportRow(
                lote=item.lote_pedido,
                posicao=item.posicao_pedido,
                artigo_pedido=item.artigo_pedido or "",
                descricao_pedido=item.descricao_pedido or "",
                quantidade=item.quantidade_pedido,
                codigo_spms=(match.codigo_spms or "") if match else "",
                artigo_match=(match.artigo or "") if match else "",
                descricao_match=(match.descricao or "") if match else "",
                preco_unit=match.preco if match else None,
                similaridade=format_similarity(match.similarity_score if match else None),
                tipo_match=(match.match_type or "") if match else "",
                status=status_label(item),
            )
        )
    return rows


def calculate_export_summary(items: list[ReviewItem]) -> ExportSummary:
    summary = ExportSummary(total_items=len(items))
    for item in items:
        if item.review_status == ReviewStatus.ACCEPTED.value:
            summary.confirmed_count += 1
        elif item.review_status == ReviewStatus.REJECTED.value:
            summary.rejected_count += 1
        elif item.review_status == ReviewStatus.MANUAL.value:
            summary.manual_count += 1
        elif not item.suggestions:
            summary.no_match_count += 1
    return summary


def _configured_rows(
    items: list[ReviewItem], columns: list[ExportColumn], confirmed_only: bool
) -> tuple[list[str], list[list[Any]]]:
    headers = [column.display_name for column in columns] + ["Status"]
    rows = []
    for item in items:
        if confirmed_only and not _is_selected(item):
            continue
        match = item.selected_match if _is_selected(item) else None
        values: list[Any] = []
        for column in columns:
            if column.source_table == "rfp_items":
                value = getattr(item, column.column_name, None)
            elif match is not None:
                value = getattr(match, column.column_name, None)
            else:
                value = None
            if column.column_name == "similarity_score":
                value = format_similarity(value)
            elif isinstance(value, UUID):
                value = str(value)
            values.append("" if value is None else value)
        values.append(status_label(item))
        rows.append(values)
    return headers, rows


def generate_excel(
    items: list[ReviewItem],
    confirmed_only: bool = False,
    columns: list[ExportColumn] | None = None,
) -> bytes:
    """Build the export workbook.

    Args:
        items: Items with their suggestions
        confirmed_only: Keep only accepted/manual items
        columns: Administrator column configuration; defaults when empty

    Returns:
        bytes: ``.xlsx`` file content
    """
    if columns:
        headers, rows = _configured_rows(items, columns, confirmed_only)
        column_types = [column.column_type for column in columns] + ["text"]
    else:
        headers = DEFAULT_HEADERS
        column_types = DEFAULT_COLUMN_TYPES
        rows = [list(astuple(row)) for row in transform_to_export_rows(items, confirmed_only)]

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME

    ws.append(headers)
    for cell in ws[1]:
        cell.font = HEADER_FONT

    for row in rows:
        ws.append(["" if value is None else value for value in row])

    for col_idx, column_type in enumerate(column_types, start=1):
        number_format = NUMBER_FORMATS.get(column_type)
        if number_format is None:
            continue
        for (cell,) in ws.iter_rows(min_row=2, min_col=col_idx, max_col=col_idx):
            if not isinstance(cell.value, str):
                cell.number_format = number_format

    # Column widths from content, capped
    for col_idx, header in enumerate(headers, start=1):
        longest = len(str(header))
        for row in rows:
            value = row[col_idx - 1]
            if value is not None:
                longest = max(longest, len(str(value)))
        ws.column_dimensions[get_column_letter(col_idx)].width = min(longest + 2, MAX_COLUMN_WIDTH)

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def generate_export_filename(prefix: str = DEFAULT_FILENAME_PREFIX, today: date | None = None) -> str:
    today = today or date.today()
    return f"{prefix}_{today.isoformat()}.xlsx"


async def load_export_columns(session: AsyncSession) -> list[ExportColumn]:
    """Visible configured columns in display order (empty means defaults)."""
    return [column for column in await get_export_columns(session) if column.visible]


@dataclass(slots=True)
class JobExport:
    content: bytes
    file_name: str
    summary: ExportSummary


async def build_job_export(
    session: AsyncSession, job_id: UUID, confirmed_only: bool = False
) -> JobExport:
    items = await fetch_job_items(session, job_id)
    columns = await load_export_columns(session)
    return JobExport(
        content=generate_excel(items, confirmed_only=confirmed_only, columns=columns),
        file_name=generate_export_filename(),
        summary=calculate_export_summary(items),
    )

