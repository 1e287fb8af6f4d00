"""Cardiva Pydantic models and status enums.

Status values are stored verbatim in the database and sent to clients, so the
enum values must stay stable.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class JobStatus(str, Enum):
    """Upload job lifecycle (written by the automation workflow)."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"  # inventory imports only


class ReviewStatus(str, Enum):
    """Per-item review state."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MANUAL = "manual"


class SuggestionStatus(str, Enum):
    """Per-suggestion review state."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class JobReviewStatus(str, Enum):
    """Derived, job-level review state (never stored)."""

    POR_REVER = "por_rever"
    REVISTO = "revisto"
    CONFIRMADO = "confirmado"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    AUTOMATION = "automation"


class ItemFilter(str, Enum):
    """Review screen item filters."""

    ALL = "all"
    POR_REVER = "por_rever"
    MATCHED = "matched"
    NO_MATCH = "no_match"


class EmailRecipientMode(str, Enum):
    NO_DEFAULTS = "no-defaults"
    LOCKED = "locked"
    ADD_ONLY = "add-only"
    REPLACEABLE = "replaceable"


MANUAL_MATCH_TYPE = "Manual"


class InventoryArticle(BaseModel):
    """Inventory catalog entry chosen for a manual match."""

    codigo_spms: str | None = None
    artigo: str | None = None
    descricao: str | None = None
    descricao_comercial: str | None = None
    unidade_venda: str | None = None
    quantidade_disponivel: Decimal | None = None
    preco: Decimal | None = None

    @field_validator("codigo_spms", "artigo", "descricao")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class EmailSettings(BaseModel):
    """Default recipients for the export e-mail dialog."""

    default_recipients: list[str] = Field(default_factory=list)
    user_can_edit: bool = True
    defaults_replaceable: bool = True

    @field_validator("default_recipients")
    @classmethod
    def validate_recipients(cls, v: list[str]) -> list[str]:
        cleaned = [r.strip() for r in v if r and r.strip()]
        for recipient in cleaned:
            if "@" not in recipient:
                raise ValueError(f"Invalid email address: {recipient}")
        return cleaned

    @property
    def mode(self) -> EmailRecipientMode:
        if not self.default_recipients:
            return EmailRecipientMode.NO_DEFAULTS
        if not self.user_can_edit:
            return EmailRecipientMode.LOCKED
        if not self.defaults_replaceable:
            return EmailRecipientMode.ADD_ONLY
        return EmailRecipientMode.REPLACEABLE


COLUMN_TYPES = ("text", "number", "currency", "date")

# Columns an administrator may place in the Excel export, per source table
EXPORTABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "rfp_items": (
        "lote_pedido",
        "posicao_pedido",
        "artigo_pedido",
        "descricao_pedido",
        "especificacoes_tecnicas",
        "quantidade_pedido",
        "preco_artigo",
        "preco_posicao",
        "preco_lote",
    ),
    "rfp_match_suggestions": (
        "codigo_spms",
        "artigo",
        "descricao",
        "descricao_comercial",
        "unidade_venda",
        "quantidade_disponivel",
        "preco",
        "similarity_score",
        "match_type",
    ),
}


class ExportColumn(BaseModel):
    """One column of the Excel export."""

    source_table: str
    column_name: str
    display_name: str
    visible: bool = True
    display_order: int = 0
    column_type: str = "text"  # text, number, currency, date

    @field_validator("source_table")
    @classmethod
    def validate_source_table(cls, v: str) -> str:
        if v not in EXPORTABLE_COLUMNS:
            raise ValueError(f"Unknown source table: {v}")
        return v

    @field_validator("column_type")
    @classmethod
    def validate_column_type(cls, v: str) -> str:
        if v not in COLUMN_TYPES:
            raise ValueError(f"Unknown column type: {v}")
        return v

    @model_validator(mode="after")
    def validate_column_name(self) -> ExportColumn:
        if self.column_name not in EXPORTABLE_COLUMNS[self.source_table]:
            raise ValueError(f"Column {self.source_table}.{self.column_name} cannot be exported")
        return self


# Catalog columns the inventory listing can show; only text ones are searchable
INVENTORY_TEXT_COLUMNS = (
    "codigo_spms",
    "artigo",
    "descricao",
    "descricao_comercial",
    "unidade_venda",
    "categoria",
)
INVENTORY_COLUMNS = INVENTORY_TEXT_COLUMNS + ("quantidade_disponivel", "preco")


class InventoryColumn(BaseModel):
    """One column of the inventory listing."""

    column_name: str
    display_name: str
    visible: bool = True
    sortable: bool = True
    searchable: bool = False
    display_order: int = 0
    column_type: str = "text"

    @field_validator("column_name")
    @classmethod
    def validate_column_name(cls, v: str) -> str:
        if v not in INVENTORY_COLUMNS:
            raise ValueError(f"Unknown inventory column: {v}")
        return v

    @field_validator("column_type")
    @classmethod
    def validate_column_type(cls, v: str) -> str:
        if v not in COLUMN_TYPES:
            raise ValueError(f"Unknown column type: {v}")
        return v

    @model_validator(mode="after")
    def validate_searchable(self) -> InventoryColumn:
        if self.searchable and self.column_name not in INVENTORY_TEXT_COLUMNS:
            raise ValueError(f"Column {self.column_name} is not searchable")
        return self


class AuthenticatedUser(BaseModel):
    """Resolved session user passed to service operations."""

    id: UUID
    email: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
