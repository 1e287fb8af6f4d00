"""Data structures consumed by the review screen."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from cardiva.models import MANUAL_MATCH_TYPE


@dataclass(slots=True)
class ReviewSuggestion:
    id: UUID
    rfp_item_id: UUID
    codigo_spms: str | None
    artigo: str | None
    descricao: str | None
    descricao_comercial: str | None
    unidade_venda: str | None
    quantidade_disponivel: Decimal | None
    preco: Decimal | None
    similarity_score: float
    match_type: str | None
    rank: int
    status: str

    @property
    def is_manual(self) -> bool:
        return self.match_type == MANUAL_MATCH_TYPE


@dataclass(slots=True)
class ReviewItem:
    id: UUID
    job_id: UUID
    lote_pedido: int | None
    posicao_pedido: int | None
    artigo_pedido: str | None
    descricao_pedido: str | None
    especificacoes_tecnicas: str | None
    quantidade_pedido: Decimal | None
    preco_artigo: Decimal | None
    preco_posicao: Decimal | None
    preco_lote: Decimal | None
    review_status: str
    selected_match_id: UUID | None
    suggestions: list[ReviewSuggestion] = field(default_factory=list)

    @property
    def selected_match(self) -> ReviewSuggestion | None:
        """Selected suggestion, falling back to the accepted one."""
        if self.selected_match_id is not None:
            for suggestion in self.suggestions:
                if suggestion.id == self.selected_match_id:
                    return suggestion
        for suggestion in self.suggestions:
            if suggestion.status == "accepted":
                return suggestion
        return None


@dataclass(slots=True)
class ReviewJob:
    id: UUID
    user_id: UUID
    file_name: str
    status: str
    confirmed_at: datetime | None
    last_edited_by: UUID | None
    created_at: datetime | None


@dataclass(slots=True)
class ActionResult:
    """Outcome of a review mutation."""

    success: bool
    error: str | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def ok(cls, **data: Any) -> ActionResult:
        return cls(success=True, data=data or None)

    @classmethod
    def fail(cls, error: str) -> ActionResult:
        return cls(success=False, error=error)


@dataclass(slots=True)
class AutoAcceptResult:
    success: bool
    accepted_count: int = 0
    error: str | None = None


@dataclass(slots=True)
class ReviewProgress:
    total: int = 0
    por_rever: int = 0
    matched: int = 0
    no_match: int = 0
    reviewed: int = 0  # accepted, manual or rejected

    @property
    def percent_reviewed(self) -> int:
        if self.total == 0:
            return 0
        return round(self.reviewed / self.total * 100)
