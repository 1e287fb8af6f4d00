"""SQLAlchemy async database models for Cardiva.

Job, item and suggestion rows are shared with the automation workflow, which
inserts items/suggestions and drives the job lifecycle. This service mutates
review state only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ProfileModel(Base):
    """Application user."""

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(Text)  # bcrypt
    full_name: Mapped[str | None] = mapped_column(Text)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin', 'automation')", name="check_profile_role"),
    )


class RFPUploadJobModel(Base):
    """One uploaded tender PDF and its extraction lifecycle."""

    __tablename__ = "rfp_upload_jobs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str | None] = mapped_column(Text)  # storage key
    file_size: Mapped[int | None] = mapped_column(Integer)

    # Lifecycle (pending -> processing -> completed|failed), owned by the workflow
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)
    error_message: Mapped[str | None] = mapped_column(Text)
    processing_progress: Mapped[int | None] = mapped_column(Integer)
    items_total: Mapped[int | None] = mapped_column(Integer)

    # Review (owned by this service)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_edited_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="check_rfp_job_status",
        ),
        Index("idx_rfp_jobs_user_created", "user_id", "created_at"),
    )


class InventoryUploadJobModel(Base):
    """One uploaded inventory CSV."""

    __tablename__ = "inventory_upload_jobs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int | None] = mapped_column(Integer)
    row_count: Mapped[int | None] = mapped_column(Integer)

    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)
    error_message: Mapped[str | None] = mapped_column(Text)
    processing_progress: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'partial')",
            name="check_inventory_job_status",
        ),
    )


class RFPItemModel(Base):
    """Line item extracted from a tender document."""

    __tablename__ = "rfp_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("rfp_upload_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    lote_pedido: Mapped[int | None] = mapped_column(Integer)
    posicao_pedido: Mapped[int | None] = mapped_column(Integer)
    artigo_pedido: Mapped[str | None] = mapped_column(Text)
    descricao_pedido: Mapped[str | None] = mapped_column(Text)
    especificacoes_tecnicas: Mapped[str | None] = mapped_column(Text)
    quantidade_pedido: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    preco_artigo: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    preco_posicao: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    preco_lote: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))

    # Review state: selected_match_id is set iff review_status in (accepted, manual)
    review_status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)
    selected_match_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "review_status IN ('pending', 'accepted', 'rejected', 'manual')",
            name="check_item_review_status",
        ),
        Index("idx_rfp_items_job_order", "job_id", "lote_pedido", "posicao_pedido"),
    )


class MatchSuggestionModel(Base):
    """Inventory candidate scored against an RFP item."""

    __tablename__ = "rfp_match_suggestions"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    rfp_item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("rfp_items.id", ondelete="CASCADE"), nullable=False, index=True
    )

    codigo_spms: Mapped[str | None] = mapped_column(Text)
    artigo: Mapped[str | None] = mapped_column(Text)
    descricao: Mapped[str | None] = mapped_column(Text)
    descricao_comercial: Mapped[str | None] = mapped_column(Text)
    unidade_venda: Mapped[str | None] = mapped_column(Text)
    quantidade_disponivel: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    preco: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))

    similarity_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    match_type: Mapped[str | None] = mapped_column(Text)  # algorithm label or "Manual"
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="check_suggestion_status",
        ),
        CheckConstraint(
            "similarity_score >= 0 AND similarity_score <= 1",
            name="check_similarity_range",
        ),
        Index("idx_suggestions_item_score", "rfp_item_id", "similarity_score"),
    )


class ArtigoModel(Base):
    """Inventory catalog article (loaded by the inventory ingest workflow)."""

    __tablename__ = "artigos"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    codigo_spms: Mapped[str | None] = mapped_column(Text, index=True)
    artigo: Mapped[str | None] = mapped_column(Text, index=True)
    descricao: Mapped[str | None] = mapped_column(Text)
    descricao_comercial: Mapped[str | None] = mapped_column(Text)
    unidade_venda: Mapped[str | None] = mapped_column(Text)
    quantidade_disponivel: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    preco: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    categoria: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class AppSettingsModel(Base):
    """Singleton row (id=1) of administrator settings."""

    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    email_default_recipients: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    email_user_can_edit: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_defaults_replaceable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    updated_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))


class ExportColumnConfigModel(Base):
    """Administrator-defined export column."""

    __tablename__ = "export_column_config"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    source_table: Mapped[str] = mapped_column(Text, nullable=False)
    column_name: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    column_type: Mapped[str] = mapped_column(Text, default="text", nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("source_table", "column_name", name="uq_export_column"),
    )


class InventoryColumnConfigModel(Base):
    """Administrator-defined column of the inventory listing."""

    __tablename__ = "inventory_column_config"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    column_name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sortable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    searchable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    column_type: Mapped[str] = mapped_column(Text, default="text", nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
