"""Database layer for Cardiva with async SQLAlchemy."""

from cardiva.db.connection import get_session, init_db
from cardiva.db.models import (
    AppSettingsModel,
    ArtigoModel,
    Base,
    ExportColumnConfigModel,
    InventoryUploadJobModel,
    MatchSuggestionModel,
    ProfileModel,
    RFPItemModel,
    RFPUploadJobModel,
)

__all__ = [
    "Base",
    "ProfileModel",
    "RFPUploadJobModel",
    "InventoryUploadJobModel",
    "RFPItemModel",
    "MatchSuggestionModel",
    "ArtigoModel",
    "AppSettingsModel",
    "ExportColumnConfigModel",
    "get_session",
    "init_db",
]
