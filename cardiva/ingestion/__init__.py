"""Document ingestion for Cardiva.

Handles tender PDF and inventory CSV uploads and their hand-off to the
automation workflow.
"""

from cardiva.ingestion.filenames import sanitize_filename
from cardiva.ingestion.inventory_uploads import trigger_inventory_upload
from cardiva.ingestion.rfp_uploads import delete_rfp_job, trigger_rfp_upload

__all__ = [
    "sanitize_filename",
    "trigger_inventory_upload",
    "trigger_rfp_upload",
    "delete_rfp_job",
]
