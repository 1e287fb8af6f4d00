"""Reporting: RFP Excel export, export e-mail, dashboard metrics and inventory listing."""

from cardiva.reporting.dashboard_metrics import DashboardStats, get_dashboard_stats
from cardiva.reporting.email_export import send_export_email
from cardiva.reporting.inventory_catalog import InventoryPage, list_inventory
from cardiva.reporting.rfp_export import (
    build_job_export,
    calculate_export_summary,
    generate_excel,
    generate_export_filename,
    transform_to_export_rows,
)

__all__ = [
    "DashboardStats",
    "get_dashboard_stats",
    "send_export_email",
    "InventoryPage",
    "list_inventory",
    "build_job_export",
    "calculate_export_summary",
    "generate_excel",
    "generate_export_filename",
    "transform_to_export_rows",
]
