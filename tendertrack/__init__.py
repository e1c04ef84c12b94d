"""tendertrack - tender spreadsheet ingestion and reconciliation."""

__version__ = "0.3.0"
