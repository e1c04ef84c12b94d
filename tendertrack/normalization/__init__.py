"""Data normalization module for tendertrack."""

from .cells import (
    is_blank,
    normalize_text,
    normalize_currency,
    normalize_date,
    normalize_list,
    extract_url,
)
from .companies import normalize_company_name, name_mentions

__all__ = [
    "is_blank",
    "normalize_text",
    "normalize_currency",
    "normalize_date",
    "normalize_list",
    "extract_url",
    "normalize_company_name",
    "name_mentions",
]
