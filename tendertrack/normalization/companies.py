"""Company name normalization for bidder matching."""

import re
from typing import Optional


# Common Indian business suffixes to standardize
BUSINESS_SUFFIXES = {
    r"\bprivate\s+limited\b": "PVT LTD",
    r"\bpvt\.?\s*ltd\.?": "PVT LTD",
    r"\bp\.?\s*ltd\.?": "PVT LTD",
    r"\bprivate\b": "PVT",
    r"\bpvt\.?": "PVT",
    r"\blimited\b": "LTD",
    r"\bltd\.?": "LTD",
    r"\bl\.l\.p\.?": "LLP",
    r"\bllp\b": "LLP",
    r"\bincorporated\b": "INC",
    r"\binc\.?": "INC",
    r"\bcorporation\b": "CORP",
    r"\bcorp\.?": "CORP",
    r"\bcompany\b": "CO",
}

# Words to remove (common filler words that don't help matching)
REMOVE_WORDS = {
    "the", "of", "and", "&", "m/s", "m/s.", "messrs",
}

# Common abbreviation expansions
ABBREVIATIONS = {
    "tech": "TECHNOLOGIES",
    "techs": "TECHNOLOGIES",
    "intl": "INTERNATIONAL",
    "int'l": "INTERNATIONAL",
    "svcs": "SERVICES",
    "sys": "SYSTEMS",
    "infotech": "INFOTECH",
    "solns": "SOLUTIONS",
}


def normalize_company_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize a bidder or company name for matching purposes.

    Transformations:
    - Convert to uppercase
    - Remove a leading "M/s" (messrs) prefix and filler words
    - Standardize business suffixes (Private Limited -> PVT LTD)
    - Expand common abbreviations
    - Remove punctuation

    Args:
        name: Original company name

    Returns:
        Normalized name, or None if input is None/empty
    """
    if not name:
        return None

    normalized = name.upper().strip()
    normalized = re.sub(r"\s+", " ", normalized)

    for pattern, replacement in BUSINESS_SUFFIXES.items():
        normalized = re.sub(pattern, replacement, normalized, flags=re.IGNORECASE)

    words = normalized.split()
    words = [w for w in words if w.lower() not in REMOVE_WORDS] or words
    words = [ABBREVIATIONS.get(w.lower(), w) for w in words]
    normalized = " ".join(words)

    normalized = re.sub(r"[.,;:!?\"()[\]{}]", " ", normalized)
    normalized = re.sub(r"\s*&\s*", " AND ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()

    return normalized if normalized else None


def name_mentions(haystack: Optional[str], needle: Optional[str]) -> bool:
    """True if normalized ``needle`` occurs inside normalized ``haystack``."""
    hay = normalize_company_name(haystack)
    pin = normalize_company_name(needle)
    if not hay or not pin:
        return False
    return pin in hay
