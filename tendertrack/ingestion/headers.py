"""
Header row detection and column resolution.

Uploaded sheets carry no fixed schema: the header row may sit in any of the
first three rows and each logical field goes by many names ("TENDER BRIEF",
"Work Name", "Title" ...). The resolver finds the header row once per sheet
and builds an explicit field -> column index map that every row of the sheet
reuses.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from tendertrack.normalization import normalize_text


# Fixed domain words that mark a header row
HEADER_KEYWORDS = ("title", "organization", "value", "deadline", "tender", "work", "brief")
MAX_HEADER_SCAN_ROWS = 3
MIN_HEADER_MATCHES = 2


@dataclass(frozen=True)
class FieldSpec:
    """Logical field with ordered header synonyms."""
    name: str
    synonyms: tuple[str, ...]
    exclude: tuple[str, ...] = ()

    def matches(self, header: str, synonym: str) -> bool:
        if synonym not in header:
            return False
        return not any(word in header for word in self.exclude)


TENDER_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("title", (
        "tender brief", "brief", "tender title", "title", "work description",
        "work name", "name of work", "description",
    )),
    FieldSpec("organization", (
        "organization", "organisation", "ministry", "agency", "buyer", "dept", "department",
    )),
    FieldSpec("value", (
        "estimated cost", "tender value", "estimated value", "value", "amount", "budget", "cost",
    ), exclude=("emd", "fee", "turnover")),
    FieldSpec("deadline", (
        "deadline", "due date", "closing date", "last date", "end date", "bid end",
        "submission date",
    )),
    FieldSpec("location", ("location", "place", "city", "state", "region")),
    FieldSpec("reference_no", (
        "reference no", "ref no", "reference", "tender no", "bid no", "bid number",
        "tender number",
    )),
    FieldSpec("department", ("department name", "department", "dept", "division", "section")),
    FieldSpec("category", ("similar category", "category", "classification", "sector", "type")),
    FieldSpec("source", ("source", "portal", "website", "platform")),
    FieldSpec("external_id", ("t247 id", "t247", "tender id", "unique id")),
    FieldSpec("turnover", (
        "minimum average annual turnover", "minimum annual turnover", "annual turnover",
        "turnover",
    )),
    FieldSpec("emd", ("emd", "earnest money")),
    FieldSpec("document_fees", ("document fee", "tender fee", "doc fee")),
    FieldSpec("msme_exemption", ("msme exemption", "msme")),
    FieldSpec("startup_exemption", ("startup exemption", "startup")),
    FieldSpec("eligibility", ("eligibility criteria", "eligibility")),
    FieldSpec("checklist", ("checklist",)),
    FieldSpec("quantity", ("quantity", "qty")),
)

RESULT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("title", (
        "tender title", "title", "tender brief", "brief", "work description", "work name",
        "name of work", "description",
    )),
    FieldSpec("organization", (
        "organization", "organisation", "ministry", "agency", "buyer", "department", "dept",
    )),
    FieldSpec("reference_no", (
        "reference no", "ref no", "reference", "tender no", "bid no", "bid number",
    )),
    FieldSpec("location", ("location", "place", "city", "state", "region")),
    FieldSpec("department", ("department", "dept")),
    FieldSpec("tender_value", (
        "tender value", "estimated value", "estimated cost", "value", "amount",
    ), exclude=("contract", "award", "final")),
    FieldSpec("contract_value", ("contract value", "awarded value", "award value", "final value")),
    FieldSpec("awarded_to", ("awarded to", "winner", "selected bidder", "awardee", "l1 bidder")),
    FieldSpec("participants", (
        "participator bidders", "participating bidders", "participants", "bidders",
    ), exclude=("number", "count", "no.", "no of")),
    FieldSpec("result_date", ("result date", "award date", "decision date", "aoc date")),
    FieldSpec("stage", ("tender stage", "stage", "status")),
    FieldSpec("external_id", ("t247 id", "t247", "tender id", "unique id")),
)


@dataclass
class HeaderResolution:
    """Where a sheet's header row is and which column holds each field."""
    header_row_index: int
    column_map: dict[str, int] = field(default_factory=dict)
    headers: list[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.header_row_index >= 0

    def index(self, name: str) -> int:
        return self.column_map.get(name, -1)

    def has(self, name: str) -> bool:
        return self.index(name) >= 0

    def value(self, row: Sequence[Any], name: str) -> Any:
        """Raw cell for ``name`` in ``row``, or None when absent."""
        idx = self.index(name)
        if idx < 0 or idx >= len(row):
            return None
        return row[idx]


def with_overrides(fields: Iterable[FieldSpec], overrides: dict | None) -> tuple[FieldSpec, ...]:
    """Replace synonym lists with configured ones, keeping field order."""
    if not overrides:
        return tuple(fields)

    result = []
    for field_spec in fields:
        synonyms = overrides.get(field_spec.name)
        if synonyms:
            field_spec = FieldSpec(
                field_spec.name,
                tuple(str(s).lower() for s in synonyms),
                field_spec.exclude,
            )
        result.append(field_spec)
    return tuple(result)


def header_keywords(fields: Iterable[FieldSpec]) -> tuple[str, ...]:
    """Fixed domain keywords plus every synonym of the field table."""
    keywords = list(HEADER_KEYWORDS)
    for field_spec in fields:
        for synonym in field_spec.synonyms:
            if synonym not in keywords:
                keywords.append(synonym)
    return tuple(keywords)


def find_header_row(rows: Sequence[Sequence[Any]], keywords: Sequence[str]) -> int:
    """
    Find the header row among the first rows of a sheet.

    A row qualifies when at least two of its cells contain a keyword.

    Returns:
        Index of the header row, or -1 if none of the scanned rows qualifies.
    """
    for i, row in enumerate(rows[:MAX_HEADER_SCAN_ROWS]):
        if not row:
            continue
        matches = 0
        for cell in row:
            text = normalize_text(cell).lower()
            if text and any(k in text for k in keywords):
                matches += 1
        if matches >= MIN_HEADER_MATCHES:
            return i
    return -1


def column_index(headers: Sequence[str], field_spec: FieldSpec) -> int:
    """First header matching the earliest synonym in declared order, or -1."""
    lowered = [h.lower() for h in headers]
    for synonym in field_spec.synonyms:
        for idx, header in enumerate(lowered):
            if header and field_spec.matches(header, synonym):
                return idx
    return -1


def build_column_map(headers: Sequence[str], fields: Iterable[FieldSpec]) -> dict[str, int]:
    return {field_spec.name: column_index(headers, field_spec) for field_spec in fields}


def resolve_headers(
    rows: Sequence[Sequence[Any]],
    fields: Sequence[FieldSpec] = TENDER_FIELDS,
) -> HeaderResolution:
    """
    Locate the header row and map each logical field to a column.

    Args:
        rows: Sheet rows as lists of raw cell values.
        fields: Field table to resolve (TENDER_FIELDS or RESULT_FIELDS).

    Returns:
        HeaderResolution; ``resolved`` is False when no header row was found.
    """
    header_idx = find_header_row(rows, header_keywords(fields))
    if header_idx < 0:
        return HeaderResolution(header_row_index=-1)

    headers = [normalize_text(cell) for cell in rows[header_idx]]
    return HeaderResolution(
        header_row_index=header_idx,
        column_map=build_column_map(headers, fields),
        headers=headers,
    )
