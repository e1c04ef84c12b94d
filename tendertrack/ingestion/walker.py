"""Sheet walking: header resolution per sheet and iteration over data rows."""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

from tendertrack.normalization import normalize_text
from .headers import FieldSpec, HeaderResolution, resolve_headers
from .workbook import Sheet

logger = logging.getLogger(__name__)


@dataclass
class SheetPlan:
    sheet: Sheet
    resolution: HeaderResolution
    skipped_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


@dataclass
class RowContext:
    """A data row together with where it came from and how to read it."""
    sheet: Sheet
    resolution: HeaderResolution
    row_index: int
    cells: Sequence[Any]

    @property
    def sheet_name(self) -> str:
        return self.sheet.name

    @property
    def row_number(self) -> int:
        """1-based row number as shown by spreadsheet programs."""
        return self.row_index + 1

    def get(self, name: str) -> Any:
        return self.resolution.value(self.cells, name)

    def text(self, name: str) -> str:
        return normalize_text(self.get(name))

    def link(self, name: str) -> Optional[str]:
        return self.sheet.link(self.row_index, self.resolution.index(name))


class SheetWalker:
    """
    Walks sheets in workbook order and data rows in file order.

    Rows whose title is blank (or shorter than ``min_title_length``) are not
    candidates: they are skipped silently and never counted.
    """

    def __init__(
        self,
        sheets: Sequence[Sheet],
        fields: Sequence[FieldSpec],
        min_title_length: int = 1,
    ):
        self.sheets = list(sheets)
        self.fields = fields
        self.min_title_length = max(1, min_title_length)
        self._plans: Optional[list[SheetPlan]] = None

    @property
    def plans(self) -> list[SheetPlan]:
        if self._plans is None:
            self._plans = [self._plan(sheet) for sheet in self.sheets]
        return self._plans

    def _plan(self, sheet: Sheet) -> SheetPlan:
        try:
            resolution = resolve_headers(sheet.rows, self.fields)
        except Exception as e:
            logger.warning("Sheet '%s' skipped: %s", sheet.name, e)
            return SheetPlan(sheet, HeaderResolution(-1), skipped_reason=str(e))

        if not resolution.resolved:
            logger.warning("Sheet '%s' skipped: no header row found", sheet.name)
            return SheetPlan(sheet, resolution, skipped_reason="no header row found")

        if not resolution.has("title"):
            logger.warning("Sheet '%s' has no title column; rows will be ignored", sheet.name)

        logger.debug(
            "Sheet '%s': header at row %d, columns %s",
            sheet.name, resolution.header_row_index + 1, resolution.column_map,
        )
        return SheetPlan(sheet, resolution)

    @property
    def processed_sheets(self) -> list[SheetPlan]:
        return [p for p in self.plans if not p.skipped]

    @property
    def skipped_sheets(self) -> list[SheetPlan]:
        return [p for p in self.plans if p.skipped]

    def is_candidate(self, resolution: HeaderResolution, cells: Sequence[Any]) -> bool:
        if not resolution.has("title"):
            return False
        title = normalize_text(resolution.value(cells, "title"))
        return len(title) >= self.min_title_length

    def _candidates(self, plan: SheetPlan) -> Iterator[RowContext]:
        resolution = plan.resolution
        start = resolution.header_row_index + 1
        for idx in range(start, len(plan.sheet.rows)):
            cells = plan.sheet.rows[idx]
            if cells and self.is_candidate(resolution, cells):
                yield RowContext(plan.sheet, resolution, idx, cells)

    @property
    def total_rows(self) -> int:
        """Number of candidate data rows across all processed sheets."""
        return sum(sum(1 for _ in self._candidates(p)) for p in self.processed_sheets)

    def rows(self) -> Iterator[RowContext]:
        for plan in self.processed_sheets:
            yield from self._candidates(plan)
