"""
Workbook reading.

Turns uploaded bytes into a list of sheets of raw cell values. Excel
workbooks (.xlsx/.xlsm) are read with openpyxl, keeping cell hyperlinks;
.csv files become a single sheet named after the file.
"""

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from tendertrack.exceptions import WorkbookError

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ("utf-8-sig", "cp1252")


@dataclass
class Sheet:
    """One worksheet: rows of raw values plus hyperlink targets."""
    name: str
    rows: list[list[Any]] = field(default_factory=list)
    links: dict[tuple[int, int], str] = field(default_factory=dict)

    def link(self, row_index: int, column_index: int) -> str | None:
        if column_index < 0:
            return None
        return self.links.get((row_index, column_index))


def _read_csv(data: bytes, file_name: str) -> list[Sheet]:
    text = None
    for encoding in CSV_ENCODINGS:
        try:
            text = data.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    if text is None:
        raise WorkbookError("CSV file is not valid text", file_name)

    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel

    rows = [list(row) for row in csv.reader(io.StringIO(text), dialect)]
    return [Sheet(name=Path(file_name).stem or "Sheet1", rows=rows)]


def _read_excel(data: bytes, file_name: str) -> list[Sheet]:
    try:
        # Hyperlinks are only exposed outside read-only mode
        wb = load_workbook(io.BytesIO(data), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile) as e:
        raise WorkbookError(f"Could not open workbook: {e}", file_name) from e
    except Exception as e:
        # Damaged parts inside a valid zip surface as XML or lookup errors
        raise WorkbookError(f"Workbook is corrupt: {e}", file_name) from e

    sheets = []
    try:
        for ws in wb.worksheets:
            sheet = Sheet(name=ws.title)
            for r, row in enumerate(ws.iter_rows()):
                values = []
                for c, cell in enumerate(row):
                    values.append(cell.value)
                    hyperlink = getattr(cell, "hyperlink", None)
                    if hyperlink is not None and hyperlink.target:
                        sheet.links[(r, c)] = hyperlink.target
                sheet.rows.append(values)
            sheets.append(sheet)
    except Exception as e:
        raise WorkbookError(f"Could not read sheet data: {e}", file_name) from e
    finally:
        wb.close()

    return sheets


def open_workbook(data: bytes, file_name: str) -> list[Sheet]:
    """
    Read an uploaded spreadsheet.

    Args:
        data: Raw file bytes.
        file_name: Original file name; its extension selects the reader.

    Returns:
        Sheets in workbook order.

    Raises:
        WorkbookError: If the file is empty, unsupported or not a workbook.
    """
    if not data:
        raise WorkbookError("File is empty", file_name)

    suffix = Path(file_name).suffix.lower()
    if suffix == ".csv":
        sheets = _read_csv(data, file_name)
    elif suffix == ".xls":
        raise WorkbookError("Legacy .xls workbooks are not supported, save as .xlsx", file_name)
    else:
        sheets = _read_excel(data, file_name)

    if not sheets:
        raise WorkbookError("Workbook contains no sheets", file_name)

    logger.debug("Opened %s: %d sheet(s)", file_name, len(sheets))
    return sheets
