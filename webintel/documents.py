"""Spreadsheet in, spreadsheet out.

XLSX/XLSM go through openpyxl, CSV through the csv module. Rows are plain
dicts keyed by the header row so the pipeline never sees the file format.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Literal

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import DocumentError, InputError
from .models import ENRICHMENT_COLUMNS

_LOG = logging.getLogger(__name__)

TableFormat = Literal["xlsx", "csv"]

_EXTENSIONS: dict[str, TableFormat] = {
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
    ".csv": "csv",
}

RESULTS_SHEET = "Results"
RESULTS_BASENAME = "WebIntel_Results"

MEDIA_TYPES: dict[TableFormat, str] = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv; charset=utf-8",
}


@dataclass
class Table:
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]], columns: Iterable[str] = ()) -> "Table":
        """Build a table whose columns are `columns` plus any new keys, in first-seen order."""
        rows = [dict(r) for r in rows]
        ordered = list(columns)
        seen = set(ordered)
        for row in rows:
            for key in row:
                if key not in seen:
                    seen.add(key)
                    ordered.append(key)
        return cls(columns=ordered, rows=rows)


def table_format(filename: str) -> TableFormat:
    suffix = PurePath(filename or "").suffix.lower()
    fmt = _EXTENSIONS.get(suffix)
    if fmt is None:
        raise InputError(
            "Unsupported file type. Upload an .xlsx, .xlsm or .csv file.",
            {"filename": filename},
        )
    return fmt


def results_filename(fmt: TableFormat) -> str:
    return f"{RESULTS_BASENAME}.{fmt}"


def _header_names(values: Iterable[Any]) -> list[str]:
    """Header row to unique column names.

    Repeated names, and names taken by the enrichment columns, get a numeric
    suffix (`Notes`, `Notes_1`, `CDN_1`) so no input column is overwritten.
    """
    raw = [
        ("" if value is None else str(value).strip()) or f"Column {idx + 1}"
        for idx, value in enumerate(values)
    ]
    taken = set(ENRICHMENT_COLUMNS.values())
    names: list[str] = []
    for name in raw:
        candidate, n = name, 0
        while candidate in taken or (n and candidate in raw):
            n += 1
            candidate = f"{name}_{n}"
        taken.add(candidate)
        names.append(candidate)
    return names


def _cell(value: Any) -> Any:
    return "" if value is None else value


def _read_xlsx(data: bytes) -> Table:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise DocumentError("Failed to process spreadsheet", {"reason": str(e)}) from e

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            return Table()

        it = ws.iter_rows(values_only=True)
        header = next(it, None)
        if header is None:
            return Table()
        columns = _header_names(header)

        rows: list[dict[str, Any]] = []
        for values in it:
            if values is None or all(v is None or v == "" for v in values):
                continue
            values = list(values) + [None] * (len(columns) - len(values))
            rows.append({col: _cell(v) for col, v in zip(columns, values)})
        return Table(columns=columns, rows=rows)
    finally:
        wb.close()


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _read_csv(data: bytes) -> Table:
    text = _decode(data)
    try:
        reader = csv.reader(io.StringIO(text, newline=""))
        header = next(reader, None)
        if header is None:
            return Table()
        columns = _header_names(header)

        rows: list[dict[str, Any]] = []
        for values in reader:
            if not any(v.strip() for v in values):
                continue
            values = values + [""] * (len(columns) - len(values))
            rows.append(dict(zip(columns, values)))
    except csv.Error as e:
        raise DocumentError("Failed to process spreadsheet", {"reason": str(e)}) from e
    return Table(columns=columns, rows=rows)


def read_table(data: bytes, filename: str) -> Table:
    """Parse an uploaded document into a Table.

    Raises InputError for unsupported extensions and DocumentError when the
    file cannot be opened.
    """
    fmt = table_format(filename)
    table = _read_xlsx(data) if fmt == "xlsx" else _read_csv(data)
    _LOG.debug("Read %d rows x %d columns from %s", len(table.rows), len(table.columns), filename)
    return table


def write_table(table: Table, fmt: TableFormat) -> bytes:
    if fmt == "xlsx":
        wb = Workbook()
        ws = wb.active
        ws.title = RESULTS_SHEET
        ws.append(table.columns)
        for row in table.rows:
            ws.append([row.get(col, "") for col in table.columns])
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()

    if fmt == "csv":
        buf = io.StringIO(newline="")
        writer = csv.DictWriter(buf, fieldnames=table.columns, extrasaction="ignore", restval="")
        writer.writeheader()
        writer.writerows(table.rows)
        return buf.getvalue().encode("utf-8")

    raise ValueError(f"Unknown format: {fmt}")
