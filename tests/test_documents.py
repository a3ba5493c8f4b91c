from __future__ import annotations

import io

import pytest
from openpyxl import Workbook, load_workbook

from webintel.documents import Table, read_table, results_filename, table_format, write_table
from webintel.errors import DocumentError, InputError
from webintel.models import ENRICHMENT_COLUMNS, DetectionResult
from webintel.pipeline import merge_row


def _xlsx(rows: list[list[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Sites"
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_table_format() -> None:
    assert table_format("Sites.XLSX") == "xlsx"
    assert table_format("macro.xlsm") == "xlsx"
    assert table_format("list.csv") == "csv"
    with pytest.raises(InputError):
        table_format("notes.txt")
    assert results_filename("csv") == "WebIntel_Results.csv"


def test_read_xlsx_header_and_empty_cells() -> None:
    data = _xlsx([["Company", "Website", "Employees"], ["Acme", "acme.com", 12], ["Nobody", None, None], []])
    table = read_table(data, "sites.xlsx")

    assert table.columns == ["Company", "Website", "Employees"]
    assert table.rows == [
        {"Company": "Acme", "Website": "acme.com", "Employees": 12},
        {"Company": "Nobody", "Website": "", "Employees": ""},
    ]


def test_read_xlsx_unnamed_header() -> None:
    table = read_table(_xlsx([["Site", None], ["a.com", "x"]]), "s.xlsx")
    assert table.columns == ["Site", "Column 2"]


def test_read_corrupt_xlsx() -> None:
    with pytest.raises(DocumentError, match="Failed to process spreadsheet"):
        read_table(b"definitely not a zip file", "sites.xlsx")


def test_read_csv_utf8_bom_and_short_rows() -> None:
    data = "\ufeffCompany,Website\nAcme,acme.com\nShort\n\n".encode("utf-8")
    table = read_table(data, "sites.csv")
    assert table.columns == ["Company", "Website"]
    assert table.rows == [
        {"Company": "Acme", "Website": "acme.com"},
        {"Company": "Short", "Website": ""},
    ]


def test_read_csv_latin1() -> None:
    data = "Company,Website\nCaf\xe9,cafe.fr\n".encode("latin-1")
    table = read_table(data, "sites.csv")
    assert table.rows[0]["Company"] == "Caf\xe9"


def test_read_empty_csv() -> None:
    table = read_table(b"", "empty.csv")
    assert table.rows == []


def test_table_from_rows_appends_new_columns() -> None:
    table = Table.from_rows([{"A": 1, "CDN": "x"}, {"A": 2, "Extra": "y"}], ["A"])
    assert table.columns == ["A", "CDN", "Extra"]


def test_write_xlsx_results_sheet() -> None:
    table = Table(columns=["Website", "CDN"], rows=[{"Website": "a.com", "CDN": "Fastly"}, {"Website": "b.com"}])
    wb = load_workbook(io.BytesIO(write_table(table, "xlsx")))
    ws = wb["Results"]
    values = [list(r) for r in ws.iter_rows(values_only=True)]
    assert values[0] == ["Website", "CDN"]
    assert values[1] == ["a.com", "Fastly"]
    assert values[2][0] == "b.com"


def test_write_csv() -> None:
    table = Table(columns=["Website", "CDN"], rows=[{"Website": "a.com", "CDN": "Fastly"}])
    assert write_table(table, "csv").decode("utf-8").splitlines() == ["Website,CDN", "a.com,Fastly"]


def test_read_csv_duplicate_headers_keep_both_columns() -> None:
    data = b"Name,Website,Notes,Notes\nAcme,example.com,first,second\n"
    table = read_table(data, "in.csv")

    assert table.columns == ["Name", "Website", "Notes", "Notes_1"]
    assert table.rows == [{"Name": "Acme", "Website": "example.com", "Notes": "first", "Notes_1": "second"}]
    assert write_table(table, "csv").decode("utf-8").splitlines() == [
        "Name,Website,Notes,Notes_1",
        "Acme,example.com,first,second",
    ]


def test_read_xlsx_duplicate_headers_keep_both_columns() -> None:
    data = _xlsx([["Site", "Tag", "Tag", "Tag_1"], ["a.com", "x", "y", "z"]])
    table = read_table(data, "s.xlsx")

    assert table.columns == ["Site", "Tag", "Tag_2", "Tag_1"]
    assert table.rows == [{"Site": "a.com", "Tag": "x", "Tag_2": "y", "Tag_1": "z"}]


def test_input_column_named_like_enrichment_column_survives() -> None:
    table = read_table(b"Website,CDN\nacme.com,in-house\n", "in.csv")
    assert table.columns == ["Website", "CDN_1"]

    results = {
        "cdn": DetectionResult(kind="cdn", status="success", value="Akamai", source="ipinfo"),
        "defense": DetectionResult(kind="defense", status="success", value="Akamai WAF", source="wafw00f"),
        "traffic": DetectionResult(kind="traffic", status="success", value="1.0M/mo (XRanks)", source="XRanks"),
    }
    rows = [merge_row(row, results) for row in table.rows]
    out = Table.from_rows(rows, [*table.columns, *ENRICHMENT_COLUMNS.values()])

    assert write_table(out, "csv").decode("utf-8").splitlines() == [
        "Website,CDN_1,CDN,Security,Traffic",
        "acme.com,in-house,Akamai,Akamai WAF,1.0M/mo (XRanks)",
    ]
